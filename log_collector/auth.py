"""
Credential resolution for log producers.

Producers authenticate with ``Authorization: Token <credential>``. The
credential is looked up in a static token table supplied at startup; there
is no rotation, expiry or scoping.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader

from log_collector.config import settings
from log_collector.errors import AuthorizationError

logger = logging.getLogger(__name__)

TOKEN_SCHEME = "Token"

# auto_error=False: a missing header is reported as an invalid token, not a 403
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


@dataclass(frozen=True)
class ResolvedCredential:
    """Result of resolving an Authorization header."""

    credential: Optional[str] = None
    identity: Optional[str] = None

    @property
    def is_authorized(self) -> bool:
        return self.identity is not None


class CredentialResolver:
    """
    Maps bearer credentials to service identities.

    The token table is copied into a read-only mapping on construction, so a
    resolver can be shared across requests without locking.
    """

    def __init__(self, tokens: Mapping[str, str]):
        self._tokens = MappingProxyType(dict(tokens))

    @property
    def tokens(self) -> Mapping[str, str]:
        return self._tokens

    @staticmethod
    def extract_credential(header: Optional[str]) -> Optional[str]:
        """Return the credential from a ``Token <value>`` header, or None."""
        if not header:
            return None
        parts = header.split()
        if len(parts) != 2 or parts[0] != TOKEN_SCHEME:
            return None
        return parts[1]

    def resolve(self, header: Optional[str]) -> ResolvedCredential:
        """
        Resolve a raw header value to a (credential, identity) pair.

        Never raises: a missing or malformed header gives an empty result,
        an unknown credential gives a result with no identity.
        """
        credential = self.extract_credential(header)
        if credential is None:
            return ResolvedCredential()
        return ResolvedCredential(credential=credential, identity=self._tokens.get(credential))


# ============================================================================
# Dependencies
# ============================================================================

credential_resolver = CredentialResolver(settings.service_tokens)


def get_credential_resolver() -> CredentialResolver:
    """Dependency injection for the credential resolver."""
    return credential_resolver


async def require_producer(
    authorization: Optional[str] = Depends(authorization_header),
    resolver: CredentialResolver = Depends(get_credential_resolver)
) -> ResolvedCredential:
    """
    Dependency that resolves the producer's credential.

    Raises:
        AuthorizationError: If the header is missing, malformed or unknown
    """
    resolved = resolver.resolve(authorization)

    if not resolved.is_authorized:
        logger.warning("Write rejected: invalid or missing token")
        raise AuthorizationError()

    return resolved
