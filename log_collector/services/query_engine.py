"""
Log query service.

Turns raw read parameters into a validated LogQuery, folds the supplied
filters into a list of predicates and runs them against the event store.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends
from pydantic import TypeAdapter, ValidationError

from log_collector.config import settings
from log_collector.errors import RequestShapeError
from log_collector.models import LogQueryResponse, LogRecord
from log_collector.services.event_store import EventStore, Predicate, get_event_store

logger = logging.getLogger(__name__)

ALL_SENTINEL = "all"

# OFFSET is bound as a Postgres bigint
MAX_OFFSET = 2 ** 63 - 1

_INTEGER = re.compile(r"^[+-]?\d+$")

_datetime_adapter = TypeAdapter(datetime)


def _is_absent(raw: Optional[str]) -> bool:
    return raw is None or raw.strip() == ""


def _parse_int(name: str, raw: str) -> int:
    text = raw.strip()
    if not _INTEGER.match(text):
        raise RequestShapeError(f"Invalid {name}: {raw!r} is not an integer")
    return int(text)


def parse_limit(raw: Optional[str], default: Optional[int] = None, maximum: Optional[int] = None) -> int:
    """
    Parse the ``limit`` parameter.

    Absent or empty means the default page size; anything else must be an
    integer between 1 and the maximum page size.

    Raises:
        RequestShapeError: If the value is not an integer or out of range
    """
    default = default if default is not None else settings.default_page_size
    maximum = maximum if maximum is not None else settings.max_page_size

    if _is_absent(raw):
        return default

    limit = _parse_int("limit", raw)
    if limit < 1:
        raise RequestShapeError(f"Invalid limit: {limit} (must be a positive integer)")
    if limit > maximum:
        raise RequestShapeError(f"Invalid limit: {limit} (must not exceed {maximum})")
    return limit


def parse_offset(raw: Optional[str]) -> int:
    """
    Parse the ``offset`` parameter. Absent or empty means 0.

    Raises:
        RequestShapeError: If the value is not an integer in 0..MAX_OFFSET
    """
    if _is_absent(raw):
        return 0

    offset = _parse_int("offset", raw)
    if offset < 0:
        raise RequestShapeError(f"Invalid offset: {offset} (must be a non-negative integer)")
    if offset > MAX_OFFSET:
        raise RequestShapeError(f"Invalid offset: {offset} (must not exceed {MAX_OFFSET})")
    return offset


def parse_received_at(name: str, raw: Optional[str]) -> Optional[datetime]:
    """
    Parse a received_at bound as an ISO 8601 datetime. Naive values are UTC.

    Raises:
        RequestShapeError: If the value is not a datetime
    """
    if _is_absent(raw):
        return None

    try:
        value = _datetime_adapter.validate_python(raw.strip())
    except ValidationError:
        raise RequestShapeError(f"Invalid {name}: {raw!r} is not an ISO 8601 datetime")

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _filter_value(raw: Optional[str]) -> Optional[str]:
    """Normalize an exact-match filter; absent, empty and "all" disable it."""
    if _is_absent(raw) or raw == ALL_SENTINEL:
        return None
    return raw


@dataclass(frozen=True)
class LogQuery:
    """A validated read request."""

    limit: int
    offset: int = 0
    service: Optional[str] = None
    severity: Optional[str] = None
    timestamp_start: Optional[str] = None
    timestamp_end: Optional[str] = None
    received_at_start: Optional[datetime] = None
    received_at_end: Optional[datetime] = None

    @classmethod
    def from_params(
        cls,
        service: Optional[str] = None,
        severity: Optional[str] = None,
        limit: Optional[str] = None,
        offset: Optional[str] = None,
        timestamp_start: Optional[str] = None,
        timestamp_end: Optional[str] = None,
        received_at_start: Optional[str] = None,
        received_at_end: Optional[str] = None
    ) -> "LogQuery":
        """
        Build a query from raw string parameters.

        Raises:
            RequestShapeError: If any parameter is malformed or out of range
        """
        return cls(
            limit=parse_limit(limit),
            offset=parse_offset(offset),
            service=_filter_value(service),
            severity=_filter_value(severity),
            timestamp_start=None if _is_absent(timestamp_start) else timestamp_start,
            timestamp_end=None if _is_absent(timestamp_end) else timestamp_end,
            received_at_start=parse_received_at("received_at_start", received_at_start),
            received_at_end=parse_received_at("received_at_end", received_at_end),
        )


def build_predicates(query: LogQuery) -> List[Predicate]:
    """Fold the filters actually supplied into a list of predicates."""
    predicates = []

    if query.service is not None:
        predicates.append(Predicate("service", "=", query.service))

    if query.severity is not None:
        predicates.append(Predicate("severity", "=", query.severity))

    # timestamp range
    if query.timestamp_start is not None:
        predicates.append(Predicate("timestamp", ">=", query.timestamp_start))
    if query.timestamp_end is not None:
        predicates.append(Predicate("timestamp", "<=", query.timestamp_end))

    # received_at range
    if query.received_at_start is not None:
        predicates.append(Predicate("received_at", ">=", query.received_at_start))
    if query.received_at_end is not None:
        predicates.append(Predicate("received_at", "<=", query.received_at_end))

    return predicates


@dataclass
class QueryResult:
    """One page of results. ``count`` is the page size, not a total."""

    results: List[LogRecord]

    @property
    def count(self) -> int:
        return len(self.results)

    def to_response(self) -> LogQueryResponse:
        return LogQueryResponse(count=self.count, results=self.results)


class QueryEngine:
    """Runs validated log queries against the event store."""

    def __init__(self, store: EventStore):
        self.store = store

    async def run(self, query: LogQuery) -> QueryResult:
        """
        Execute a query.

        Raises:
            StoreError: If the store query fails
        """
        predicates = build_predicates(query)
        records = await self.store.query(predicates, limit=query.limit, offset=query.offset)
        logger.debug(
            f"Query returned {len(records)} records "
            f"(filters={len(predicates)}, limit={query.limit}, offset={query.offset})"
        )
        return QueryResult(results=records)


async def get_query_engine(
    store: EventStore = Depends(get_event_store)
) -> QueryEngine:
    """Dependency injection for the query engine."""
    return QueryEngine(store)
