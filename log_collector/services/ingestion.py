"""
Log ingestion service.

Processes a write request record by record: every record is validated and
stored independently, so one bad record never prevents the rest of its
batch from being persisted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import Depends
from prometheus_client import Counter

from log_collector.errors import RecordValidationError, StoreError
from log_collector.models import IngestResponse, NewLogRecord
from log_collector.services.event_store import EventStore, get_event_store
from log_collector.services.validator import ensure_valid

logger = logging.getLogger(__name__)

# Prometheus metrics
records_accepted = Counter(
    'log_records_accepted_total',
    'Total log records persisted',
    ['identity']
)
records_rejected = Counter(
    'log_records_rejected_total',
    'Total log records rejected',
    ['identity', 'reason']
)


def extract_records(body: Any) -> List[Any]:
    """
    Normalize a write body into a list of candidate records.

    ``{"logs": [...]}`` is a batch; any other value is a single record.
    """
    if isinstance(body, dict) and isinstance(body.get("logs"), list):
        return body["logs"]
    return [body]


@dataclass
class IngestResult:
    """Outcome of one write request."""

    accepted: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def status_code(self) -> int:
        """200 if anything was stored, 400 otherwise."""
        return 200 if self.accepted > 0 else 400

    def reject(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def to_response(self) -> IngestResponse:
        return IngestResponse(accepted=self.accepted, failed=self.failed, errors=self.errors)


class IngestionPipeline:
    """Validates and stores the records of an authorized write request."""

    def __init__(self, store: EventStore):
        self.store = store

    async def ingest(
        self,
        records: List[Any],
        credential: str,
        identity: str,
        received_at: Optional[datetime] = None
    ) -> IngestResult:
        """
        Validate and persist each record independently.

        Args:
            records: Candidate records, in batch order
            credential: Raw credential presented on the request
            identity: Service the credential resolved to
            received_at: Server time for the batch (defaults to now, UTC)

        Returns:
            IngestResult with one error entry per rejected record
        """
        received_at = received_at or datetime.now(timezone.utc)
        result = IngestResult()

        for raw in records:
            try:
                valid = ensure_valid(raw)
            except RecordValidationError as e:
                records_rejected.labels(identity=identity, reason="validation").inc()
                result.reject(e.message)
                continue

            record = NewLogRecord.model_construct(
                timestamp=valid["timestamp"],
                service=valid["service"],
                severity=valid["severity"],
                message=valid["message"],
                received_at=received_at,
                token_used=credential
            )

            try:
                await self.store.insert(record)
            except StoreError as e:
                records_rejected.labels(identity=identity, reason="store").inc()
                result.reject(e.message)
                continue

            records_accepted.labels(identity=identity).inc()
            result.accepted += 1

        logger.info(
            f"Ingested batch from {identity}: accepted={result.accepted} failed={result.failed}"
        )

        return result


async def get_ingestion_pipeline(
    store: EventStore = Depends(get_event_store)
) -> IngestionPipeline:
    """Dependency injection for the ingestion pipeline."""
    return IngestionPipeline(store)
