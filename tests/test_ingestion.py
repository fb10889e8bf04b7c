"""
Tests for the ingestion pipeline.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from log_collector.services.ingestion import IngestionPipeline, IngestResult, extract_records


def _record(n: int, **overrides) -> dict:
    record = {
        "timestamp": f"2024-01-01T00:00:0{n}Z",
        "service": "auth-service",
        "severity": "INFO",
        "message": f"event {n}",
    }
    record.update(overrides)
    return record


class TestExtractRecords:
    """Tests for write body normalization."""

    def test_batch_body(self):
        logs = [_record(1), _record(2)]
        assert extract_records({"logs": logs}) == logs

    def test_single_record_is_a_batch_of_one(self):
        record = _record(1)
        assert extract_records(record) == [record]

    def test_non_list_logs_is_treated_as_a_record(self):
        body = {"logs": "not-a-list"}
        assert extract_records(body) == [body]

    def test_empty_batch(self):
        assert extract_records({"logs": []}) == []


class TestIngestResult:
    """Tests for overall status selection."""

    def test_any_acceptance_is_success(self):
        assert IngestResult(accepted=1, failed=5).status_code == 200

    def test_nothing_accepted_is_failure(self):
        assert IngestResult(accepted=0, failed=2).status_code == 400
        assert IngestResult().status_code == 400


class TestIngestionPipeline:
    """Tests for per-record processing."""

    @pytest.mark.asyncio
    async def test_all_valid(self, store):
        pipeline = IngestionPipeline(store)

        result = await pipeline.ingest([_record(1), _record(2)], "token123", "auth-service")

        assert (result.accepted, result.failed, result.errors) == (2, 0, [])
        assert len(store.rows) == 2

    @pytest.mark.asyncio
    async def test_missing_field_does_not_stop_batch(self, store):
        pipeline = IngestionPipeline(store)
        second = _record(2)
        del second["severity"]

        result = await pipeline.ingest([_record(1), second, _record(3)], "token123", "auth-service")

        assert result.accepted == 2
        assert result.failed == 1
        assert result.errors == ["Missing fields: severity"]
        assert [row.message for row in store.rows] == ["event 1", "event 3"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("invalid", [0, 1, 3, 5])
    async def test_counts_for_mixed_batches(self, store, invalid):
        pipeline = IngestionPipeline(store)
        records = [_record(i) for i in range(5)]
        for record in records[:invalid]:
            del record["message"]

        result = await pipeline.ingest(records, "token123", "auth-service")

        assert result.accepted == 5 - invalid
        assert result.failed == invalid
        assert len(result.errors) == invalid
        assert len(store.rows) == 5 - invalid

    @pytest.mark.asyncio
    async def test_store_failure_is_recorded_per_record(self, store):
        pipeline = IngestionPipeline(store)
        bad = _record(2, message={"nested": "object"})

        result = await pipeline.ingest([_record(1), bad], "token123", "auth-service")

        assert result.accepted == 1
        assert result.failed == 1
        assert "message" in result.errors[0]
        assert len(store.rows) == 1

    @pytest.mark.asyncio
    async def test_non_object_records_are_rejected(self, store):
        pipeline = IngestionPipeline(store)

        result = await pipeline.ingest(["text", 42], "token123", "auth-service")

        assert result.accepted == 0
        assert result.errors == ["Record must be a JSON object"] * 2

    @pytest.mark.asyncio
    async def test_batch_shares_server_receive_time(self, store):
        pipeline = IngestionPipeline(store)
        # a client-supplied received_at is ignored
        records = [_record(1, received_at="1999-01-01T00:00:00Z"), _record(2)]

        before = datetime.now(timezone.utc)
        await pipeline.ingest(records, "token123", "auth-service")
        after = datetime.now(timezone.utc)

        received = {row.received_at for row in store.rows}
        assert len(received) == 1
        assert before <= received.pop() <= after

    @pytest.mark.asyncio
    async def test_token_is_stored_for_audit(self, store):
        pipeline = IngestionPipeline(store)

        await pipeline.ingest([_record(1)], "token456", "payment-service")

        assert store.rows[0].token_used == "token456"

    @pytest.mark.asyncio
    async def test_payload_service_is_not_cross_checked(self, store):
        pipeline = IngestionPipeline(store)

        result = await pipeline.ingest([_record(1, service="api-service")], "token123", "auth-service")

        assert result.accepted == 1
        assert store.rows[0].service == "api-service"

    @pytest.mark.asyncio
    async def test_concurrent_batches_get_unique_increasing_ids(self, store):
        pipeline = IngestionPipeline(store)
        batches = [[_record(i) for i in range(5)] for _ in range(4)]

        await asyncio.gather(*(
            pipeline.ingest(batch, "token123", "auth-service") for batch in batches
        ))

        ids = [row.id for row in store.rows]
        assert len(ids) == 20
        assert ids == sorted(set(ids))
