"""
Log ingestion and query endpoints - POST /logs, GET /logs
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter

from log_collector.auth import ResolvedCredential, require_producer
from log_collector.errors import RequestShapeError, StoreError
from log_collector.models import ErrorResponse, IngestResponse, LogQueryResponse
from log_collector.services.ingestion import (
    IngestionPipeline,
    extract_records,
    get_ingestion_pipeline,
)
from log_collector.services.query_engine import LogQuery, QueryEngine, get_query_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logs", tags=["logs"])

# Prometheus metrics
write_requests = Counter(
    'log_write_requests_total',
    'Total authorized write requests',
    ['identity', 'outcome']
)
read_requests = Counter(
    'log_read_requests_total',
    'Total read requests',
    ['outcome']
)


@router.post(
    "",
    response_model=IngestResponse,
    responses={
        400: {"model": IngestResponse, "description": "No record in the batch was accepted"},
        401: {"model": ErrorResponse, "description": "Missing or unknown token"},
    }
)
async def submit_logs(
    request: Request,
    producer: ResolvedCredential = Depends(require_producer),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """
    Submit one log record or a batch.

    **Headers:**
    - `Authorization: Token <token>`: credential of the producing service

    **Request Body:** either a single record
    `{"timestamp", "service", "severity", "message"}` or
    `{"logs": [record, ...]}`.

    Each record is validated and stored independently. The response is
    200 if at least one record was stored, 400 otherwise, and always lists
    one error per rejected record.

    **Returns:**
    - `accepted`: number of records stored
    - `failed`: number of records rejected
    - `errors`: rejection messages, in batch order
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        write_requests.labels(identity=producer.identity, outcome="bad_body").inc()
        raise RequestShapeError("Request body must be valid JSON")

    records = extract_records(body)
    result = await pipeline.ingest(records, producer.credential, producer.identity)

    write_requests.labels(
        identity=producer.identity,
        outcome="accepted" if result.accepted else "rejected"
    ).inc()

    return JSONResponse(
        status_code=result.status_code,
        content=result.to_response().model_dump()
    )


@router.get(
    "",
    response_model=LogQueryResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid query parameters"},
        500: {"model": ErrorResponse, "description": "Store failure"},
    }
)
async def list_logs(
    service: Optional[str] = None,
    severity: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    timestamp_start: Optional[str] = None,
    timestamp_end: Optional[str] = None,
    received_at_start: Optional[str] = None,
    received_at_end: Optional[str] = None,
    engine: QueryEngine = Depends(get_query_engine)
):
    """
    List log records with optional filtering.

    **Query Parameters:**
    - `service`: Filter by service (`all` or omitted: every service)
    - `severity`: Filter by severity (`all` or omitted: every severity)
    - `timestamp_start` / `timestamp_end`: Event time bounds (inclusive)
    - `received_at_start` / `received_at_end`: Receive time bounds (inclusive, ISO 8601)
    - `limit`: Page size (default: 10, max: 1000)
    - `offset`: Number of records to skip

    Results are ordered newest received first, ties broken by newest ID.
    `count` is the number of records in this page.
    """
    try:
        query = LogQuery.from_params(
            service=service,
            severity=severity,
            limit=limit,
            offset=offset,
            timestamp_start=timestamp_start,
            timestamp_end=timestamp_end,
            received_at_start=received_at_start,
            received_at_end=received_at_end,
        )
    except RequestShapeError:
        read_requests.labels(outcome="bad_request").inc()
        raise

    try:
        result = await engine.run(query)
    except StoreError:
        read_requests.labels(outcome="error").inc()
        raise

    read_requests.labels(outcome="ok").inc()
    return result.to_response()
