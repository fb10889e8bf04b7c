"""
Pydantic models for API requests and responses.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


# ============================================================================
# Log Record Models
# ============================================================================

class LogRecord(BaseModel):
    """A persisted log record."""

    id: int
    timestamp: str = Field(
        ...,
        description="Producer-supplied event time (ISO 8601 expected)",
        examples=["2024-01-01T00:00:00Z"]
    )
    service: str = Field(..., examples=["auth-service", "payment-service"])
    severity: str = Field(..., examples=["INFO", "WARN", "ERROR"])
    message: str
    received_at: datetime = Field(
        ...,
        description="Server time at which the write request was accepted"
    )
    token_used: str = Field(..., description="Credential presented on the write")


class NewLogRecord(BaseModel):
    """A validated record ready to be inserted into the store."""

    timestamp: str
    service: str
    severity: str
    message: str
    received_at: datetime
    token_used: str


# ============================================================================
# Response Models
# ============================================================================

class IngestResponse(BaseModel):
    """Per-batch outcome of a write request."""

    accepted: int = Field(..., ge=0, description="Records persisted")
    failed: int = Field(..., ge=0, description="Records rejected")
    errors: List[str] = Field(
        default_factory=list,
        description="One message per rejected record, in batch order",
        examples=[["Missing fields: severity"]]
    )


class LogQueryResponse(BaseModel):
    """A page of log records."""

    count: int = Field(..., description="Number of records in this page")
    results: List[LogRecord]


class ErrorResponse(BaseModel):
    """Error body returned for request-level failures."""

    error: str = Field(..., examples=["Invalid token"])


# ============================================================================
# Health Check Models
# ============================================================================

class HealthStatus(BaseModel):
    """Health check response."""

    status: str = Field(..., examples=["ok"])
    time: datetime


class ServiceInfo(BaseModel):
    """Service information response."""

    name: str
    version: str
    environment: str
    uptime_seconds: float
