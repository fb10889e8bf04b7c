"""
Error types raised by the ingestion and query paths.

Record-level errors (validation, store failures on write) are collected by
the ingestion pipeline and reported per batch. Request-level errors are
mapped to HTTP responses by the handlers registered in ``main.py``.
"""


class LogCollectorError(Exception):
    """Base class for all service errors."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class AuthorizationError(LogCollectorError):
    """Missing, malformed or unknown credential."""

    status_code = 401
    public_message = "Invalid token"


class RecordValidationError(LogCollectorError):
    """A single log record is missing required fields."""

    status_code = 400
    public_message = "Invalid record"


class StoreError(LogCollectorError):
    """The event store could not complete an insert or query."""

    status_code = 500


class RequestShapeError(LogCollectorError):
    """Query parameters are malformed or out of range."""

    status_code = 400
    public_message = "Invalid request"
