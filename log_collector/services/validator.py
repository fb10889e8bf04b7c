"""
Structural validation of incoming log records.
"""

from typing import Any, Optional, Tuple

from log_collector.errors import RecordValidationError

REQUIRED_FIELDS: Tuple[str, ...] = ("timestamp", "service", "severity", "message")


def missing_fields(record: Any) -> list:
    """Return the required fields absent from ``record``, in canonical order."""
    return [field for field in REQUIRED_FIELDS if field not in record]


def validate_record(record: Any) -> Optional[str]:
    """
    Check that a candidate record carries every required key.

    Only key presence is checked; values are passed to the store as-is and
    any type or constraint problem surfaces there as a StoreError.

    Args:
        record: Decoded JSON value for one record

    Returns:
        None if the record is complete, otherwise a message naming every
        missing field
    """
    if not isinstance(record, dict):
        return "Record must be a JSON object"

    missing = missing_fields(record)
    if missing:
        return f"Missing fields: {', '.join(missing)}"

    return None


def ensure_valid(record: Any) -> dict:
    """
    Like validate_record, but raise on failure.

    Raises:
        RecordValidationError: If the record is not an object or lacks fields
    """
    error = validate_record(record)
    if error:
        raise RecordValidationError(error)
    return record
