"""
Tests for record validation.
"""

import pytest

from log_collector.errors import RecordValidationError
from log_collector.services.validator import ensure_valid, validate_record


def test_complete_record_is_valid(sample_record):
    assert validate_record(sample_record) is None


def test_extra_fields_are_allowed(sample_record):
    sample_record["host"] = "web-1"
    assert validate_record(sample_record) is None


def test_single_missing_field(sample_record):
    del sample_record["severity"]
    assert validate_record(sample_record) == "Missing fields: severity"


def test_every_missing_field_is_named_in_order():
    assert validate_record({"message": "x"}) == "Missing fields: timestamp, service, severity"


def test_empty_record_names_all_fields():
    assert validate_record({}) == "Missing fields: timestamp, service, severity, message"


def test_only_key_presence_is_checked(sample_record):
    # null and non-string values are left to the store
    sample_record["severity"] = None
    sample_record["message"] = {"nested": True}
    assert validate_record(sample_record) is None


@pytest.mark.parametrize("record", [[], "text", 42, None])
def test_non_object_record(record):
    assert validate_record(record) == "Record must be a JSON object"


def test_ensure_valid_raises_with_message():
    with pytest.raises(RecordValidationError) as exc_info:
        ensure_valid({"timestamp": "t", "service": "s"})

    assert exc_info.value.message == "Missing fields: severity, message"


def test_ensure_valid_returns_record(sample_record):
    assert ensure_valid(sample_record) is sample_record
