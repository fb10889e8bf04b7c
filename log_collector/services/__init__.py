"""Ingestion, validation, storage and query services."""
