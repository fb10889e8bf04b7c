"""
Log Collector Service
=====================

A minimal telemetry collection backend using:
- PostgreSQL as the event store
- FastAPI for the ingestion and query API
- Static bearer tokens for producer identity
"""

__version__ = "1.0.0"
