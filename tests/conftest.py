"""
Test fixtures and configuration for pytest.
"""

import itertools
import operator
from datetime import datetime, timezone
from typing import List, Sequence

import pytest
from fastapi.testclient import TestClient

from log_collector.auth import CredentialResolver, get_credential_resolver
from log_collector.database import get_db
from log_collector.errors import StoreError
from log_collector.main import app
from log_collector.models import LogRecord, NewLogRecord
from log_collector.services.event_store import Predicate, get_event_store


TEST_TOKENS = {
    "token123": "auth-service",
    "token456": "payment-service",
    "token789": "api-service",
}


@pytest.fixture
def sample_record() -> dict:
    """A complete log record as a producer would send it."""
    return {
        "timestamp": "2024-01-01T00:00:00Z",
        "service": "auth-service",
        "severity": "INFO",
        "message": "x",
    }


@pytest.fixture
def resolver() -> CredentialResolver:
    return CredentialResolver(TEST_TOKENS)


class MockDatabase:
    """Mock database for testing without PostgreSQL.

    Records every statement with its parameters so tests can check how SQL
    is built. ``fail_with`` makes the next calls raise.
    """

    def __init__(self):
        self.statements = []
        self.rows = []
        self.fail_with = None
        self.healthy = True
        self._ids = itertools.count(1)

    def _record(self, query: str, args: tuple):
        self.statements.append((query, args))
        if self.fail_with is not None:
            raise self.fail_with

    async def fetchval(self, query: str, *args):
        """Mock fetchval."""
        self._record(query, args)
        if "INSERT INTO logs" in query:
            return next(self._ids)
        return None

    async def fetch(self, query: str, *args):
        """Mock fetch."""
        self._record(query, args)
        return list(self.rows)

    async def execute(self, query: str, *args):
        """Mock execute."""
        self._record(query, args)
        return "CREATE TABLE"

    def transaction(self):
        """Mock transaction context manager."""
        return MockTransaction(self)

    async def health_check(self) -> bool:
        return self.healthy


class MockTransaction:
    """Mock transaction context manager."""

    def __init__(self, db: MockDatabase):
        self.db = db

    async def __aenter__(self):
        return self.db

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


class InMemoryEventStore:
    """Event store double with the same ordering and filtering contract."""

    OPERATORS = {"=": operator.eq, ">=": operator.ge, "<=": operator.le}

    def __init__(self):
        self.rows: List[LogRecord] = []
        self.query_calls = 0
        self.fail_queries = False
        self._ids = itertools.count(1)

    async def insert(self, record: NewLogRecord) -> int:
        for name in ("timestamp", "service", "severity", "message"):
            value = getattr(record, name)
            if not isinstance(value, str):
                raise StoreError(f"Invalid value for {name}: expected string")

        row = LogRecord(id=next(self._ids), **record.model_dump())
        self.rows.append(row)
        return row.id

    async def query(self, predicates: Sequence[Predicate], limit: int, offset: int = 0):
        self.query_calls += 1
        if self.fail_queries:
            raise StoreError()

        matches = [
            row for row in self.rows
            if all(self.OPERATORS[p.operator](getattr(row, p.column), p.value) for p in predicates)
        ]
        matches.sort(key=lambda r: (r.received_at, r.id), reverse=True)
        return matches[offset:offset + limit]


@pytest.fixture
def mock_db() -> MockDatabase:
    """Create a mock database for testing."""
    return MockDatabase()


@pytest.fixture
def store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def client(store: InMemoryEventStore, resolver: CredentialResolver, mock_db: MockDatabase):
    """TestClient wired to in-memory collaborators. Lifespan is not run."""
    app.dependency_overrides[get_event_store] = lambda: store
    app.dependency_overrides[get_credential_resolver] = lambda: resolver
    app.dependency_overrides[get_db] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_new_record(received_at: datetime = None, **overrides) -> NewLogRecord:
    """Helper to build a store-ready record."""
    fields = {
        "timestamp": "2024-01-01T00:00:00Z",
        "service": "auth-service",
        "severity": "INFO",
        "message": "x",
        "received_at": received_at or datetime.now(timezone.utc),
        "token_used": "token123",
    }
    fields.update(overrides)
    return NewLogRecord(**fields)


@pytest.fixture
def new_record():
    """Factory fixture for store-ready records."""
    return make_new_record
