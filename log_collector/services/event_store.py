"""
Event store service.

Persists log records in a single append-only PostgreSQL table and runs
filtered, paginated range queries over it. Filter values are always bound
as query parameters; only whitelisted column names and operators are ever
written into the SQL text.
"""

import asyncio
import logging
import re
from typing import Any, List, NamedTuple, Sequence, Tuple

import asyncpg
from fastapi import Depends
from prometheus_client import Histogram

from log_collector.database import Database, get_db
from log_collector.errors import StoreError
from log_collector.models import LogRecord, NewLogRecord

logger = logging.getLogger(__name__)

# Prometheus metrics
db_write_duration = Histogram(
    'log_store_insert_seconds',
    'Event store insert duration'
)
db_query_duration = Histogram(
    'log_store_query_seconds',
    'Event store query duration'
)

# Failures the driver can raise for a single statement
STORE_FAILURES = (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError)

INSERT_COLUMNS = ("timestamp", "service", "severity", "message", "received_at", "token_used")

# asyncpg names the failing bind as "query argument $n"
_BIND_ARGUMENT = re.compile(r"query argument \$(\d+)")

FILTERABLE_COLUMNS = frozenset({"timestamp", "service", "severity", "received_at"})
OPERATORS = frozenset({"=", ">=", "<="})

ORDER_BY = '"received_at" DESC, "id" DESC'

SELECT_COLUMNS = '"id", "timestamp", "service", "severity", "message", "received_at", "token_used"'

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS logs (
        "id" BIGSERIAL PRIMARY KEY,
        "timestamp" TEXT NOT NULL,
        "service" TEXT NOT NULL,
        "severity" TEXT NOT NULL,
        "message" TEXT NOT NULL,
        "received_at" TIMESTAMPTZ NOT NULL,
        "token_used" TEXT NOT NULL
    )
    """,
    'CREATE INDEX IF NOT EXISTS logs_received_at_id_idx ON logs ("received_at" DESC, "id" DESC)',
    'CREATE INDEX IF NOT EXISTS logs_service_idx ON logs ("service")',
    'CREATE INDEX IF NOT EXISTS logs_severity_idx ON logs ("severity")',
)


def describe_bind_failure(error: asyncpg.exceptions.DataError) -> str:
    """Name the column whose value the driver could not encode."""
    match = _BIND_ARGUMENT.search(str(error))
    if match is None or not 1 <= int(match.group(1)) <= len(INSERT_COLUMNS):
        return "Invalid value in record"

    column = INSERT_COLUMNS[int(match.group(1)) - 1]
    if column == "received_at":
        return f"Invalid value for {column}: expected datetime"
    return f"Invalid value for {column}: expected string"


class Predicate(NamedTuple):
    """A single filter condition: ``column operator value``."""

    column: str
    operator: str
    value: Any


def render_where(predicates: Sequence[Predicate], first_param: int = 1) -> Tuple[str, List[Any]]:
    """
    Render predicates into a WHERE clause and its parameter list.

    Each predicate becomes ``"column" op $n``; terms are joined with AND.
    The returned parameter list has one entry per predicate, in order.

    Args:
        predicates: Conditions to apply (may be empty)
        first_param: Number of the first positional parameter

    Returns:
        Tuple of (clause, params); clause is "" when there are no predicates

    Raises:
        ValueError: If a column or operator is not whitelisted
    """
    conditions = []
    params = []

    for predicate in predicates:
        if predicate.column not in FILTERABLE_COLUMNS:
            raise ValueError(f"Column not filterable: {predicate.column!r}")
        if predicate.operator not in OPERATORS:
            raise ValueError(f"Unsupported operator: {predicate.operator!r}")

        conditions.append(f'"{predicate.column}" {predicate.operator} ${first_param + len(params)}')
        params.append(predicate.value)

    if not conditions:
        return "", params

    return "WHERE " + " AND ".join(conditions), params


class EventStore:
    """Durable, ordered collection of log records."""

    def __init__(self, db: Database):
        self.db = db

    async def init_schema(self) -> None:
        """Create the logs table and its indexes if they are missing."""
        async with self.db.transaction() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("Log table ready")

    async def insert(self, record: NewLogRecord) -> int:
        """
        Persist one validated record.

        Returns:
            The store-assigned record ID

        Raises:
            StoreError: If the database rejects the row or is unreachable
        """
        try:
            with db_write_duration.time():
                record_id = await self.db.fetchval(
                    """
                    INSERT INTO logs ("timestamp", "service", "severity", "message", "received_at", "token_used")
                    VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING "id"
                    """,
                    record.timestamp,
                    record.service,
                    record.severity,
                    record.message,
                    record.received_at,
                    record.token_used
                )
        except asyncpg.exceptions.DataError as e:
            logger.warning(f"Insert rejected for service={record.service!r}: {e}")
            raise StoreError(describe_bind_failure(e)) from e
        except STORE_FAILURES as e:
            logger.warning(f"Insert failed for service={record.service!r}: {e}")
            raise StoreError(str(e) or type(e).__name__) from e

        logger.debug(f"Log stored: id={record_id}, service={record.service}")
        return record_id

    async def query(
        self,
        predicates: Sequence[Predicate],
        limit: int,
        offset: int = 0
    ) -> List[LogRecord]:
        """
        Fetch one page of matching records, newest received first.

        Ties on received_at are broken by descending id, so rows inserted
        while a caller pages through always sort ahead of the current page.

        Raises:
            StoreError: If the query fails
        """
        where_clause, params = render_where(predicates)
        query = f"""
            SELECT {SELECT_COLUMNS}
            FROM logs
            {where_clause}
            ORDER BY {ORDER_BY}
            LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
        """
        params.extend([limit, offset])

        try:
            with db_query_duration.time():
                rows = await self.db.fetch(query, *params)
        except STORE_FAILURES as e:
            logger.error(f"Log query failed: {e}")
            raise StoreError() from e

        return [LogRecord(**dict(row)) for row in rows]


async def get_event_store(db: Database = Depends(get_db)) -> EventStore:
    """Dependency injection for the event store."""
    return EventStore(db)
