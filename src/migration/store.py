"""
Relational store handle.

The migration only ever needs four operations against PostgreSQL: look a row
up by its identity key, insert a row, insert a row unless its identity key is
taken, and count rows against a cutoff. Driver errors are translated here so
callers only see the tool's own exception types:

- unique violation on insert      -> DuplicateRowError
- any other statement failure     -> LoadError
- connectivity / pool failures    -> SourceUnavailable
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import psycopg2
import psycopg2.errors
from opentelemetry import trace

from migration.entities import RELATIONAL_TABLES, SURROGATE_ID_COLUMN
from migration.models import TargetRow
from migration.transformers.mappings import get_mapping
from utils.config import PostgresSettings
from utils.db_pool import ConnectionPoolError, PostgresConnectionPool
from utils.errors import DuplicateRowError, LoadError, SourceUnavailable
from utils.retry import retry_database_operation
from utils.sql_safety import quote_identifier, quote_table
from utils.tracing import trace_operation

logger = logging.getLogger(__name__)

CUTOFF_OPERATORS = (">=", "<")


class RelationalStore(ABC):
    """Operations the loader and the reconciler need from the relational store."""

    @abstractmethod
    def find(self, entity_kind: str, identity_key: tuple) -> dict[str, Any] | None:
        """Return the row with this identity key, or None."""

    @abstractmethod
    def insert(self, entity_kind: str, row: TargetRow) -> int:
        """Insert a row and return its surrogate id."""

    @abstractmethod
    def insert_if_absent(self, entity_kind: str, row: TargetRow) -> int | None:
        """Insert a row unless its identity key exists; None when it did."""

    @abstractmethod
    def count(self, entity_kind: str, cutoff: datetime, operator: str = ">=") -> int:
        """Count rows whose created_at compares to the cutoff with operator."""

    @abstractmethod
    def close(self) -> None:
        """Release the store's connections."""

    def supports(self, entity_kind: str) -> bool:
        return entity_kind in RELATIONAL_TABLES

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


@retry_database_operation(max_retries=3, base_delay=1.0)
def _execute_count(cursor: Any, query: str, params: tuple) -> int:
    cursor.execute(query, params)
    result = cursor.fetchone()
    return int(result[0])


class PostgresRelationalStore(RelationalStore):
    """
    RelationalStore backed by a PostgresConnectionPool.

    Each statement runs on its own pooled connection in autocommit mode.
    """

    def __init__(
        self,
        pool: PostgresConnectionPool,
        tables: Mapping[str, str] | None = None,
        timestamp_column: str = "created_at",
    ):
        """
        Args:
            pool: Connection pool to the target database
            tables: Entity kind -> table name (default: RELATIONAL_TABLES)
            timestamp_column: Column compared against the count cutoff
        """
        self.pool = pool
        self.tables = dict(tables or RELATIONAL_TABLES)
        self.timestamp_column = timestamp_column

    @classmethod
    def from_settings(cls, settings: PostgresSettings, max_pool: int = 20) -> "PostgresRelationalStore":
        """
        Open a pool from connection settings.

        Raises:
            SourceUnavailable: If the database cannot be reached
        """
        try:
            pool = PostgresConnectionPool(
                host=settings.host,
                port=settings.port,
                database=settings.database,
                user=settings.user,
                password=settings.password,
                min_size=1,
                max_size=max_pool,
            )
        except psycopg2.Error as e:
            raise SourceUnavailable(
                f"Could not connect to relational store {settings.host}/{settings.database}: {e}"
            ) from e
        return cls(pool)

    def supports(self, entity_kind: str) -> bool:
        return entity_kind in self.tables

    def _table(self, entity_kind: str) -> str:
        if entity_kind not in self.tables:
            raise ValueError(f"No relational table configured for {entity_kind!r}")
        return quote_table(self.tables[entity_kind])

    @contextmanager
    def _cursor(self, operation: str, entity_kind: str) -> Iterator[Any]:
        """Pooled cursor with connectivity errors mapped to SourceUnavailable."""
        try:
            with self.pool.acquire() as conn:
                with conn.cursor() as cursor:
                    yield cursor
        except (psycopg2.OperationalError, psycopg2.InterfaceError, ConnectionPoolError) as e:
            raise SourceUnavailable(
                f"Relational store unavailable during {operation} of {entity_kind}: {e}"
            ) from e

    def _identity_clause(self, entity_kind: str) -> str:
        columns = get_mapping(entity_kind).identity_columns
        return " AND ".join(f"{quote_identifier(column)} = %s" for column in columns)

    def _insert_statement(self, entity_kind: str, row: TargetRow, on_conflict: bool) -> tuple[str, tuple]:
        columns = list(row.columns)
        column_sql = ", ".join(quote_identifier(column) for column in columns)
        placeholders = ", ".join(["%s"] * len(columns))
        query = f"INSERT INTO {self._table(entity_kind)} ({column_sql}) VALUES ({placeholders})"

        if on_conflict:
            identity_sql = ", ".join(
                quote_identifier(column) for column in get_mapping(entity_kind).identity_columns
            )
            query += f" ON CONFLICT ({identity_sql}) DO NOTHING"

        query += f" RETURNING {quote_identifier(SURROGATE_ID_COLUMN)}"
        return query, tuple(row.columns[column] for column in columns)

    def find(self, entity_kind: str, identity_key: tuple) -> dict[str, Any] | None:
        query = (
            f"SELECT * FROM {self._table(entity_kind)} "
            f"WHERE {self._identity_clause(entity_kind)} LIMIT 1"
        )

        with trace_operation("store_find", kind=trace.SpanKind.CLIENT, entity_kind=entity_kind):
            try:
                with self._cursor("find", entity_kind) as cursor:
                    cursor.execute(query, tuple(identity_key))
                    result = cursor.fetchone()
                    if result is None:
                        return None
                    names = [column[0] for column in cursor.description]
                    return dict(zip(names, result))
            except psycopg2.Error as e:
                raise LoadError(f"Lookup of {entity_kind} {identity_key} failed: {e}") from e

    def _execute_insert(self, entity_kind: str, row: TargetRow, on_conflict: bool) -> int | None:
        query, params = self._insert_statement(entity_kind, row, on_conflict)

        with trace_operation(
            "store_insert",
            kind=trace.SpanKind.CLIENT,
            entity_kind=entity_kind,
            on_conflict=on_conflict,
        ):
            try:
                with self._cursor("insert", entity_kind) as cursor:
                    cursor.execute(query, params)
                    result = cursor.fetchone()
            except psycopg2.errors.UniqueViolation as e:
                raise DuplicateRowError(
                    f"{entity_kind} {row.identity_key} already exists: {e}"
                ) from e
            except psycopg2.Error as e:
                raise LoadError(f"Insert of {entity_kind} {row.identity_key} failed: {e}") from e

        return None if result is None else int(result[0])

    def insert(self, entity_kind: str, row: TargetRow) -> int:
        surrogate_id = self._execute_insert(entity_kind, row, on_conflict=False)
        if surrogate_id is None:
            raise LoadError(f"Insert of {entity_kind} {row.identity_key} returned no id")
        return surrogate_id

    def insert_if_absent(self, entity_kind: str, row: TargetRow) -> int | None:
        return self._execute_insert(entity_kind, row, on_conflict=True)

    def count(self, entity_kind: str, cutoff: datetime, operator: str = ">=") -> int:
        """
        Count rows created relative to the cutoff

        Args:
            entity_kind: Entity kind to count
            cutoff: Cutoff instant (timezone-aware)
            operator: ">=" counts rows at or after the cutoff, "<" before it

        Returns:
            Row count

        Raises:
            SourceUnavailable: If the count query cannot be executed
        """
        if operator not in CUTOFF_OPERATORS:
            raise ValueError(f"Unsupported cutoff operator: {operator!r}")

        query = (
            f"SELECT COUNT(*) FROM {self._table(entity_kind)} "
            f"WHERE {quote_identifier(self.timestamp_column)} {operator} %s"
        )

        with trace_operation("store_count", kind=trace.SpanKind.CLIENT, entity_kind=entity_kind):
            try:
                with self._cursor("count", entity_kind) as cursor:
                    return _execute_count(cursor, query, (cutoff,))
            except psycopg2.Error as e:
                raise SourceUnavailable(f"Count of {entity_kind} failed: {e}") from e

    def close(self) -> None:
        self.pool.close()


def create_relational_store(settings: PostgresSettings, max_pool: int = 20) -> PostgresRelationalStore:
    """Open the PostgreSQL-backed relational store."""
    return PostgresRelationalStore.from_settings(settings, max_pool=max_pool)
