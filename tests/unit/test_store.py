"""
Unit tests for PostgresRelationalStore

The pool, connection and cursor are mocked; the tests check the SQL the store
issues and the translation of driver errors.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import psycopg2
import psycopg2.errors
import pytest

from fakes import make_collection, make_provider
from migration.store import PostgresRelationalStore, create_relational_store
from migration.transformers import transform_record
from utils.config import PostgresSettings
from utils.db_pool import PoolExhaustedError
from utils.errors import DuplicateRowError, LoadError, SourceUnavailable

CUTOFF = datetime(2020, 9, 13, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def pool():
    return MagicMock()


@pytest.fixture
def cursor(pool):
    conn = pool.acquire.return_value.__enter__.return_value
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture
def store(pool):
    return PostgresRelationalStore(pool)


class TestFind:
    def test_returns_row_as_dict(self, store, cursor):
        cursor.fetchone.return_value = (7, "MOD09GQ", "006")
        cursor.description = [("cumulus_id",), ("name",), ("version",)]

        row = store.find("collection", ("MOD09GQ", "006"))

        assert row == {"cumulus_id": 7, "name": "MOD09GQ", "version": "006"}
        query, params = cursor.execute.call_args.args
        assert 'FROM "collections"' in query
        assert '"name" = %s AND "version" = %s' in query
        assert params == ("MOD09GQ", "006")

    def test_missing_row(self, store, cursor):
        cursor.fetchone.return_value = None

        assert store.find("provider", ("s3_provider",)) is None

    def test_unknown_kind(self, store):
        with pytest.raises(ValueError):
            store.find("granule", ("g1",))


class TestInsert:
    def test_insert_returns_surrogate_id(self, store, cursor):
        cursor.fetchone.return_value = (12,)
        row = transform_record(make_provider(), "provider")

        assert store.insert("provider", row) == 12

        query, params = cursor.execute.call_args.args
        assert query.startswith('INSERT INTO "providers"')
        assert query.endswith('RETURNING "cumulus_id"')
        assert "ON CONFLICT" not in query
        assert params == tuple(row.columns.values())

    def test_unique_violation_is_duplicate(self, store, cursor):
        cursor.execute.side_effect = psycopg2.errors.UniqueViolation("duplicate key value")
        row = transform_record(make_collection(), "collection")

        with pytest.raises(DuplicateRowError):
            store.insert("collection", row)

    def test_other_statement_error_is_load_error(self, store, cursor):
        cursor.execute.side_effect = psycopg2.DataError("value too long for type character varying(255)")
        row = transform_record(make_collection(), "collection")

        with pytest.raises(LoadError) as exc_info:
            store.insert("collection", row)

        assert not isinstance(exc_info.value, DuplicateRowError)

    def test_connection_error_is_source_unavailable(self, store, cursor):
        cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")
        row = transform_record(make_collection(), "collection")

        with pytest.raises(SourceUnavailable):
            store.insert("collection", row)

    def test_pool_exhausted_is_source_unavailable(self, store, pool):
        pool.acquire.return_value.__enter__.side_effect = PoolExhaustedError("no connections")
        row = transform_record(make_collection(), "collection")

        with pytest.raises(SourceUnavailable):
            store.insert("collection", row)

    def test_insert_if_absent_uses_on_conflict(self, store, cursor):
        cursor.fetchone.return_value = None
        row = transform_record(make_collection(), "collection")

        assert store.insert_if_absent("collection", row) is None

        query = cursor.execute.call_args.args[0]
        assert 'ON CONFLICT ("name", "version") DO NOTHING' in query


class TestCount:
    def test_count_at_or_after_cutoff(self, store, cursor):
        cursor.fetchone.return_value = (9,)

        assert store.count("rule", CUTOFF) == 9

        query, params = cursor.execute.call_args.args
        assert query == 'SELECT COUNT(*) FROM "rules" WHERE "created_at" >= %s'
        assert params == (CUTOFF,)

    def test_count_before_cutoff(self, store, cursor):
        cursor.fetchone.return_value = (3,)

        store.count("rule", CUTOFF, operator="<")

        assert '"created_at" < %s' in cursor.execute.call_args.args[0]

    def test_invalid_operator(self, store):
        with pytest.raises(ValueError):
            store.count("rule", CUTOFF, operator="; DROP TABLE rules")

    def test_query_failure_is_source_unavailable(self, store, cursor):
        cursor.execute.side_effect = psycopg2.ProgrammingError('relation "rules" does not exist')

        with pytest.raises(SourceUnavailable):
            store.count("rule", CUTOFF)

    def test_supports_only_configured_tables(self, pool):
        store = PostgresRelationalStore(pool, tables={"collection": "public.collections"})

        assert store.supports("collection")
        assert not store.supports("rule")


class TestLifecycle:
    def test_close_closes_pool(self, store, pool):
        store.close()

        pool.close.assert_called_once()

    def test_context_manager_closes(self, pool):
        with PostgresRelationalStore(pool):
            pass

        pool.close.assert_called_once()

    @patch("migration.store.PostgresConnectionPool")
    def test_create_from_settings(self, mock_pool):
        settings = PostgresSettings("db.internal", 5432, "cumulus", "cumulus", "secret")

        store = create_relational_store(settings, max_pool=5)

        assert store.pool is mock_pool.return_value
        assert mock_pool.call_args.kwargs["max_size"] == 5
        assert mock_pool.call_args.kwargs["host"] == "db.internal"

    @patch("migration.store.PostgresConnectionPool")
    def test_unreachable_database(self, mock_pool):
        mock_pool.side_effect = psycopg2.OperationalError("could not connect to server")
        settings = PostgresSettings("db.internal", 5432, "cumulus", "cumulus", "secret")

        with pytest.raises(SourceUnavailable, match="db.internal/cumulus"):
            create_relational_store(settings)
