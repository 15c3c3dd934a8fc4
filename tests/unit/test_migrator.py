"""
Unit tests for CursorMigrator

Tests verify:
- Every record a cursor yields is migrated once
- Re-running over the same table inserts nothing
- Per-record failures are isolated and counted
- Fatal errors stop the run and still close the cursor
"""

import logging
from unittest.mock import Mock

import pytest

from fakes import InMemoryRelationalStore, ListCursor, make_collection, make_rule
from migration.loader import IdempotentLoader
from migration.migrator import CursorMigrator
from migration.models import MigrationSummary, OutcomeStatus
from utils.errors import SourceUnavailable


def collections(count):
    return [make_collection(name=f"COLL{i}", version="001") for i in range(count)]


@pytest.fixture
def migrator(store, migration_metrics):
    return CursorMigrator(IdempotentLoader(store), metrics=migration_metrics)


class TestRun:
    """Test migrating a whole table"""

    def test_migrates_every_record(self, migrator, store):
        cursor = ListCursor(collections(5))

        summary = migrator.run(cursor, "collection")

        assert summary.inserted == 5
        assert summary.skipped == 0
        assert summary.failed == 0
        assert summary.processed == 5
        assert store.total("collection") == 5
        assert cursor.close_calls == 1

    def test_empty_table(self, migrator, store):
        cursor = ListCursor([])

        summary = migrator.run(cursor, "collection")

        assert summary.processed == 0
        assert store.total("collection") == 0
        assert cursor.closed

    def test_second_run_inserts_nothing(self, migrator, store):
        records = collections(4)
        migrator.run(ListCursor(records), "collection")
        rows_before = dict(store.rows["collection"])

        summary = migrator.run(ListCursor(records), "collection")

        assert summary.inserted == 0
        assert summary.skipped == 4
        assert store.rows["collection"] == rows_before

    def test_partial_previous_run_is_completed(self, migrator, store):
        records = collections(6)
        migrator.run(ListCursor(records[:2]), "collection")

        summary = migrator.run(ListCursor(records), "collection")

        assert summary.inserted == 4
        assert summary.skipped == 2
        assert store.total("collection") == 6

    def test_malformed_record_is_isolated(self, migrator, store):
        bad = make_collection(name="BROKEN", version="001")
        del bad["files"]
        records = collections(3) + [bad]

        summary = migrator.run(ListCursor(records), "collection")

        assert summary.inserted == 3
        assert summary.failed == 1
        assert store.total("collection") == 3
        failure = summary.failures[0]
        assert failure.status == OutcomeStatus.FAILED
        assert failure.identity_key == ("BROKEN", "001")
        assert "files" in failure.error

    def test_malformed_record_in_the_middle(self, migrator, store):
        bad = make_collection(name="BROKEN", version="001", createdAt="not a date")
        records = collections(2) + [bad] + [make_collection(name="LAST", version="001")]

        summary = migrator.run(ListCursor(records), "collection")

        assert summary.inserted == 3
        assert summary.failed == 1
        assert store.find("collection", ("LAST", "001")) is not None

    def test_load_error_is_isolated(self, migration_metrics):
        store = InMemoryRelationalStore(fail_on={("COLL1", "001")})
        migrator = CursorMigrator(IdempotentLoader(store), metrics=migration_metrics)

        summary = migrator.run(ListCursor(collections(3)), "collection")

        assert summary.inserted == 2
        assert summary.failed == 1
        assert "value too long" in summary.failures[0].error

    def test_failure_logged_with_identity(self, migrator, caplog):
        bad = make_rule(name="broken_rule")
        del bad["workflow"]

        with caplog.at_level(logging.ERROR, logger="migration.migrator"):
            migrator.run(ListCursor([bad]), "rule")

        assert "name=broken_rule" in caplog.text
        assert "workflow" in caplog.text

    def test_source_unavailable_stops_run_and_closes_cursor(self, migrator, store):
        cursor = ListCursor(collections(3))
        cursor.shift = Mock(side_effect=SourceUnavailable("scan failed"))

        with pytest.raises(SourceUnavailable):
            migrator.run(cursor, "collection")

        assert cursor.close_calls == 1
        assert store.total("collection") == 1

    def test_partial_tally_kept_when_run_raises(self, migrator):
        cursor = Mock()
        cursor.peek.side_effect = [collections(1)[0], SourceUnavailable("scan failed")]
        summary = MigrationSummary(entity_kind="collection")

        with pytest.raises(SourceUnavailable):
            migrator.run(cursor, "collection", summary=summary)

        assert summary.inserted == 1
        assert summary.processed == 1
        cursor.close.assert_called_once()

    def test_store_outage_stops_run(self, migration_metrics):
        store = Mock()
        store.find.side_effect = SourceUnavailable("connection refused")
        migrator = CursorMigrator(IdempotentLoader(store), metrics=migration_metrics)
        cursor = ListCursor(collections(2))

        with pytest.raises(SourceUnavailable):
            migrator.run(cursor, "collection")

        assert cursor.closed


class TestMetrics:
    """Test migration metrics are recorded"""

    def test_outcomes_counted(self, migrator, migration_metrics):
        bad = make_collection(name="BROKEN", version="001")
        del bad["process"]
        records = collections(2) + [bad]
        migrator.run(ListCursor(records), "collection")
        migrator.run(ListCursor(records[:1]), "collection")

        registry = migration_metrics.registry

        def sample(outcome):
            return registry.get_sample_value(
                "migration_records_total", {"entity_kind": "collection", "outcome": outcome}
            )

        assert sample("inserted") == 2
        assert sample("skipped") == 1
        assert sample("failed") == 1

    def test_last_run_gauge(self, migrator, migration_metrics):
        migrator.run(ListCursor(collections(3)), "collection")

        value = migration_metrics.registry.get_sample_value(
            "migration_last_run_inserted", {"entity_kind": "collection"}
        )
        assert value == 3
