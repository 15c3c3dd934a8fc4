"""
Cursor-driven migration of one legacy table.

Records are transformed and loaded one at a time. A record that fails
validation or loading is logged with its identity and counted as failed;
the scan continues. Only SourceUnavailable stops the table.
"""

import logging
from typing import Any, Protocol

from migration.loader import IdempotentLoader
from migration.models import MigrationOutcome, MigrationSummary
from migration.transformers import RecordTransformer
from utils.errors import LoadError, ValidationError
from utils.logging import ContextLogger
from utils.metrics import MigrationMetrics
from utils.tracing import trace_operation

logger = logging.getLogger(__name__)


class LegacyCursor(Protocol):
    def peek(self) -> dict[str, Any] | None: ...

    def shift(self) -> dict[str, Any] | None: ...

    def close(self) -> None: ...


class CursorMigrator:
    """
    Migrates a legacy table to exhaustion.

    Example:
        migrator = CursorMigrator(IdempotentLoader(store))
        summary = migrator.run(DynamoDbSearchQueue(table_name), "collection")
        print(summary.inserted)
    """

    def __init__(
        self,
        loader: IdempotentLoader,
        transformer: RecordTransformer | None = None,
        metrics: MigrationMetrics | None = None,
    ):
        self.loader = loader
        self.transformer = transformer or RecordTransformer()
        self.metrics = metrics or MigrationMetrics()

    def run(
        self,
        cursor: LegacyCursor,
        entity_kind: str,
        summary: MigrationSummary | None = None,
    ) -> MigrationSummary:
        """
        Migrate every record the cursor yields

        Args:
            cursor: Legacy cursor positioned at the start of the table
            entity_kind: Kind of the records in the table
            summary: Tally to accumulate into; it keeps the partial counts
                when the run raises

        Returns:
            MigrationSummary; its inserted count is the success count

        Raises:
            SourceUnavailable: If the cursor or the store become unreachable
        """
        if summary is None:
            summary = MigrationSummary(entity_kind=entity_kind)

        with trace_operation("migrate_table", entity_kind=entity_kind) as span:
            try:
                record = cursor.peek()
                while record is not None:
                    summary.add(self.migrate_record(record, entity_kind))
                    cursor.shift()
                    record = cursor.peek()
            finally:
                cursor.close()

            span.set_attribute("inserted", summary.inserted)
            span.set_attribute("skipped", summary.skipped)
            span.set_attribute("failed", summary.failed)

        self.metrics.record_run(entity_kind, summary.inserted)
        logger.info(
            f"Successfully migrated {summary.inserted} {entity_kind} records "
            f"({summary.skipped} skipped, {summary.failed} failed)"
        )
        return summary

    def migrate_record(self, record: dict[str, Any], entity_kind: str) -> MigrationOutcome:
        """Transform and load one record, isolating per-record failures."""
        mapping = self.transformer.mapping_for(entity_kind)
        identity_key = mapping.source_identity(record)
        record_logger = ContextLogger(
            __name__,
            entity_kind=entity_kind,
            identity=mapping.describe_identity(identity_key),
        )

        with self.metrics.time_record(entity_kind):
            try:
                row = self.transformer.transform(record, entity_kind)
                outcome = self.loader.load(row)
            except (ValidationError, LoadError) as e:
                record_logger.error(
                    f"Could not create {entity_kind} record in relational store "
                    f"for legacy record {mapping.describe_identity(identity_key)}: {e}",
                    error_type=type(e).__name__,
                )
                outcome = MigrationOutcome.failed(entity_kind, identity_key, str(e))

        self.metrics.record_outcome(entity_kind, outcome.status.value)
        return outcome
