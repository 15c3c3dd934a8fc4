"""
Idempotent loading of target rows.

Guarantees at most one relational row per identity key. In the default mode
the loader looks the key up and inserts when it is absent. That pair of
statements is not atomic: two concurrent writers could both see the key as
absent. A unique violation from the insert is therefore treated as "already
migrated". With atomic=True the loader uses a single
INSERT ... ON CONFLICT DO NOTHING statement instead.
"""

import logging

from opentelemetry import trace

from migration.models import MigrationOutcome, TargetRow
from migration.store import RelationalStore
from utils.errors import DuplicateRowError
from utils.tracing import trace_operation

logger = logging.getLogger(__name__)


class IdempotentLoader:
    """
    Loads target rows into a RelationalStore, skipping existing identities.

    Raises LoadError for insert failures other than duplicates and lets
    SourceUnavailable propagate.
    """

    def __init__(self, store: RelationalStore, atomic: bool = False):
        self.store = store
        self.atomic = atomic

    def load(self, row: TargetRow) -> MigrationOutcome:
        """
        Load one row

        Args:
            row: Transformed target row

        Returns:
            Inserted outcome with the surrogate id, or Skipped when a row with
            the same identity key already exists
        """
        with trace_operation(
            "load_row",
            kind=trace.SpanKind.INTERNAL,
            entity_kind=row.entity_kind,
            atomic=self.atomic,
        ) as span:
            if self.atomic:
                outcome = self._load_atomic(row)
            else:
                outcome = self._load_checked(row)
            span.set_attribute("outcome", outcome.status.value)
            return outcome

    def _load_checked(self, row: TargetRow) -> MigrationOutcome:
        existing = self.store.find(row.entity_kind, row.identity_key)
        if existing is not None:
            logger.info(
                f"{row.entity_kind} {row.identity_key} was already migrated, skipping"
            )
            return MigrationOutcome.skipped(row.entity_kind, row.identity_key)

        try:
            surrogate_id = self.store.insert(row.entity_kind, row)
        except DuplicateRowError:
            logger.warning(
                f"{row.entity_kind} {row.identity_key} was inserted concurrently, skipping"
            )
            return MigrationOutcome.skipped(row.entity_kind, row.identity_key)

        return MigrationOutcome.inserted(row.entity_kind, row.identity_key, surrogate_id)

    def _load_atomic(self, row: TargetRow) -> MigrationOutcome:
        surrogate_id = self.store.insert_if_absent(row.entity_kind, row)
        if surrogate_id is None:
            logger.info(
                f"{row.entity_kind} {row.identity_key} was already migrated, skipping"
            )
            return MigrationOutcome.skipped(row.entity_kind, row.identity_key)

        return MigrationOutcome.inserted(row.entity_kind, row.identity_key, surrogate_id)
