"""
Relational store counts.
"""

from datetime import datetime

from migration.store import RelationalStore

from .base import AT_OR_AFTER_CUTOFF, CountSource, validate_cutoff_operator


class PostgresCountSource(CountSource):
    """Counts relational rows relative to the cutoff on created_at."""

    name = "relational"

    def __init__(self, store: RelationalStore, operator: str = AT_OR_AFTER_CUTOFF):
        self.store = store
        self.operator = validate_cutoff_operator(operator)

    def supports(self, entity_kind: str) -> bool:
        return self.store.supports(entity_kind)

    def count(self, entity_kind: str, cutoff: datetime) -> int:
        return self.store.count(entity_kind, cutoff, self.operator)
