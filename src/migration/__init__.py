"""
Legacy DynamoDB -> PostgreSQL entity migration.

Usage:
    from migration import run_migration

    inserted = run_migration({"dbMaxPool": 10}, entity_kinds=["collection"])
"""

from .entities import ENTITY_KINDS
from .handler import run_migration
from .loader import IdempotentLoader
from .migrator import CursorMigrator
from .models import MigrationOutcome, MigrationSummary, OutcomeStatus, TargetRow
from .store import PostgresRelationalStore, RelationalStore

__all__ = [
    "ENTITY_KINDS",
    "run_migration",
    "IdempotentLoader",
    "CursorMigrator",
    "MigrationOutcome",
    "MigrationSummary",
    "OutcomeStatus",
    "TargetRow",
    "RelationalStore",
    "PostgresRelationalStore",
]
