"""
Migration invocation entry point.

Resolves the legacy table for each requested entity kind, opens the
relational store once, migrates the tables in order and closes the store
exactly once whatever happens.
"""

import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any

from migration.cursor import DynamoDbSearchQueue
from migration.entities import ENTITY_KINDS, LEGACY_TABLE_ENV_VARS, validate_entity_kind
from migration.loader import IdempotentLoader
from migration.migrator import CursorMigrator
from migration.models import MigrationSummary
from migration.store import RelationalStore, create_relational_store
from utils.config import DEFAULT_DB_MAX_POOL, get_required_env_var, load_postgres_settings, validate_event
from utils.metrics import MigrationMetrics
from utils.tracing import trace_operation

logger = logging.getLogger(__name__)


def resolve_legacy_tables(
    entity_kinds: Iterable[str],
    env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Map entity kinds to legacy table names from the environment

    Raises:
        ConfigurationError: If a kind's table variable is unset
    """
    return {
        kind: get_required_env_var(LEGACY_TABLE_ENV_VARS[validate_entity_kind(kind)], env)
        for kind in entity_kinds
    }


def format_summaries(summaries: Mapping[str, MigrationSummary]) -> str:
    lines = ["Migration summary:"]
    if not summaries:
        lines.append("  no tables migrated")
    for kind, summary in summaries.items():
        lines.append(
            f"  {kind}: {summary.inserted} inserted, {summary.skipped} skipped, "
            f"{summary.failed} failed"
        )
    return "\n".join(lines)


def run_migration(
    event: Mapping[str, Any] | None = None,
    *,
    entity_kinds: Iterable[str] = ENTITY_KINDS,
    env: Mapping[str, str] | None = None,
    store: RelationalStore | None = None,
    dynamodb_client: Any = None,
    atomic: bool = False,
    use_vault: bool = False,
    page_size: int | None = None,
    metrics: MigrationMetrics | None = None,
) -> int:
    """
    Migrate legacy entity tables into the relational store

    Args:
        event: Invocation options (dbMaxPool is honoured)
        entity_kinds: Kinds to migrate, in order
        env: Environment mapping (default: os.environ)
        store: Relational store; opened from settings when omitted
        dynamodb_client: boto3 DynamoDB client for the cursors
        atomic: Use INSERT ... ON CONFLICT DO NOTHING instead of find-then-insert
        use_vault: Fetch relational credentials from Vault
        page_size: Optional scan page size
        metrics: Migration metrics (default: global registry)

    Returns:
        Total number of rows inserted across all kinds

    Raises:
        ConfigurationError: If options or environment are invalid
        SourceUnavailable: If the legacy or relational store is unreachable
    """
    env = os.environ if env is None else env
    summaries: dict[str, MigrationSummary] = {}
    try:
        event = validate_event(event)
        tables = resolve_legacy_tables(entity_kinds, env)

        if store is None:
            settings = load_postgres_settings(use_vault=use_vault, env=env)
            store = create_relational_store(
                settings, max_pool=event.get("dbMaxPool", DEFAULT_DB_MAX_POOL)
            )

        migrator = CursorMigrator(IdempotentLoader(store, atomic=atomic), metrics=metrics)
        with trace_operation("run_migration", entity_kinds=",".join(tables)):
            for kind, table_name in tables.items():
                logger.info(f"Migrating {kind} records from {table_name}")
                summaries[kind] = MigrationSummary(entity_kind=kind)
                cursor = DynamoDbSearchQueue(table_name, client=dynamodb_client, page_size=page_size)
                migrator.run(cursor, kind, summary=summaries[kind])
    except Exception as e:
        logger.error(f"Migration stopped: {type(e).__name__}: {e}")
        raise
    finally:
        # A caller-supplied store belongs to this invocation as well
        if store is not None:
            store.close()
        logger.info(format_summaries(summaries))

    return sum(summary.inserted for summary in summaries.values())
