"""
Reconciliation invocation entry point.

Counts every entity kind in the legacy tables, the relational store and (when
configured) the search-index mirror, builds the drift report and persists it
when a report bucket and path were both given. The relational store handle is
closed exactly once per invocation.
"""

import logging
import os
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from migration.entities import ENTITY_KINDS, default_index_names
from migration.store import RelationalStore, create_relational_store
from utils.config import InvocationConfig, load_postgres_settings
from utils.errors import SinkError
from utils.metrics import ReconciliationMetrics
from utils.tracing import trace_operation

from .aggregator import INDEX, LEGACY, RELATIONAL, CountAggregator
from .report import ReconciliationReport, ReportSink, S3ReportSink, generate_report
from .sources import (
    AT_OR_AFTER_CUTOFF,
    CountSource,
    DynamoTableCountSource,
    ElasticsearchCountSource,
    PostgresCountSource,
)

logger = logging.getLogger(__name__)


def build_index_source(config: InvocationConfig, operator: str) -> ElasticsearchCountSource | None:
    """Index-mirror source for the deployment, or None when no search endpoint is set."""
    if not config.search_url:
        return None
    return ElasticsearchCountSource(
        config.search_url,
        default_index_names(config.stack_name),
        operator=operator,
    )


def run_reconciliation(
    event: Mapping[str, Any] | None = None,
    *,
    config: InvocationConfig | None = None,
    env: Mapping[str, str] | None = None,
    entity_kinds: Iterable[str] = ENTITY_KINDS,
    store: RelationalStore | None = None,
    legacy_source: CountSource | None = None,
    index_source: CountSource | None = None,
    sink: ReportSink | None = None,
    collection_discrepancies: Mapping[str, Any] | None = None,
    collections_not_mapped: Iterable[str] = (),
    cutoff_operator: str = AT_OR_AFTER_CUTOFF,
    use_vault: bool = False,
    now: datetime | None = None,
    metrics: ReconciliationMetrics | None = None,
) -> ReconciliationReport:
    """
    Run one count reconciliation

    Args:
        event: Invocation options (dbConcurrency, dbMaxPool, reportBucket,
            reportPath, cutoffSeconds, systemBucket, stackName)
        config: Pre-built configuration; replaces event when given
        env: Environment mapping (default: os.environ)
        entity_kinds: Kinds to reconcile
        store: Relational store; opened from settings when omitted
        legacy_source: Legacy count source (default: DynamoDB tables from env)
        index_source: Index-mirror count source (default: ES_HOST when set)
        sink: Report sink (default: S3)
        collection_discrepancies: Per-collection discrepancies, reported as given
        collections_not_mapped: Collections with no relational counterpart
        cutoff_operator: ">=" counts records at or after the cutoff, "<" before
        use_vault: Fetch relational credentials from Vault
        now: Invocation time (default: current UTC time)
        metrics: Reconciliation metrics (default: global registry)

    Returns:
        ReconciliationReport, with report_uri set when it was persisted

    Raises:
        ConfigurationError: If options or environment are invalid
        SourceUnavailable: If any count could not be obtained
    """
    env = os.environ if env is None else env
    metrics = metrics or ReconciliationMetrics()
    try:
        config = config or InvocationConfig.from_event(event, env)
    except Exception:
        # A caller-supplied store belongs to this invocation as well
        if store is not None:
            store.close()
        raise

    logger.debug(f"Running reconciliation with {config}")
    cutoff = config.cutoff_instant(now)

    if store is None:
        settings = load_postgres_settings(use_vault=use_vault, env=env)
        store = create_relational_store(settings, max_pool=config.db_max_pool)

    with trace_operation("run_reconciliation", cutoff=cutoff.isoformat()) as span:
        try:
            sources: dict[str, CountSource] = {
                LEGACY: legacy_source or DynamoTableCountSource.from_env(env, operator=cutoff_operator),
                RELATIONAL: PostgresCountSource(store, cutoff_operator),
            }
            index_source = index_source or build_index_source(config, cutoff_operator)
            if index_source is not None:
                sources[INDEX] = index_source

            aggregator = CountAggregator(max_workers=config.db_concurrency, metrics=metrics)
            snapshot = aggregator.aggregate(sources, entity_kinds, cutoff)
        except Exception:
            metrics.record_run("ERROR")
            raise
        finally:
            store.close()

        report = generate_report(snapshot, collection_discrepancies, collections_not_mapped)
        span.set_attribute("status", report.status)

    logger.info(
        f"Records found in legacy store not found in relational store: "
        f"{report.records_in_legacy_not_in_relational}"
    )
    if report.records_in_index_not_in_relational:
        logger.info(
            f"Records found in index mirror not found in relational store: "
            f"{report.records_in_index_not_in_relational}"
        )
    if report.collection_discrepancies:
        logger.error(f"Collection discrepancies found: {dict(report.collection_discrepancies)}")

    destination = config.report_destination
    if destination is not None:
        sink = sink or S3ReportSink()
        try:
            report = report.with_location(sink.persist(destination, report))
        except SinkError as e:
            logger.error(f"Failed to persist reconciliation report: {e}")

    for kind, drift in report.entities.items():
        if drift.delta is not None:
            metrics.record_drift(kind, "legacy_vs_relational", drift.delta)
        if drift.index_delta is not None:
            metrics.record_drift(kind, "index_vs_relational", drift.index_delta)
    metrics.record_run(report.status)

    logger.info("Execution complete")
    return report
