"""
Metrics for the legacy-to-relational migration pipeline.

Tracks per-record outcomes and per-record processing time so a stalled or
failing migration is visible without reading logs.
"""

import logging
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from .registry import get_or_create_metric

logger = logging.getLogger(__name__)


class MigrationMetrics:
    """
    Metrics for migration runs

    Outcome labels are "inserted", "skipped" and "failed".
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize migration metrics

        Args:
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.registry = registry or REGISTRY

        self.records_total = get_or_create_metric(
            lambda: Counter(
                "migration_records_total",
                "Legacy records processed by outcome",
                ["entity_kind", "outcome"],
                registry=self.registry,
            ),
            "migration_records",
            self.registry,
        )

        self.record_seconds = get_or_create_metric(
            lambda: Histogram(
                "migration_record_seconds",
                "Time to transform and load one legacy record",
                ["entity_kind"],
                buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
                registry=self.registry,
            ),
            "migration_record_seconds",
            self.registry,
        )

        self.last_run_inserted = get_or_create_metric(
            lambda: Gauge(
                "migration_last_run_inserted",
                "Records inserted by the most recent migration run",
                ["entity_kind"],
                registry=self.registry,
            ),
            "migration_last_run_inserted",
            self.registry,
        )

    def record_outcome(self, entity_kind: str, outcome: str) -> None:
        """Count one record outcome."""
        self.records_total.labels(entity_kind=entity_kind, outcome=outcome).inc()

    def time_record(self, entity_kind: str):
        """Context manager timing one record's transform and load."""
        return self.record_seconds.labels(entity_kind=entity_kind).time()

    def record_run(self, entity_kind: str, inserted: int) -> None:
        """Publish the inserted total for a finished run."""
        self.last_run_inserted.labels(entity_kind=entity_kind).set(inserted)
        logger.debug(f"Recorded migration run for {entity_kind}: {inserted} inserted")
