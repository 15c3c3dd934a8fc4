"""
Metrics for count reconciliation runs.

Tracks run outcomes, per-entity drift and count query latency per source.
"""

import logging
import time
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from .registry import get_or_create_metric

logger = logging.getLogger(__name__)


class ReconciliationMetrics:
    """
    Metrics for reconciliation runs

    Drift gauges are labelled by entity kind and comparison
    ("legacy_vs_relational" or "index_vs_relational").
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize reconciliation metrics

        Args:
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.registry = registry or REGISTRY

        self.runs_total = get_or_create_metric(
            lambda: Counter(
                "reconciliation_runs_total",
                "Total number of reconciliation runs",
                ["status"],
                registry=self.registry,
            ),
            "reconciliation_runs",
            self.registry,
        )

        self.drift_records = get_or_create_metric(
            lambda: Gauge(
                "reconciliation_drift_records",
                "Count difference between stores for an entity kind",
                ["entity_kind", "comparison"],
                registry=self.registry,
            ),
            "reconciliation_drift_records",
            self.registry,
        )

        self.count_seconds = get_or_create_metric(
            lambda: Histogram(
                "reconciliation_count_seconds",
                "Time to obtain one entity count from a source",
                ["source"],
                buckets=(0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30, 60, 300),
                registry=self.registry,
            ),
            "reconciliation_count_seconds",
            self.registry,
        )

        self.last_run_timestamp = get_or_create_metric(
            lambda: Gauge(
                "reconciliation_last_run_timestamp",
                "Unix timestamp of the last completed reconciliation",
                registry=self.registry,
            ),
            "reconciliation_last_run_timestamp",
            self.registry,
        )

    def record_run(self, status: str) -> None:
        """Count a finished (or failed) run by status."""
        self.runs_total.labels(status=status).inc()
        if status != "ERROR":
            self.last_run_timestamp.set(time.time())

    def record_drift(self, entity_kind: str, comparison: str, delta: int) -> None:
        """Publish a drift value."""
        self.drift_records.labels(entity_kind=entity_kind, comparison=comparison).set(delta)

    def observe_count(self, source: str, duration: float) -> None:
        """Record how long a count query took."""
        self.count_seconds.labels(source=source).observe(duration)
