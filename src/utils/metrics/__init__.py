"""
Prometheus metrics for migration and reconciliation runs.

Usage:
    from utils.metrics import MigrationMetrics, ReconciliationMetrics

    migration_metrics = MigrationMetrics()
    migration_metrics.record_outcome("collection", "inserted")

    recon_metrics = ReconciliationMetrics()
    recon_metrics.record_drift("provider", "legacy_vs_relational", 3)
"""

from .migration import MigrationMetrics
from .reconciliation import ReconciliationMetrics
from .registry import get_or_create_metric, start_metrics_server

__all__ = [
    "MigrationMetrics",
    "ReconciliationMetrics",
    "get_or_create_metric",
    "start_metrics_server",
]
