"""
Count reconciliation between the legacy tables, the relational store and the
search-index mirror

Components:
- sources: Count sources per store
- aggregator: Concurrent count fan-out into a snapshot
- report: Drift report generation, formatting and persistence
- scheduler: Periodic reconciliation

Usage:
    from reconciliation import run_reconciliation

    report = run_reconciliation({"cutoffSeconds": 3600})
    print(report.records_in_legacy_not_in_relational)
"""

from .handler import run_reconciliation

__version__ = "1.0.0"
__all__ = ["run_reconciliation", "sources", "aggregator", "report", "scheduler"]
