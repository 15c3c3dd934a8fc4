"""
Reconciliation scheduler module

Periodic count reconciliation using APScheduler.
"""

from .jobs import reconcile_job_wrapper
from .scheduler import ReconciliationScheduler

__all__ = [
    'ReconciliationScheduler',
    'reconcile_job_wrapper',
]
