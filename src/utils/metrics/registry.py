"""
Safe metric registration helpers.
"""

import logging
from typing import Callable, TypeVar

from prometheus_client import REGISTRY, CollectorRegistry, start_http_server

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Create a metric, or return the one already registered under the name.

    Registering the same metric name twice in one registry raises
    ValueError; this happens whenever a metrics holder is instantiated more
    than once per process (tests, scheduled runs).

    Example:
        RUNS = get_or_create_metric(
            lambda: Counter("reconciliation_runs_total", "Runs", ["status"]),
            "reconciliation_runs_total",
        )
    """
    try:
        return metric_factory()
    except ValueError:
        existing = registry._names_to_collectors.get(metric_name)
        if existing is not None:
            return existing
        raise


def start_metrics_server(port: int = 9091) -> None:
    """Expose the default registry over HTTP for scraping."""
    logger.info(f"Starting metrics server on port {port}")
    start_http_server(port)
