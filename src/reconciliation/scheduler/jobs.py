"""
Scheduled reconciliation job.
"""

import logging
from collections.abc import Mapping
from typing import Any

from utils.errors import MigrationToolError

from ..handler import run_reconciliation
from ..report import LocalFileReportSink

logger = logging.getLogger(__name__)


def reconcile_job_wrapper(
    event: Mapping[str, Any] | None = None,
    output_dir: str | None = None,
    use_vault: bool = False,
    cutoff_operator: str = ">=",
) -> None:
    """
    Run one reconciliation from the scheduler.

    Reports go to S3 when the event names a report bucket and path, and are
    also written to output_dir when one is given. Errors are logged and
    re-raised so APScheduler records the failed run.

    Args:
        event: Invocation options
        output_dir: Local directory for JSON reports
        use_vault: Fetch relational credentials from Vault
        cutoff_operator: ">=" or "<"
    """
    logger.info("Starting scheduled reconciliation")

    try:
        report = run_reconciliation(
            event,
            use_vault=use_vault,
            cutoff_operator=cutoff_operator,
        )
    except MigrationToolError as e:
        logger.error(f"Reconciliation job failed: {e}")
        raise

    if output_dir:
        location = LocalFileReportSink().persist(output_dir, report)
        logger.info(f"Reconciliation report saved to {location}")

    logger.info(f"Reconciliation complete. Status: {report.status}")
