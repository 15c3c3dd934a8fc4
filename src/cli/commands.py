"""
CLI command implementations.

Each command returns the process exit code:
- 0: success (and, for reconcile, no drift)
- 1: reconcile found drift
- 2: the run failed (configuration, unreachable source, unreadable report)
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from migration import run_migration
from migration.entities import parse_entity_kinds
from reconciliation.handler import run_reconciliation
from reconciliation.report import (
    ReconciliationReport,
    ReportStatus,
    export_report_csv,
    export_report_json,
    format_report_console,
)
from reconciliation.scheduler import ReconciliationScheduler, reconcile_job_wrapper
from reconciliation.sources import AT_OR_AFTER_CUTOFF, BEFORE_CUTOFF
from utils.errors import MigrationToolError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DRIFT = 1
EXIT_FAILURE = 2

EVENT_OPTIONS = {
    "db_concurrency": "dbConcurrency",
    "db_max_pool": "dbMaxPool",
    "cutoff_seconds": "cutoffSeconds",
    "report_bucket": "reportBucket",
    "report_path": "reportPath",
    "system_bucket": "systemBucket",
    "stack_name": "stackName",
}


def build_event(args: argparse.Namespace) -> dict[str, Any]:
    """Translate CLI options into an invocation event."""
    return {
        key: getattr(args, option)
        for option, key in EVENT_OPTIONS.items()
        if getattr(args, option, None) is not None
    }


def _cutoff_operator(args: argparse.Namespace) -> str:
    return BEFORE_CUTOFF if getattr(args, "count_before_cutoff", False) else AT_OR_AFTER_CUTOFF


def write_report(report: ReconciliationReport, output: str | None, output_format: str) -> None:
    """Print or export a report in the requested format."""
    if not output or output_format == "console":
        print(format_report_console(report))
        return

    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_format == "json":
        export_report_json(report, str(output_path))
    else:
        export_report_csv(report, str(output_path))
    logger.info(f"Report saved to {output_path}")


def cmd_migrate(args: argparse.Namespace) -> int:
    """
    Migrate legacy records

    Args:
        args: Parsed command-line arguments
    """
    event = build_event(args)
    try:
        inserted = run_migration(
            event,
            entity_kinds=parse_entity_kinds(args.entity_kinds),
            atomic=args.atomic,
            use_vault=args.use_vault,
            page_size=args.page_size,
        )
    except (MigrationToolError, ValueError) as e:
        logger.error(f"Migration failed: {e}")
        return EXIT_FAILURE

    print(f"Inserted {inserted} records")
    return EXIT_OK


def cmd_reconcile(args: argparse.Namespace) -> int:
    """
    Run a one-time count reconciliation

    Args:
        args: Parsed command-line arguments
    """
    logger.info("Starting reconciliation run")

    try:
        collection_discrepancies = None
        if args.collection_discrepancies:
            with open(args.collection_discrepancies) as f:
                collection_discrepancies = json.load(f)

        report = run_reconciliation(
            build_event(args),
            entity_kinds=parse_entity_kinds(args.entity_kinds),
            collection_discrepancies=collection_discrepancies,
            cutoff_operator=_cutoff_operator(args),
            use_vault=args.use_vault,
        )
        write_report(report, args.output, args.format)
    except (MigrationToolError, OSError, ValueError) as e:
        logger.error(f"Reconciliation failed: {e}")
        return EXIT_FAILURE

    if report.status == ReportStatus.FAIL:
        logger.warning("Reconciliation found drift")
        return EXIT_DRIFT

    logger.info("Reconciliation completed successfully")
    return EXIT_OK


def cmd_schedule(args: argparse.Namespace) -> int:
    """
    Schedule periodic reconciliation

    Args:
        args: Parsed command-line arguments
    """
    logger.info("Setting up reconciliation scheduler")

    output_dir = args.output_dir or "./reconciliation_reports"
    job_kwargs = {
        "event": build_event(args),
        "output_dir": output_dir,
        "use_vault": args.use_vault,
        "cutoff_operator": _cutoff_operator(args),
    }

    scheduler = ReconciliationScheduler()
    try:
        if args.cron:
            scheduler.add_cron_job(reconcile_job_wrapper, args.cron, "reconciliation_job", **job_kwargs)
            logger.info(f"Scheduled reconciliation with cron: {args.cron}")
        else:
            scheduler.add_interval_job(
                reconcile_job_wrapper, args.interval, "reconciliation_job", **job_kwargs
            )
            logger.info(f"Scheduled reconciliation every {args.interval} seconds")
    except ValueError as e:
        logger.error(f"Invalid schedule: {e}")
        return EXIT_FAILURE

    logger.info("Starting scheduler (press Ctrl+C to stop)")
    scheduler.start()
    return EXIT_OK


def cmd_report(args: argparse.Namespace) -> int:
    """
    Render a saved reconciliation report

    Args:
        args: Parsed command-line arguments
    """
    logger.info(f"Loading reconciliation report from {args.input}")

    if args.format in ("csv", "json") and not args.output:
        logger.error(f"Output file required for {args.format.upper()} format")
        return EXIT_FAILURE

    try:
        with open(args.input) as f:
            report = ReconciliationReport.from_dict(json.load(f))
        write_report(report, args.output, args.format)
    except (OSError, ValueError, KeyError) as e:
        logger.error(f"Failed to process report: {e}")
        return EXIT_FAILURE

    return EXIT_OK
