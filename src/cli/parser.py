"""
Command-line argument parser configuration.
"""

import argparse

from migration.entities import ENTITY_KINDS


def _add_event_options(parser: argparse.ArgumentParser) -> None:
    """Options mirroring the reconciliation invocation event."""
    parser.add_argument('--entity-kinds', help=f"Comma-separated kinds (default: {','.join(ENTITY_KINDS)})")
    parser.add_argument('--db-concurrency', type=int, help='Max concurrent count queries (default: 20)')
    parser.add_argument('--db-max-pool', type=int, help='Max relational connections (default: 20)')
    parser.add_argument('--cutoff-seconds', type=int, help='Count window offset in seconds (default: 3600)')
    parser.add_argument('--report-bucket', help='S3 bucket for the report')
    parser.add_argument('--report-path', help='S3 key prefix for the report')
    parser.add_argument('--system-bucket', help='Deployment system bucket (default: $system_bucket)')
    parser.add_argument('--stack-name', help='Deployment stack name (default: $prefix)')
    parser.add_argument(
        '--count-before-cutoff',
        action='store_true',
        help='Count records created before the cutoff instead of at or after it'
    )
    parser.add_argument(
        '--use-vault',
        action='store_true',
        help='Fetch relational store credentials from HashiCorp Vault'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="legacy-pg-migrate",
        description="Legacy DynamoDB to PostgreSQL migration and count reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Migrate every entity kind
  legacy-pg-migrate migrate

  # Migrate collections only, using INSERT ... ON CONFLICT DO NOTHING
  legacy-pg-migrate migrate --entity-kinds collection --atomic

  # Reconcile counts and write the report to S3
  legacy-pg-migrate reconcile --report-bucket my-bucket --report-path reports

  # Reconcile with a two-hour cutoff and save a CSV
  legacy-pg-migrate reconcile --cutoff-seconds 7200 --output counts.csv --format csv

  # Schedule reconciliation every 6 hours
  legacy-pg-migrate schedule --cron "0 */6 * * *" --output-dir ./reports

  # Re-render a saved report
  legacy-pg-migrate report --input reconcileReport-1700000000000.json --format console
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )
    parser.add_argument('--log-file', help='Also log to this file (rotated)')
    parser.add_argument('--json-logs', action='store_true', help='Emit JSON log lines')
    parser.add_argument('--metrics-port', type=int, help='Expose Prometheus metrics on this port')
    parser.add_argument('--otlp-endpoint', help='Export traces to this OTLP endpoint')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========== Migrate command ==========
    migrate_parser = subparsers.add_parser('migrate', help='Migrate legacy records')
    migrate_parser.add_argument('--entity-kinds', help=f"Comma-separated kinds (default: {','.join(ENTITY_KINDS)})")
    migrate_parser.add_argument('--db-max-pool', type=int, help='Max relational connections (default: 20)')
    migrate_parser.add_argument('--page-size', type=int, help='Legacy scan page size')
    migrate_parser.add_argument(
        '--atomic',
        action='store_true',
        help='Insert with ON CONFLICT DO NOTHING instead of find-then-insert'
    )
    migrate_parser.add_argument(
        '--use-vault',
        action='store_true',
        help='Fetch relational store credentials from HashiCorp Vault'
    )

    # ========== Reconcile command ==========
    reconcile_parser = subparsers.add_parser('reconcile', help='Run one count reconciliation')
    _add_event_options(reconcile_parser)
    reconcile_parser.add_argument(
        '--collection-discrepancies',
        help='JSON file of per-collection discrepancies to include in the report'
    )
    reconcile_parser.add_argument('--output', help='Output file path for report')
    reconcile_parser.add_argument(
        '--format',
        choices=['console', 'json', 'csv'],
        default='console',
        help='Output format (default: console)'
    )

    # ========== Schedule command ==========
    schedule_parser = subparsers.add_parser('schedule', help='Schedule periodic reconciliation')
    _add_event_options(schedule_parser)
    schedule_parser.add_argument(
        '--cron',
        help='Cron expression (e.g., "0 */6 * * *" for every 6 hours)'
    )
    schedule_parser.add_argument(
        '--interval',
        type=int,
        default=3600,
        help='Interval in seconds (default: 3600 = 1 hour)'
    )
    schedule_parser.add_argument(
        '--output-dir',
        help='Directory to save reconciliation reports'
    )

    # ========== Report command ==========
    report_parser = subparsers.add_parser('report', help='Render a saved reconciliation report')
    report_parser.add_argument(
        '--input',
        required=True,
        help='Input JSON report file'
    )
    report_parser.add_argument(
        '--format',
        choices=['console', 'json', 'csv'],
        default='console',
        help='Output format (default: console)'
    )
    report_parser.add_argument(
        '--output',
        help='Output file path (required for json and csv formats)'
    )

    return parser
