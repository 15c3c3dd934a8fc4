"""
Command-line interface for legacy migration and count reconciliation.

Available commands:
- migrate: Migrate legacy records into the relational store
- reconcile: Execute one count reconciliation
- schedule: Set up periodic reconciliation jobs
- report: Render a saved report
"""

import sys

from utils.logging import setup_logging
from utils.metrics import start_metrics_server
from utils.tracing import initialize_tracing, shutdown_tracing

from .commands import cmd_migrate, cmd_reconcile, cmd_report, cmd_schedule
from .parser import create_parser

COMMANDS = {
    'migrate': cmd_migrate,
    'reconcile': cmd_reconcile,
    'schedule': cmd_schedule,
    'report': cmd_report,
}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the legacy-pg-migrate CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == 'schedule' and args.cron is None and args.interval <= 0:
        parser.error("--interval must be positive when --cron is not given")

    setup_logging(level=args.log_level, log_file=args.log_file, json_format=args.json_logs)

    if args.metrics_port:
        start_metrics_server(args.metrics_port)
    if args.otlp_endpoint:
        initialize_tracing(otlp_endpoint=args.otlp_endpoint)

    try:
        exit_code = command(args)
    finally:
        if args.otlp_endpoint:
            shutdown_tracing()

    sys.exit(exit_code)


__all__ = [
    'main',
    'cmd_migrate',
    'cmd_reconcile',
    'cmd_schedule',
    'cmd_report',
    'create_parser',
]


if __name__ == '__main__':
    main()
