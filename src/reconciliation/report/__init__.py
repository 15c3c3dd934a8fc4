"""
Reconciliation report generation, formatting and persistence.
"""

from .formatters import (
    CSV_HEADER,
    export_report_csv,
    export_report_json,
    format_report_console,
    report_to_csv,
    report_to_json,
)
from .generator import (
    EntityDrift,
    ReconciliationReport,
    ReportStatus,
    _calculate_severity,
    format_timestamp,
    generate_report,
)
from .sinks import LocalFileReportSink, ReportSink, S3ReportSink, build_report_key, report_name

__all__ = [
    'generate_report',
    'format_timestamp',
    'EntityDrift',
    'ReconciliationReport',
    'ReportStatus',
    'export_report_json',
    'export_report_csv',
    'format_report_console',
    'report_to_json',
    'report_to_csv',
    'CSV_HEADER',
    'ReportSink',
    'S3ReportSink',
    'LocalFileReportSink',
    'build_report_key',
    'report_name',
    '_calculate_severity',
]
