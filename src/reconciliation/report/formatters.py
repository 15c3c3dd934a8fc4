"""
Report formatting and export utilities.

This module provides functions to export reconciliation reports
in various formats: JSON, CSV, and console/terminal output.
"""

import csv
import io
import json

from .generator import ReconciliationReport

CSV_HEADER = [
    "Entity Kind",
    "Status",
    "Legacy Count",
    "Relational Count",
    "Index Count",
    "Delta",
    "Index Delta",
    "Severity",
]


def _cell(value) -> str:
    return "n/a" if value is None else str(value)


def report_to_json(report: ReconciliationReport) -> str:
    """Serialize a report to a JSON document."""
    return json.dumps(report.to_dict(), indent=2, default=str)


def export_report_json(report: ReconciliationReport, output_path: str) -> None:
    """
    Export report to JSON file

    Args:
        report: Reconciliation report
        output_path: Path to output file
    """
    with open(output_path, 'w') as f:
        f.write(report_to_json(report))


def report_to_csv(report: ReconciliationReport) -> str:
    """Render one CSV row per entity kind."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_HEADER)

    for kind, drift in report.entities.items():
        writer.writerow([
            kind,
            "MATCH" if drift.in_sync else "DRIFT",
            _cell(drift.legacy_count),
            _cell(drift.relational_count),
            _cell(drift.index_count),
            _cell(drift.delta),
            _cell(drift.index_delta),
            drift.severity,
        ])

    return buffer.getvalue()


def export_report_csv(report: ReconciliationReport, output_path: str) -> None:
    """
    Export report to CSV file

    Args:
        report: Reconciliation report
        output_path: Path to output file
    """
    with open(output_path, 'w', newline='') as f:
        f.write(report_to_csv(report))


def format_report_console(report: ReconciliationReport) -> str:
    """
    Format report for console output

    Args:
        report: Reconciliation report

    Returns:
        Formatted string for console display
    """
    lines = []

    lines.append("=" * 80)
    lines.append("RECONCILIATION REPORT")
    lines.append("=" * 80)
    lines.append(f"Status: {report.status}")
    lines.append(f"Cutoff: {report.cutoff.isoformat()}")
    lines.append(f"Generated: {report.generated_at.isoformat()}")
    if report.report_uri:
        lines.append(f"Report: {report.report_uri}")
    lines.append("")

    lines.append("SUMMARY")
    lines.append("-" * 80)
    lines.append(report.summary)
    lines.append("")

    if report.entities:
        lines.append("COUNTS")
        lines.append("-" * 80)
        lines.append(
            f"{'Entity':<18}{'Legacy':>12}{'Relational':>12}{'Index':>12}"
            f"{'Delta':>10}{'Idx Delta':>11}  Severity"
        )
        for kind, drift in report.entities.items():
            lines.append(
                f"{kind:<18}{_cell(drift.legacy_count):>12}{_cell(drift.relational_count):>12}"
                f"{_cell(drift.index_count):>12}{_cell(drift.delta):>10}"
                f"{_cell(drift.index_delta):>11}  {drift.severity}"
            )
        lines.append("")

    if report.collections_not_mapped:
        lines.append("COLLECTIONS NOT MAPPED")
        lines.append("-" * 80)
        for name in report.collections_not_mapped:
            lines.append(f"  {name}")
        lines.append("")

    if report.collection_discrepancies:
        lines.append("COLLECTION DISCREPANCIES")
        lines.append("-" * 80)
        for name, details in report.collection_discrepancies.items():
            lines.append(f"  {name}: {details}")
        lines.append("")

    lines.append("=" * 80)

    return "\n".join(lines)
