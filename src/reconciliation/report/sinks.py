"""
Report persistence.

A sink stores a report under a destination and returns where it went.
Failures surface as SinkError so the caller can still return the report
it already holds.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from utils.errors import SinkError

from .formatters import report_to_json
from .generator import ReconciliationReport

logger = logging.getLogger(__name__)


def report_name(report: ReconciliationReport) -> str:
    """reconcileReport-<cutoff as epoch milliseconds>"""
    return f"reconcileReport-{int(report.cutoff.timestamp() * 1000)}"


def build_report_key(path: str, report: ReconciliationReport) -> str:
    parts = [part for part in path.strip("/").split("/") if part]
    return "/".join(parts + [report_name(report)])


class ReportSink(ABC):
    """Destination for reconciliation reports."""

    @abstractmethod
    def persist(self, destination: Any, report: ReconciliationReport) -> str:
        """
        Store a report

        Args:
            destination: Sink-specific destination
            report: Report to store

        Returns:
            Location of the stored report

        Raises:
            SinkError: If the report could not be stored
        """


class S3ReportSink(ReportSink):
    """Writes JSON reports to s3://<bucket>/<path>/reconcileReport-<cutoff ms>."""

    def __init__(self, client: Any = None):
        self.client = client or boto3.client("s3")

    def persist(self, destination: tuple[str, str], report: ReconciliationReport) -> str:
        bucket, path = destination
        key = build_report_key(path, report)
        uri = f"s3://{bucket}/{key}"

        # The stored copy names its own location
        try:
            self.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=report_to_json(report.with_location(uri)).encode("utf-8"),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise SinkError(f"Could not write report to {uri}: {e}") from e

        logger.info(f"Reconciliation report written to {uri}")
        return uri


class LocalFileReportSink(ReportSink):
    """Writes JSON reports into a local directory."""

    def persist(self, destination: str, report: ReconciliationReport) -> str:
        path = os.path.join(destination, f"{report_name(report)}.json")

        try:
            os.makedirs(destination, exist_ok=True)
            with open(path, "w") as f:
                f.write(report_to_json(report))
        except OSError as e:
            raise SinkError(f"Could not write report to {path}: {e}") from e

        logger.info(f"Reconciliation report written to {path}")
        return path
