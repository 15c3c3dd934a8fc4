"""
Legacy DynamoDB table counts.
"""

import logging
import os
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from opentelemetry import trace

from migration.cursor import scan_page
from migration.entities import LEGACY_TABLE_ENV_VARS
from utils.errors import SourceUnavailable
from utils.tracing import trace_operation

from .base import AT_OR_AFTER_CUTOFF, CountSource, validate_cutoff_operator

logger = logging.getLogger(__name__)


class DynamoTableCountSource(CountSource):
    """
    Counts legacy table items with a paginated COUNT scan.

    The scan filters on the item's epoch-millisecond timestamp attribute so the
    legacy side of a comparison covers the same window as the relational
    created_at count. Items without the attribute never match the filter.
    """

    name = "legacy"

    def __init__(
        self,
        tables: Mapping[str, str],
        client: Any = None,
        operator: str = AT_OR_AFTER_CUTOFF,
        timestamp_attribute: str = "createdAt",
    ):
        """
        Args:
            tables: Entity kind -> legacy table name
            client: boto3 DynamoDB client (created when omitted)
            operator: ">=" counts items at or after the cutoff, "<" before it
            timestamp_attribute: Item attribute compared with the cutoff
        """
        self.tables = dict(tables)
        self.client = client or boto3.client("dynamodb")
        self.operator = validate_cutoff_operator(operator)
        self.timestamp_attribute = timestamp_attribute

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        client: Any = None,
        operator: str = AT_OR_AFTER_CUTOFF,
    ) -> "DynamoTableCountSource":
        """Build from the *Table environment variables; unset kinds are unsupported."""
        env = os.environ if env is None else env
        tables = {
            kind: env[var] for kind, var in LEGACY_TABLE_ENV_VARS.items() if env.get(var)
        }
        return cls(tables, client=client, operator=operator)

    def supports(self, entity_kind: str) -> bool:
        return entity_kind in self.tables

    def build_scan_kwargs(self, table_name: str, cutoff: datetime) -> dict[str, Any]:
        cutoff_ms = int(cutoff.timestamp() * 1000)
        return {
            "TableName": table_name,
            "Select": "COUNT",
            "FilterExpression": f"#ts {self.operator} :cutoff",
            "ExpressionAttributeNames": {"#ts": self.timestamp_attribute},
            "ExpressionAttributeValues": {":cutoff": {"N": str(cutoff_ms)}},
        }

    def count(self, entity_kind: str, cutoff: datetime) -> int:
        table_name = self.tables[entity_kind]
        scan_kwargs = self.build_scan_kwargs(table_name, cutoff)
        total = 0

        with trace_operation(
            "legacy_count",
            kind=trace.SpanKind.CLIENT,
            entity_kind=entity_kind,
            table=table_name,
        ):
            try:
                response = scan_page(self.client, **scan_kwargs)
                total += response.get("Count", 0)

                while "LastEvaluatedKey" in response:
                    scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
                    response = scan_page(self.client, **scan_kwargs)
                    total += response.get("Count", 0)
            except (ClientError, BotoCoreError) as e:
                raise SourceUnavailable(f"Error counting legacy table {table_name}: {e}") from e

        logger.debug(
            f"Legacy table {table_name} holds {total} {entity_kind} records "
            f"with {self.timestamp_attribute} {self.operator} {cutoff.isoformat()}"
        )
        return total
