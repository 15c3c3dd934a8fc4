"""
Forward-only cursor over a legacy DynamoDB table.

Holds at most one scan page in memory. Items are deserialized from the
DynamoDB wire format and numbers are normalised from Decimal to int/float,
so the transformer never sees boto3 types.
"""

import logging
from collections import deque
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import Binary, TypeDeserializer
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from utils.errors import SourceUnavailable
from utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

THROTTLING_ERROR_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
    }
)


class ThrottledScanError(ClientError):
    """A scan rejected by DynamoDB throttling."""

    pass


TRANSIENT_SCAN_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ReadTimeoutError,
    ThrottledScanError,
)

_deserializer = TypeDeserializer()


@retry_with_backoff(max_retries=3, base_delay=0.5, retryable_exceptions=TRANSIENT_SCAN_ERRORS)
def scan_page(client: Any, **scan_kwargs) -> dict[str, Any]:
    """Issue one scan request, retrying throttling and transient connection failures."""
    try:
        return client.scan(**scan_kwargs)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") in THROTTLING_ERROR_CODES:
            raise ThrottledScanError(e.response, e.operation_name) from e
        raise


def normalize_value(value: Any) -> Any:
    """Convert boto3 types (Decimal, set, Binary) into plain Python values."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: normalize_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [normalize_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(normalize_value(item) for item in value)
    if isinstance(value, Binary):
        return bytes(value.value)
    return value


def deserialize_item(item: dict[str, Any]) -> dict[str, Any]:
    """Turn a DynamoDB wire-format item into a plain dict."""
    return {key: normalize_value(_deserializer.deserialize(value)) for key, value in item.items()}


class DynamoDbSearchQueue:
    """
    Legacy store cursor with peek()/shift() semantics.

    Example:
        cursor = DynamoDbSearchQueue("prefix-CollectionsTable")
        record = cursor.peek()
        while record:
            handle(record)
            cursor.shift()
            record = cursor.peek()
        cursor.close()
    """

    def __init__(
        self,
        table_name: str,
        client: Any = None,
        page_size: int | None = None,
    ):
        """
        Args:
            table_name: Legacy DynamoDB table to scan
            client: boto3 DynamoDB client (created when omitted)
            page_size: Optional scan Limit per page
        """
        self.table_name = table_name
        self.client = client or boto3.client("dynamodb")
        self.page_size = page_size
        self._items: deque[dict[str, Any]] = deque()
        self._start_key: dict[str, Any] | None = None
        self._exhausted = False
        self._closed = False
        self.pages_read = 0

    def _fetch_page(self) -> None:
        scan_kwargs: dict[str, Any] = {"TableName": self.table_name}
        if self._start_key:
            scan_kwargs["ExclusiveStartKey"] = self._start_key
        if self.page_size:
            scan_kwargs["Limit"] = self.page_size

        try:
            response = scan_page(self.client, **scan_kwargs)
        except (ClientError, BotoCoreError) as e:
            raise SourceUnavailable(f"Error scanning legacy table {self.table_name}: {e}") from e

        self.pages_read += 1
        self._items.extend(deserialize_item(item) for item in response.get("Items", []))
        self._start_key = response.get("LastEvaluatedKey")
        if not self._start_key:
            self._exhausted = True

        logger.debug(
            f"Read page {self.pages_read} of {self.table_name} "
            f"({len(response.get('Items', []))} items)"
        )

    def peek(self) -> dict[str, Any] | None:
        """
        Return the next record without consuming it.

        Returns:
            Next legacy record, or None once the table is exhausted

        Raises:
            SourceUnavailable: If the scan request fails
        """
        if self._closed:
            return None
        # A page can be empty while LastEvaluatedKey is still set
        while not self._items and not self._exhausted:
            self._fetch_page()
        return self._items[0] if self._items else None

    def shift(self) -> dict[str, Any] | None:
        """Consume and return the next record."""
        if self.peek() is None:
            return None
        return self._items.popleft()

    def close(self) -> None:
        """Drop buffered items and stop scanning."""
        self._items.clear()
        self._exhausted = True
        self._closed = True
