"""
Search-index mirror counts over the Elasticsearch _count API.
"""

import logging
from collections.abc import Mapping
from datetime import datetime

import requests
from opentelemetry import trace

from utils.errors import SourceUnavailable
from utils.tracing import trace_operation

from .base import AT_OR_AFTER_CUTOFF, CountSource, validate_cutoff_operator

logger = logging.getLogger(__name__)

RANGE_OPERATORS = {">=": "gte", "<": "lt"}


class ElasticsearchCountSource(CountSource):
    """
    Counts index-mirror documents whose timestamp field is within the cutoff.

    Timestamps in the mirror are epoch milliseconds, as in the legacy records.
    """

    name = "index"

    def __init__(
        self,
        base_url: str,
        indices: Mapping[str, str],
        session: requests.Session | None = None,
        timeout: int = 30,
        timestamp_field: str = "createdAt",
        operator: str = AT_OR_AFTER_CUTOFF,
    ):
        """
        Args:
            base_url: Search endpoint, e.g. https://search.example.com
            indices: Entity kind -> index name
            session: requests session (created when omitted)
            timeout: Request timeout in seconds
            timestamp_field: Document field compared with the cutoff
            operator: ">=" or "<"
        """
        self.base_url = base_url.rstrip("/")
        self.indices = dict(indices)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.timestamp_field = timestamp_field
        self.operator = validate_cutoff_operator(operator)

    def supports(self, entity_kind: str) -> bool:
        return entity_kind in self.indices

    def build_query(self, cutoff: datetime) -> dict:
        cutoff_ms = int(cutoff.timestamp() * 1000)
        return {
            "query": {
                "range": {self.timestamp_field: {RANGE_OPERATORS[self.operator]: cutoff_ms}}
            }
        }

    def count(self, entity_kind: str, cutoff: datetime) -> int:
        index = self.indices[entity_kind]
        url = f"{self.base_url}/{index}/_count"

        with trace_operation(
            "index_count",
            kind=trace.SpanKind.CLIENT,
            entity_kind=entity_kind,
            index=index,
        ):
            try:
                response = self.session.post(
                    url, json=self.build_query(cutoff), timeout=self.timeout
                )
                response.raise_for_status()
                payload = response.json()
            except requests.exceptions.RequestException as e:
                raise SourceUnavailable(f"Error counting index {index}: {e}") from e
            except ValueError as e:
                raise SourceUnavailable(f"Index {index} returned invalid JSON: {e}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("count"), int):
            raise SourceUnavailable(f"Index {index} returned no count: {payload!r}")

        logger.debug(f"Index {index} holds {payload['count']} {entity_kind} records")
        return payload["count"]
