"""
Count sources queried by the reconciliation aggregator.
"""

from .base import AT_OR_AFTER_CUTOFF, BEFORE_CUTOFF, CountSource
from .index import ElasticsearchCountSource
from .legacy import DynamoTableCountSource
from .relational import PostgresCountSource

__all__ = [
    "CountSource",
    "DynamoTableCountSource",
    "PostgresCountSource",
    "ElasticsearchCountSource",
    "AT_OR_AFTER_CUTOFF",
    "BEFORE_CUTOFF",
]
