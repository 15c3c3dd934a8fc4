"""
Unit tests for the legacy, relational and index count sources
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import requests
from botocore.exceptions import ClientError

from fakes import InMemoryRelationalStore, to_datetime, CREATED_AT_MS
from migration.entities import default_index_names
from migration.models import TargetRow
from reconciliation.sources import (
    BEFORE_CUTOFF,
    DynamoTableCountSource,
    ElasticsearchCountSource,
    PostgresCountSource,
)
from utils.errors import SourceUnavailable

CUTOFF = datetime(2020, 9, 13, 11, 0, tzinfo=timezone.utc)
CUTOFF_MS = int(CUTOFF.timestamp() * 1000)


class TestDynamoTableCountSource:
    def test_sums_paginated_counts(self):
        client = Mock()
        client.scan.side_effect = [
            {"Count": 100, "ScannedCount": 100, "LastEvaluatedKey": {"name": {"S": "k"}}},
            {"Count": 25, "ScannedCount": 25},
        ]
        source = DynamoTableCountSource({"collection": "test-CollectionsTable"}, client=client)

        assert source.count("collection", CUTOFF) == 125

        first, second = client.scan.call_args_list
        assert first.kwargs == {
            "TableName": "test-CollectionsTable",
            "Select": "COUNT",
            "FilterExpression": "#ts >= :cutoff",
            "ExpressionAttributeNames": {"#ts": "createdAt"},
            "ExpressionAttributeValues": {":cutoff": {"N": str(CUTOFF_MS)}},
        }
        assert second.kwargs["ExclusiveStartKey"] == {"name": {"S": "k"}}
        assert second.kwargs["FilterExpression"] == "#ts >= :cutoff"

    def test_before_cutoff_filter(self):
        client = Mock()
        client.scan.return_value = {"Count": 7, "ScannedCount": 9}
        source = DynamoTableCountSource({"rule": "r-table"}, client=client, operator=BEFORE_CUTOFF)

        assert source.count("rule", CUTOFF) == 7
        assert client.scan.call_args.kwargs["FilterExpression"] == "#ts < :cutoff"

    def test_invalid_operator(self):
        with pytest.raises(ValueError):
            DynamoTableCountSource({"rule": "r-table"}, client=Mock(), operator="<=")

    def test_from_env_passes_operator(self):
        source = DynamoTableCountSource.from_env(
            {"RulesTable": "r-table"}, client=Mock(), operator=BEFORE_CUTOFF
        )

        assert source.operator == BEFORE_CUTOFF

    def test_from_env_only_includes_set_tables(self):
        env = {"CollectionsTable": "c-table", "RulesTable": "r-table", "ProvidersTable": ""}

        source = DynamoTableCountSource.from_env(env, client=Mock())

        assert source.supports("collection")
        assert source.supports("rule")
        assert not source.supports("provider")
        assert not source.supports("async_operation")

    def test_client_error_is_source_unavailable(self):
        client = Mock()
        client.scan.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "denied"}}, "Scan"
        )
        source = DynamoTableCountSource({"rule": "r-table"}, client=client)

        with pytest.raises(SourceUnavailable, match="r-table"):
            source.count("rule", CUTOFF)


class TestPostgresCountSource:
    def _store_with_rows(self):
        store = InMemoryRelationalStore()
        for index, created_at in enumerate((CUTOFF - timedelta(hours=1), CUTOFF, CUTOFF + timedelta(minutes=5))):
            store.insert(
                "provider",
                TargetRow("provider", (f"p{index}",), {"name": f"p{index}", "created_at": created_at}),
            )
        return store

    def test_counts_at_or_after_cutoff(self):
        source = PostgresCountSource(self._store_with_rows())

        assert source.count("provider", CUTOFF) == 2

    def test_counts_before_cutoff(self):
        source = PostgresCountSource(self._store_with_rows(), operator=BEFORE_CUTOFF)

        assert source.count("provider", CUTOFF) == 1

    def test_supports_follows_store(self):
        source = PostgresCountSource(InMemoryRelationalStore())

        assert source.supports("async_operation")
        assert not source.supports("granule")

    def test_invalid_operator(self):
        with pytest.raises(ValueError):
            PostgresCountSource(InMemoryRelationalStore(), operator="<=")


class TestElasticsearchCountSource:
    @pytest.fixture
    def session(self):
        session = Mock(spec=requests.Session)
        session.post.return_value.json.return_value = {"count": 42, "_shards": {"total": 1}}
        return session

    def test_counts_with_range_query(self, session):
        source = ElasticsearchCountSource(
            "https://search.example.com/", {"collection": "stack-collections"}, session=session
        )

        assert source.count("collection", CUTOFF) == 42

        args, kwargs = session.post.call_args
        assert args[0] == "https://search.example.com/stack-collections/_count"
        assert kwargs["json"] == {"query": {"range": {"createdAt": {"gte": CUTOFF_MS}}}}
        assert kwargs["timeout"] == 30

    def test_before_cutoff_query(self, session):
        source = ElasticsearchCountSource(
            "https://search.example.com", {"rule": "stack-rules"}, session=session, operator="<"
        )

        assert source.build_query(CUTOFF) == {"query": {"range": {"createdAt": {"lt": CUTOFF_MS}}}}

    def test_cutoff_in_epoch_millis(self, session):
        source = ElasticsearchCountSource("http://es", {"rule": "r"}, session=session)
        cutoff = to_datetime(CREATED_AT_MS)

        query = source.build_query(cutoff)

        assert query["query"]["range"]["createdAt"]["gte"] == CREATED_AT_MS

    def test_http_error_is_source_unavailable(self, session):
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("503 Service Unavailable")
        source = ElasticsearchCountSource("http://es", {"rule": "r"}, session=session)

        with pytest.raises(SourceUnavailable):
            source.count("rule", CUTOFF)

    def test_connection_error_is_source_unavailable(self, session):
        session.post.side_effect = requests.ConnectionError("connection refused")
        source = ElasticsearchCountSource("http://es", {"rule": "r"}, session=session)

        with pytest.raises(SourceUnavailable):
            source.count("rule", CUTOFF)

    def test_missing_count_is_source_unavailable(self, session):
        session.post.return_value.json.return_value = {"error": "index_not_found_exception"}
        source = ElasticsearchCountSource("http://es", {"rule": "r"}, session=session)

        with pytest.raises(SourceUnavailable, match="no count"):
            source.count("rule", CUTOFF)

    def test_invalid_json_is_source_unavailable(self, session):
        session.post.return_value.json.side_effect = ValueError("Expecting value")
        source = ElasticsearchCountSource("http://es", {"rule": "r"}, session=session)

        with pytest.raises(SourceUnavailable):
            source.count("rule", CUTOFF)

    def test_supports_only_mapped_indices(self, session):
        source = ElasticsearchCountSource("http://es", default_index_names("stack"), session=session)

        assert source.supports("async_operation")
        assert source.indices["async_operation"] == "stack-async-operations"
