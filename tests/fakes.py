"""
In-memory stand-ins and legacy record factories shared by the tests.
"""

import threading
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import psycopg2.pool

from migration.models import TargetRow
from migration.store import RelationalStore
from reconciliation.sources import CountSource
from utils.errors import DuplicateRowError, LoadError

CREATED_AT_MS = 1_600_000_000_000
UPDATED_AT_MS = 1_600_000_123_456


class ListCursor:
    """Legacy cursor over an in-memory list of records."""

    def __init__(self, records):
        self.records = list(records)
        self.position = 0
        self.closed = False
        self.close_calls = 0

    def peek(self):
        if self.closed or self.position >= len(self.records):
            return None
        return self.records[self.position]

    def shift(self):
        record = self.peek()
        if record is not None:
            self.position += 1
        return record

    def close(self):
        self.closed = True
        self.close_calls += 1


class InMemoryRelationalStore(RelationalStore):
    """
    RelationalStore keeping rows in dictionaries.

    Identity keys listed in fail_on make insert raise LoadError.
    """

    def __init__(self, fail_on=()):
        self.rows: dict[str, dict[tuple, dict]] = {}
        self.fail_on = set(fail_on)
        self.next_id = 1
        self.close_calls = 0
        self.insert_calls = 0

    def find(self, entity_kind, identity_key):
        return self.rows.get(entity_kind, {}).get(tuple(identity_key))

    def insert(self, entity_kind, row: TargetRow):
        self.insert_calls += 1
        if row.identity_key in self.fail_on:
            raise LoadError(f"value too long for {row.identity_key}")
        table = self.rows.setdefault(entity_kind, {})
        if row.identity_key in table:
            raise DuplicateRowError(f"{row.identity_key} already exists")
        stored = {"cumulus_id": self.next_id, **row.as_dict()}
        table[row.identity_key] = stored
        self.next_id += 1
        return stored["cumulus_id"]

    def insert_if_absent(self, entity_kind, row: TargetRow):
        if self.find(entity_kind, row.identity_key) is not None:
            return None
        return self.insert(entity_kind, row)

    def count(self, entity_kind, cutoff, operator=">="):
        rows = self.rows.get(entity_kind, {}).values()
        if operator == ">=":
            return sum(1 for row in rows if row["created_at"] >= cutoff)
        return sum(1 for row in rows if row["created_at"] < cutoff)

    def close(self):
        self.close_calls += 1

    def total(self, entity_kind):
        return len(self.rows.get(entity_kind, {}))


def make_collection(name="MOD09GQ", version="006", **overrides):
    record = {
        "name": name,
        "version": version,
        "process": "modis",
        "granuleId": "^MOD09GQ\\.A[\\d]{7}\\.[\\S]{6}\\.006\\.[\\d]{13}$",
        "granuleIdExtraction": "(MOD09GQ\\..*)(\\.hdf|\\.cmr|_ndvi\\.jpg)",
        "sampleFileName": "MOD09GQ.A2017025.h21v00.006.2017034065104.hdf",
        "files": [
            {
                "bucket": "protected",
                "regex": "^MOD09GQ\\.A[\\d]{7}\\.[\\S]{6}\\.006\\.[\\d]{13}\\.hdf$",
                "sampleFileName": "MOD09GQ.A2017025.h21v00.006.2017034065104.hdf",
            },
            {
                "bucket": "private",
                "regex": "^MOD09GQ\\.A[\\d]{7}\\.[\\S]{6}\\.006\\.[\\d]{13}\\.hdf\\.met$",
                "sampleFileName": "MOD09GQ.A2017025.h21v00.006.2017034065104.hdf.met",
            },
            {
                "bucket": "public",
                "regex": "^MOD09GQ\\.A[\\d]{7}\\.[\\S]{6}\\.006\\.[\\d]{13}_ndvi\\.jpg$",
                "sampleFileName": "MOD09GQ.A2017025.h21v00.006.2017034065104_ndvi.jpg",
            },
        ],
        "tags": ["modis", "surface-reflectance"],
        "createdAt": CREATED_AT_MS,
        "updatedAt": UPDATED_AT_MS,
    }
    record.update(overrides)
    return record


def make_provider(provider_id="s3_provider", **overrides):
    record = {
        "id": provider_id,
        "protocol": "s3",
        "host": "example-bucket",
        "globalConnectionLimit": 10,
        "createdAt": CREATED_AT_MS,
        "updatedAt": UPDATED_AT_MS,
    }
    record.update(overrides)
    return record


def make_rule(name="mod09gq_onetime", **overrides):
    record = {
        "name": name,
        "workflow": "IngestGranule",
        "provider": "s3_provider",
        "collection": {"name": "MOD09GQ", "version": "006"},
        "rule": {"type": "onetime"},
        "state": "ENABLED",
        "createdAt": CREATED_AT_MS,
        "updatedAt": UPDATED_AT_MS,
    }
    record.update(overrides)
    return record


def make_async_operation(operation_id="0eb8e809-8790-5409-1239-bcd9e8d28b8e", **overrides):
    record = {
        "id": operation_id,
        "description": "Bulk granule deletion",
        "operationType": "Bulk Granule Delete",
        "status": "SUCCEEDED",
        "output": '{"deleted": 3}',
        "taskArn": "arn:aws:ecs:us-east-1:111111111111:task/abc",
        "createdAt": CREATED_AT_MS,
        "updatedAt": UPDATED_AT_MS,
    }
    record.update(overrides)
    return record


def to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms // 1000, tz=timezone.utc).replace(
        microsecond=(epoch_ms % 1000) * 1000
    )


class StaticCountSource(CountSource):
    """
    CountSource answering from a dict.

    Values that are exceptions are raised instead of returned.
    """

    def __init__(self, counts, name="static"):
        self.counts = dict(counts)
        self.name = name
        self.calls = []

    def supports(self, entity_kind):
        return entity_kind in self.counts

    def count(self, entity_kind, cutoff):
        self.calls.append((entity_kind, cutoff))
        value = self.counts[entity_kind]
        if isinstance(value, Exception):
            raise value
        return value


class LegacyRecordCountSource(CountSource):
    """
    Legacy CountSource over in-memory records, filtering on createdAt the way
    the DynamoDB COUNT scan does.
    """

    name = "legacy"

    def __init__(self, tables, operator=">="):
        self.tables = {kind: list(records) for kind, records in tables.items()}
        self.operator = operator

    def supports(self, entity_kind):
        return entity_kind in self.tables

    def count(self, entity_kind, cutoff):
        cutoff_ms = int(cutoff.timestamp() * 1000)
        created = [record["createdAt"] for record in self.tables[entity_kind]]
        if self.operator == ">=":
            return sum(1 for value in created if value >= cutoff_ms)
        return sum(1 for value in created if value < cutoff_ms)


def limit_pool_connections(threaded_pool, max_size, delay=0.0):
    """
    Make the mocked ThreadedConnectionPool refuse more than max_size checkouts.

    Each cursor execute() sleeps for delay seconds so concurrent callers overlap.
    """
    lock = threading.Lock()
    outstanding = []
    peak = [0]

    def getconn():
        with lock:
            if len(outstanding) >= max_size:
                raise psycopg2.pool.PoolError("connection pool exhausted")
            conn = MagicMock(closed=0)
            cursor = conn.cursor.return_value.__enter__.return_value
            cursor.fetchone.return_value = (0,)
            cursor.execute.side_effect = lambda *args: time.sleep(delay)
            outstanding.append(conn)
            peak[0] = max(peak[0], len(outstanding))
            return conn

    def putconn(conn, close=False):
        with lock:
            outstanding.remove(conn)

    threaded_pool.return_value.getconn.side_effect = getconn
    threaded_pool.return_value.putconn.side_effect = putconn
    return peak
