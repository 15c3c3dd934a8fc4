"""PostgreSQL connection pool for the relational store."""

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extensions
import psycopg2.pool
from opentelemetry import trace
from prometheus_client import Counter, Gauge, Histogram

from utils.metrics.registry import get_or_create_metric
from utils.tracing import trace_operation

logger = logging.getLogger(__name__)


CONNECTION_POOL_ACTIVE = get_or_create_metric(
    lambda: Gauge(
        "db_connection_pool_active",
        "Number of connections checked out of the pool",
        ["pool_name"],
    ),
    "db_connection_pool_active",
)

CONNECTION_POOL_ERRORS = get_or_create_metric(
    lambda: Counter(
        "db_connection_pool_errors_total",
        "Number of connection pool errors",
        ["pool_name", "error_type"],
    ),
    "db_connection_pool_errors",
)

CONNECTION_ACQUIRE_TIME = get_or_create_metric(
    lambda: Histogram(
        "db_connection_acquire_seconds",
        "Time to acquire a connection from pool",
        ["pool_name"],
        buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    ),
    "db_connection_acquire_seconds",
)


class ConnectionPoolError(Exception):
    """Base exception for connection pool errors."""

    pass


class PoolExhaustedError(ConnectionPoolError):
    """Raised when no connection can be handed out."""

    pass


class PoolClosedError(ConnectionPoolError):
    """Raised when attempting to use a closed pool."""

    pass


class PostgresConnectionPool:
    """
    Thread-safe PostgreSQL pool.

    Connections run in autocommit mode: every statement the store issues is
    its own transaction, matching the insert-only, row-at-a-time loader.

    ThreadedConnectionPool fails immediately once max_size connections are
    out, so callers queue on a semaphore of the same size and only give up
    after acquire_timeout seconds.
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_size: int = 1,
        max_size: int = 20,
        connect_timeout: int = 10,
        acquire_timeout: float = 30.0,
        pool_name: str = "relational",
    ):
        """
        Initialize PostgreSQL connection pool.

        Args:
            host: PostgreSQL host
            port: PostgreSQL port
            database: Database name
            user: Username
            password: Password
            min_size: Connections opened eagerly
            max_size: Upper bound on open connections (dbMaxPool)
            connect_timeout: Seconds to wait for a new connection
            acquire_timeout: Seconds to wait for a free pooled connection
            pool_name: Name used in metric labels

        Raises:
            psycopg2.OperationalError: If the initial connections cannot be opened
        """
        self.database = database
        self.host = host
        self.min_size = min_size
        self.max_size = max_size
        self.acquire_timeout = acquire_timeout
        self.pool_name = pool_name
        self._closed = False
        self._active = 0
        self._lock = threading.Lock()
        self._available = threading.BoundedSemaphore(max_size)

        with trace_operation(
            "postgres_connect",
            kind=trace.SpanKind.CLIENT,
            db_host=host,
            db_name=database,
        ):
            self._pool = psycopg2.pool.ThreadedConnectionPool(
                min_size,
                max_size,
                host=host,
                port=port,
                database=database,
                user=user,
                password=password,
                connect_timeout=connect_timeout,
            )

        logger.info(
            f"Initialized PostgresConnectionPool '{pool_name}' "
            f"for {host}/{database} (min={min_size}, max={max_size})"
        )

    @contextmanager
    def acquire(self) -> Iterator[psycopg2.extensions.connection]:
        """
        Check a connection out of the pool.

        Yields:
            psycopg2 connection in autocommit mode

        Raises:
            PoolClosedError: If the pool is closed
            PoolExhaustedError: If no connection frees up within acquire_timeout
        """
        if self._closed:
            raise PoolClosedError("Connection pool is closed")

        start_time = time.time()
        if not self._available.acquire(timeout=self.acquire_timeout):
            CONNECTION_POOL_ERRORS.labels(pool_name=self.pool_name, error_type="exhausted").inc()
            raise PoolExhaustedError(
                f"No connection available in pool '{self.pool_name}' "
                f"after {self.acquire_timeout}s (max={self.max_size})"
            )

        try:
            conn = self._pool.getconn()
        except psycopg2.pool.PoolError as e:
            self._available.release()
            CONNECTION_POOL_ERRORS.labels(pool_name=self.pool_name, error_type="exhausted").inc()
            raise PoolExhaustedError(str(e)) from e
        except BaseException:
            self._available.release()
            raise

        conn.autocommit = True
        CONNECTION_ACQUIRE_TIME.labels(pool_name=self.pool_name).observe(time.time() - start_time)
        self._track_active(1)

        broken = False
        try:
            yield conn
        except (psycopg2.OperationalError, psycopg2.InterfaceError):
            broken = True
            CONNECTION_POOL_ERRORS.labels(pool_name=self.pool_name, error_type="connection").inc()
            raise
        finally:
            self._track_active(-1)
            try:
                if not self._closed:
                    self._pool.putconn(conn, close=broken or bool(conn.closed))
            finally:
                self._available.release()

    def _track_active(self, delta: int) -> None:
        with self._lock:
            self._active += delta
            CONNECTION_POOL_ACTIVE.labels(pool_name=self.pool_name).set(self._active)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close all connections. Safe to call more than once."""
        if self._closed:
            return

        self._closed = True
        self._pool.closeall()
        CONNECTION_POOL_ACTIVE.labels(pool_name=self.pool_name).set(0)
        logger.info(f"Connection pool '{self.pool_name}' closed")

    def get_stats(self) -> dict[str, Any]:
        """Get pool statistics."""
        with self._lock:
            return {
                "pool_name": self.pool_name,
                "active_connections": self._active,
                "min_size": self.min_size,
                "max_size": self.max_size,
                "closed": self._closed,
            }
