"""
Database connection pooling for the relational store.
"""

from .postgres import (
    ConnectionPoolError,
    PoolClosedError,
    PoolExhaustedError,
    PostgresConnectionPool,
)

__all__ = [
    "PostgresConnectionPool",
    "ConnectionPoolError",
    "PoolExhaustedError",
    "PoolClosedError",
]
