"""
Shared infrastructure for migration and reconciliation runs

Provides:
- config / vault_client: invocation options and relational credentials
- errors: exception hierarchy
- logging, metrics, tracing: observability
- db_pool, retry, sql_safety: relational store access helpers
"""

__version__ = "1.0.0"
__all__ = ["config", "errors", "logging", "metrics", "tracing", "db_pool", "retry", "sql_safety"]
