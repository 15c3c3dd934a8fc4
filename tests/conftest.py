"""
Pytest configuration and shared fixtures.
"""

import os

import pytest
from prometheus_client import CollectorRegistry

from fakes import InMemoryRelationalStore
from utils.metrics import MigrationMetrics, ReconciliationMetrics


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(autouse=True)
def set_test_env_vars() -> None:
    """Set default test environment variables if not already set."""
    defaults = {
        "AWS_DEFAULT_REGION": "us-east-1",
        "AWS_ACCESS_KEY_ID": "testing",
        "AWS_SECRET_ACCESS_KEY": "testing",
    }

    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value


@pytest.fixture
def store() -> InMemoryRelationalStore:
    return InMemoryRelationalStore()


@pytest.fixture
def migration_metrics() -> MigrationMetrics:
    return MigrationMetrics(registry=CollectorRegistry())


@pytest.fixture
def reconciliation_metrics() -> ReconciliationMetrics:
    return ReconciliationMetrics(registry=CollectorRegistry())


@pytest.fixture
def legacy_env() -> dict[str, str]:
    return {
        "CollectionsTable": "test-CollectionsTable",
        "ProvidersTable": "test-ProvidersTable",
        "RulesTable": "test-RulesTable",
        "AsyncOperationsTable": "test-AsyncOperationsTable",
        "system_bucket": "test-system-bucket",
        "prefix": "test-stack",
    }
