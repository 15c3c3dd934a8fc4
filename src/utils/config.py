"""
Invocation and database configuration.

The invocation event uses the camelCase option names the deployment passes
(dbConcurrency, dbMaxPool, reportBucket, reportPath, cutoffSeconds,
systemBucket, stackName). Everything is optional except the identity of the
environment, which falls back to the system_bucket and prefix environment
variables.

Usage:
    from utils.config import InvocationConfig, load_postgres_settings

    config = InvocationConfig.from_event({"cutoffSeconds": 7200})
    settings = load_postgres_settings(use_vault=False)
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jsonschema

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DB_CONCURRENCY = 20
DEFAULT_DB_MAX_POOL = 20
DEFAULT_CUTOFF_SECONDS = 3600

INVOCATION_EVENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "dbConcurrency": {"type": "integer", "minimum": 1},
        "dbMaxPool": {"type": "integer", "minimum": 1},
        "reportBucket": {"type": "string", "minLength": 1},
        "reportPath": {"type": "string"},
        "cutoffSeconds": {"type": "integer", "minimum": 0},
        "systemBucket": {"type": "string", "minLength": 1},
        "stackName": {"type": "string", "minLength": 1},
    },
}


def get_required_env_var(name: str, env: Mapping[str, str] | None = None) -> str:
    """
    Read a required environment variable

    Args:
        name: Variable name
        env: Environment mapping (default: os.environ)

    Returns:
        Variable value

    Raises:
        ConfigurationError: If the variable is unset or empty
    """
    env = os.environ if env is None else env
    value = env.get(name)
    if not value:
        raise ConfigurationError(f"Environment variable {name} is not set")
    return value


def validate_event(event: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Check an invocation event against INVOCATION_EVENT_SCHEMA

    Raises:
        ConfigurationError: Naming the first invalid option
    """
    event = dict(event or {})
    try:
        jsonschema.validate(instance=event, schema=INVOCATION_EVENT_SCHEMA)
    except jsonschema.exceptions.ValidationError as e:
        field = ".".join(str(p) for p in e.absolute_path) or "event"
        raise ConfigurationError(f"Invalid invocation option {field}: {e.message}") from e
    return event


@dataclass(frozen=True)
class InvocationConfig:
    """Options recognised by the migration and reconciliation invocations."""

    system_bucket: str
    stack_name: str
    db_concurrency: int = DEFAULT_DB_CONCURRENCY
    db_max_pool: int = DEFAULT_DB_MAX_POOL
    report_bucket: str | None = None
    report_path: str | None = None
    cutoff_seconds: int = DEFAULT_CUTOFF_SECONDS
    search_url: str | None = None

    @classmethod
    def from_event(
        cls,
        event: Mapping[str, Any] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "InvocationConfig":
        """
        Build configuration from an invocation event

        Args:
            event: Event mapping with camelCase option names
            env: Environment mapping used for fallbacks (default: os.environ)

        Returns:
            Validated InvocationConfig

        Raises:
            ConfigurationError: If the event is malformed or the environment
                identity (systemBucket, stackName) cannot be resolved
        """
        event = validate_event(event)
        env = os.environ if env is None else env

        system_bucket = event.get("systemBucket") or get_required_env_var("system_bucket", env)
        stack_name = event.get("stackName") or get_required_env_var("prefix", env)

        return cls(
            system_bucket=system_bucket,
            stack_name=stack_name,
            db_concurrency=event.get("dbConcurrency", DEFAULT_DB_CONCURRENCY),
            db_max_pool=event.get("dbMaxPool", DEFAULT_DB_MAX_POOL),
            report_bucket=event.get("reportBucket"),
            report_path=event.get("reportPath"),
            cutoff_seconds=event.get("cutoffSeconds", DEFAULT_CUTOFF_SECONDS),
            search_url=env.get("ES_HOST") or None,
        )

    def cutoff_instant(self, now: datetime | None = None) -> datetime:
        """Return the instant cutoff_seconds before now (UTC)."""
        now = now or datetime.now(UTC)
        return now - timedelta(seconds=self.cutoff_seconds)

    @property
    def report_destination(self) -> tuple[str, str] | None:
        """Bucket and path for the report, or None when not fully configured."""
        if self.report_bucket and self.report_path:
            return self.report_bucket, self.report_path
        return None


@dataclass(frozen=True)
class PostgresSettings:
    """Connection parameters for the relational store."""

    host: str
    port: int
    database: str
    user: str
    password: str

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "PostgresSettings":
        """
        Read settings from POSTGRES_* environment variables

        Raises:
            ConfigurationError: If POSTGRES_PASSWORD is missing or the port
                is not an integer
        """
        env = os.environ if env is None else env
        password = env.get("POSTGRES_PASSWORD")
        if not password:
            raise ConfigurationError("Relational store password not provided (POSTGRES_PASSWORD)")

        try:
            port = int(env.get("POSTGRES_PORT", "5432"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid POSTGRES_PORT: {env.get('POSTGRES_PORT')}") from e

        return cls(
            host=env.get("POSTGRES_HOST", "localhost"),
            port=port,
            database=env.get("POSTGRES_DB", "migration_target"),
            user=env.get("POSTGRES_USER", "postgres"),
            password=password,
        )

    @classmethod
    def from_secret(cls, secret: Mapping[str, Any]) -> "PostgresSettings":
        """Build settings from a Vault secret payload."""
        return cls(
            host=secret["host"],
            port=int(secret.get("port", 5432)),
            database=secret["database"],
            user=secret["username"],
            password=secret["password"],
        )


def load_postgres_settings(
    use_vault: bool = False,
    env: Mapping[str, str] | None = None,
) -> PostgresSettings:
    """
    Resolve relational store settings from Vault or the environment

    Args:
        use_vault: Fetch credentials from HashiCorp Vault instead of env vars
        env: Environment mapping (default: os.environ)

    Returns:
        PostgresSettings

    Raises:
        ConfigurationError: If credentials cannot be resolved
    """
    if use_vault:
        from .vault_client import VaultClient

        try:
            secret = VaultClient().get_database_credentials("postgresql")
        except Exception as e:
            raise ConfigurationError(f"Failed to fetch credentials from Vault: {e}") from e

        logger.info("Fetched relational store credentials from Vault")
        return PostgresSettings.from_secret(secret)

    return PostgresSettings.from_env(env)
