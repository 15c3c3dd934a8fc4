"""
HashiCorp Vault client for fetching relational store credentials

Reads secrets from the KV v2 secrets engine over the Vault HTTP API.
"""

import logging
import os
import re
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

SAFE_SECRET_PATH = re.compile(r"^[a-zA-Z0-9/_-]+$")
POSTGRES_SECRET_PATH = "secret/database/postgresql"
REQUIRED_POSTGRES_FIELDS = ("host", "database", "username", "password")


class VaultClient:
    """
    HashiCorp Vault client for secrets management

    Uses the KV v2 secrets engine, so secret paths are rewritten to include
    the /data/ segment after the mount point.
    """

    def __init__(
        self,
        vault_addr: Optional[str] = None,
        vault_token: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: float = 10.0,
    ):
        """
        Initialize Vault client

        Args:
            vault_addr: Vault server address (default: VAULT_ADDR env var)
            vault_token: Vault token (default: VAULT_TOKEN env var)
            namespace: Vault Enterprise namespace
            timeout: HTTP timeout in seconds

        Raises:
            ValueError: If the address or token cannot be resolved
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.namespace = namespace
        self.timeout = timeout

        if not self.vault_addr:
            raise ValueError(
                "Vault address not provided. Set VAULT_ADDR environment variable "
                "or pass vault_addr parameter."
            )
        if not self.vault_token:
            raise ValueError(
                "Vault token not provided. Set VAULT_TOKEN environment variable "
                "or pass vault_token parameter."
            )

        self.vault_addr = self.vault_addr.rstrip("/")
        self.headers = {
            "X-Vault-Token": self.vault_token,
            "Content-Type": "application/json",
        }
        if self.namespace:
            self.headers["X-Vault-Namespace"] = self.namespace

        logger.info(f"Initialized Vault client for {self.vault_addr}")

    @staticmethod
    def _kv2_path(secret_path: str) -> str:
        if not secret_path or not isinstance(secret_path, str):
            raise ValueError("secret_path must be a non-empty string")
        if ".." in secret_path or secret_path.startswith("//"):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Path traversal attempts are not allowed."
            )
        if not SAFE_SECRET_PATH.match(secret_path):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Only alphanumeric characters, slashes, underscores, and hyphens are allowed."
            )

        if "/data/" in secret_path:
            return secret_path
        mount, _, rest = secret_path.partition("/")
        return f"{mount}/data/{rest}" if rest else f"{mount}/data"

    def get_secret(self, secret_path: str) -> Dict[str, Any]:
        """
        Fetch a secret's data payload

        Args:
            secret_path: Path such as "secret/database/postgresql"

        Returns:
            Secret key/value data

        Raises:
            ValueError: If the path is invalid or the secret is missing/empty
            requests.RequestException: If the Vault request fails
        """
        url = f"{self.vault_addr}/v1/{self._kv2_path(secret_path)}"
        logger.debug(f"Fetching secret from: {url}")

        response = requests.get(url, headers=self.headers, timeout=self.timeout)
        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {secret_path}")
        response.raise_for_status()

        secret_data = response.json().get("data", {}).get("data", {})
        if not secret_data:
            raise ValueError(f"No data found in secret at path: {secret_path}")

        return secret_data

    def get_database_credentials(self, database_type: str = "postgresql") -> Dict[str, Any]:
        """
        Fetch relational store credentials

        Args:
            database_type: Only "postgresql" is supported

        Returns:
            Dictionary with host, port, database, username, password

        Raises:
            ValueError: If the type is unsupported or fields are missing
        """
        if database_type != "postgresql":
            raise ValueError(
                f"Unsupported database_type: {database_type}. Must be 'postgresql'."
            )

        secret_data = dict(self.get_secret(POSTGRES_SECRET_PATH))
        missing = [f for f in REQUIRED_POSTGRES_FIELDS if f not in secret_data]
        if missing:
            raise ValueError(f"Missing required fields in secret: {', '.join(missing)}")

        secret_data.setdefault("port", 5432)
        logger.info("Successfully fetched postgresql credentials from Vault")
        return secret_data
