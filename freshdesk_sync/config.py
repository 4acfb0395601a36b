"""Configuration via environment variables with cloud-native secret support.

Supports:
  - Environment variables (local dev, optionally from a .env file)
  - AWS Secrets Manager (aws-secret://name#key)
  - GCP Secret Manager (gcp-secret://name)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from freshdesk_sync.pagination import DEFAULT_PAGE_SIZE
from freshdesk_sync.secrets import resolve_api_token, resolve_database_url


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 2
    max_connections: int = 10


@dataclass(frozen=True)
class FreshdeskConfig:
    domain: str
    api_token: str
    base_url: str = ""
    page_size: int = DEFAULT_PAGE_SIZE
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    max_retries: int = 5

    @property
    def api_base_url(self) -> str:
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"https://{self.domain}.freshdesk.com"


@dataclass(frozen=True)
class SchedulerConfig:
    sync_interval_min: int = 60
    misfire_grace_time: int = 300
    max_retries: int = 3


@dataclass(frozen=True)
class SyncConfig:
    freshdesk: FreshdeskConfig
    database: Optional[DatabaseConfig] = None
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    workers: int = 1
    batch_size: int = 500


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def load_config(require_database: bool = True) -> SyncConfig:
    """Load configuration from environment variables.

    The API token may be a secret reference; it is resolved here so nothing
    downstream ever sees the reference form.
    """
    load_dotenv()

    domain = os.environ.get("FRESHDESK_DOMAIN", "").strip()
    if not domain:
        raise ValueError("FRESHDESK_DOMAIN environment variable is required")

    api_token = resolve_api_token()
    if not api_token:
        raise ValueError("FRESHDESK_API_TOKEN environment variable is required")

    freshdesk = FreshdeskConfig(
        domain=domain,
        api_token=api_token,
        base_url=os.environ.get("FRESHDESK_BASE_URL", ""),
        page_size=int(os.environ.get("FRESHDESK_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))),
        connect_timeout=float(os.environ.get("FRESHDESK_TIMEOUT_CONNECT", "10")),
        read_timeout=float(os.environ.get("FRESHDESK_TIMEOUT_READ", "60")),
        max_retries=int(os.environ.get("FRESHDESK_MAX_RETRIES", "5")),
    )
    if not _is_valid_url(freshdesk.api_base_url):
        raise ValueError(f"the URL {freshdesk.api_base_url} is not valid")

    database = None
    if require_database:
        database = DatabaseConfig(
            url=resolve_database_url(),
            min_connections=int(os.environ.get("DB_MIN_CONNECTIONS", "2")),
            max_connections=int(os.environ.get("DB_MAX_CONNECTIONS", "10")),
        )

    scheduler = SchedulerConfig(
        sync_interval_min=int(os.environ.get("SYNC_INTERVAL_MIN", "60")),
        misfire_grace_time=int(os.environ.get("SYNC_MISFIRE_GRACE_S", "300")),
        max_retries=int(os.environ.get("SYNC_MAX_RETRIES", "3")),
    )

    return SyncConfig(
        freshdesk=freshdesk,
        database=database,
        scheduler=scheduler,
        workers=int(os.environ.get("SYNC_WORKERS", "1")),
        batch_size=int(os.environ.get("INGESTION_BATCH_SIZE", "500")),
    )
