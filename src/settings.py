"""
Process-wide configuration, resolved once at start-up.

Values come from the environment (a local ``.env`` file is loaded first).
The database URL, and with it the SQL dialect, is fixed here and injected
into the storage adapter; nothing downstream probes for a fallback database.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///catalog.sqlite"
DEFAULT_SEARCH_INDEX_TTL = 300  # seconds before the cached search index is rebuilt
DEFAULT_MAX_UPLOAD_MB = 5


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    db_echo: bool = False
    admin_username: str = "admin"
    admin_password: Optional[str] = None  # login disabled when unset
    search_index_ttl_seconds: int = DEFAULT_SEARCH_INDEX_TTL
    max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def login_enabled(self) -> bool:
        return bool(self.admin_password)


def load_settings() -> Settings:
    """Read the environment (after .env) into a frozen Settings object."""
    load_dotenv()

    database_url = os.getenv("CATALOG_DATABASE_URL") or DEFAULT_DATABASE_URL
    # Heroku/Render style URLs use the deprecated "postgres://" scheme
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return Settings(
        database_url=database_url,
        db_echo=_env_bool("CATALOG_DB_ECHO"),
        admin_username=os.getenv("CATALOG_ADMIN_USERNAME", "admin"),
        admin_password=os.getenv("CATALOG_ADMIN_PASSWORD") or None,
        search_index_ttl_seconds=_env_int("CATALOG_SEARCH_INDEX_TTL", DEFAULT_SEARCH_INDEX_TTL),
        max_upload_mb=_env_int("CATALOG_MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "text").lower(),
    )
