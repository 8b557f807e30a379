"""Environment configuration for Reelkeeper."""

import os
from dataclasses import dataclass
from typing import Optional

from reelkeeper.services.classifier import (
    DEFAULT_BASE_URL,
    DEFAULT_PRIMARY_MODEL,
    DEFAULT_SECONDARY_MODEL,
    DEFAULT_TIMEOUT,
)
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)

STORAGE_BACKENDS = ("json", "postgres")
DEFAULT_DATA_DIR = "~/.reelkeeper"


@dataclass
class PostgresConfig:
    host: str
    port: int
    dbname: str
    user: str
    password: str


@dataclass
class AppConfig:
    storage: str = "json"
    data_dir: str = DEFAULT_DATA_DIR
    gemini_base_url: str = DEFAULT_BASE_URL
    primary_model: str = DEFAULT_PRIMARY_MODEL
    secondary_model: str = DEFAULT_SECONDARY_MODEL
    classifier_timeout: float = DEFAULT_TIMEOUT
    postgres: Optional[PostgresConfig] = None
    log_level: str = "INFO"
    log_format: str = "console"


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"{name} environment variable not set")
    return value


def load_postgres_config() -> PostgresConfig:
    """Read Postgres connection settings.

    Raises:
        ValueError: If a required variable is missing
    """
    try:
        port = int(os.getenv("POSTGRES_PORT", "5432"))
    except ValueError:
        logger.warning("Invalid POSTGRES_PORT, using default 5432")
        port = 5432

    return PostgresConfig(
        host=_require("POSTGRES_HOST"),
        port=port,
        dbname=_require("POSTGRES_DB"),
        user=_require("POSTGRES_USER"),
        password=_require("POSTGRES_PASSWORD"),
    )


def load_config() -> AppConfig:
    """Build the application config from environment variables.

    Returns:
        AppConfig

    Raises:
        ValueError: If REELKEEPER_STORAGE is unknown or Postgres settings are missing
    """
    storage = os.getenv("REELKEEPER_STORAGE", "json").strip().lower()
    if storage not in STORAGE_BACKENDS:
        raise ValueError(
            f"REELKEEPER_STORAGE must be one of {', '.join(STORAGE_BACKENDS)}, got {storage!r}"
        )

    timeout_str = os.getenv("REELKEEPER_CLASSIFIER_TIMEOUT", str(DEFAULT_TIMEOUT))
    try:
        timeout = float(timeout_str)
        if timeout <= 0:
            raise ValueError("Timeout must be positive")
    except ValueError:
        logger.warning(
            f"Invalid REELKEEPER_CLASSIFIER_TIMEOUT='{timeout_str}', using default {DEFAULT_TIMEOUT}"
        )
        timeout = DEFAULT_TIMEOUT

    log_format = os.getenv("LOG_FORMAT", "console").strip().lower()
    if log_format not in ("console", "json"):
        logger.warning(f"Invalid LOG_FORMAT='{log_format}', using console")
        log_format = "console"

    return AppConfig(
        storage=storage,
        data_dir=os.getenv("REELKEEPER_DATA_DIR", DEFAULT_DATA_DIR),
        gemini_base_url=os.getenv("REELKEEPER_GEMINI_BASE_URL", DEFAULT_BASE_URL),
        primary_model=os.getenv("REELKEEPER_PRIMARY_MODEL", DEFAULT_PRIMARY_MODEL),
        secondary_model=os.getenv("REELKEEPER_SECONDARY_MODEL", DEFAULT_SECONDARY_MODEL),
        classifier_timeout=timeout,
        postgres=load_postgres_config() if storage == "postgres" else None,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=log_format,
    )
