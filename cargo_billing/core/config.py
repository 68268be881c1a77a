# cargo_billing/core/config.py

"""
Application configuration management.

Loads settings from environment variables with sensible defaults.
Provides database, ingestion and local cache configuration.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

from .exceptions import InvalidConfigError
from .logging import setup_logging

# Load environment variables
load_dotenv()


class PathConfig:
    """File and directory path configuration."""

    # Project root
    PROJECT_ROOT = Path(__file__).parent.parent.parent

    # Local cache (browser storage equivalent)
    CACHE_DIR = Path(os.getenv("CACHE_DIR", PROJECT_ROOT / ".cargo_cache"))

    @classmethod
    def ensure_directories(cls):
        """Create necessary directories if they don't exist."""
        for attr_name in dir(cls):
            attr = getattr(cls, attr_name)
            if isinstance(attr, Path) and attr_name.endswith("_DIR"):
                attr.mkdir(parents=True, exist_ok=True)


class DatabaseConfig:
    """Database connection and settings."""

    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///cargo_billing.db"
    )

    # Database engine options
    ECHO_SQL = os.getenv("DB_ECHO", "false").lower() == "true"
    POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
    MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))

    @classmethod
    def get_engine_options(cls, database_url: str = None) -> dict:
        """Get SQLAlchemy engine options for the given (or configured) URL."""
        url = database_url or cls.DATABASE_URL
        options = {"echo": cls.ECHO_SQL}

        if url.startswith("sqlite"):
            # In-memory SQLite lives on one connection
            if ":memory:" in url:
                from sqlalchemy.pool import StaticPool
                options.update({
                    "poolclass": StaticPool,
                    "connect_args": {"check_same_thread": False},
                })
        else:
            options.update({
                "pool_size": cls.POOL_SIZE,
                "max_overflow": cls.MAX_OVERFLOW,
                "pool_pre_ping": True,
            })

        return options


class AppConfig:
    """Application-level configuration."""

    # Environment
    ENV = os.getenv("APP_ENV", "production")
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls):
        """Validate critical configuration."""
        if cls.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise InvalidConfigError(
                f"Invalid configuration value for LOG_LEVEL: {cls.LOG_LEVEL}",
                {"config_name": "LOG_LEVEL", "value": cls.LOG_LEVEL},
            )


class IngestionConfig:
    """Batch ingestion configuration."""

    # Rows per store round-trip
    CHUNK_SIZE = int(os.getenv("INGEST_CHUNK_SIZE", "50"))
    CHUNK_YIELD_SECONDS = float(os.getenv("INGEST_CHUNK_YIELD_SECONDS", "0.01"))

    # Import is rejected when more rows than this fail conversion
    MAX_ROW_DROP_RATE = float(os.getenv("INGEST_MAX_ROW_DROP_RATE", "0.05"))

    UPDATE_BATCH_SIZE = int(os.getenv("UPDATE_BATCH_SIZE", "50"))
    DELETE_BATCH_SIZE = int(os.getenv("DELETE_BATCH_SIZE", "50"))

    @classmethod
    def validate(cls):
        """Validate ingestion limits."""
        if cls.CHUNK_SIZE < 1:
            raise InvalidConfigError(
                f"Invalid configuration value for INGEST_CHUNK_SIZE: {cls.CHUNK_SIZE}",
                {"config_name": "INGEST_CHUNK_SIZE", "value": cls.CHUNK_SIZE},
            )
        if not 0 <= cls.MAX_ROW_DROP_RATE <= 1:
            raise InvalidConfigError(
                f"Invalid configuration value for INGEST_MAX_ROW_DROP_RATE: {cls.MAX_ROW_DROP_RATE}",
                {"config_name": "INGEST_MAX_ROW_DROP_RATE", "value": cls.MAX_ROW_DROP_RATE},
            )


class CacheConfig:
    """Local cache quota and eviction configuration."""

    QUOTA_BYTES = int(os.getenv("CACHE_QUOTA_BYTES", 5 * 1024 * 1024))  # 5MB default
    NAMESPACE = os.getenv("CACHE_NAMESPACE", "cargo-")

    # Thresholds
    NEAR_LIMIT_PERCENT = 70
    FULL_PERCENT = 90
    MIN_AVAILABLE_BYTES = 200 * 1024

    # Eviction windows
    RETENTION_DAYS = int(os.getenv("CACHE_RETENTION_DAYS", "7"))
    AGGRESSIVE_RETENTION_DAYS = int(os.getenv("CACHE_AGGRESSIVE_RETENTION_DAYS", "1"))
    MAX_DATASETS = 50
    AGGRESSIVE_MAX_DATASETS = 10

    MONITOR_INTERVAL_SECONDS = float(os.getenv("CACHE_MONITOR_INTERVAL", "30"))


class Config:
    """
    Unified configuration class combining all config sections.

    Usage:
        from cargo_billing.core.config import Config

        db_url = Config.database.DATABASE_URL
        chunk_size = Config.ingestion.CHUNK_SIZE
        quota = Config.cache.QUOTA_BYTES
    """

    paths = PathConfig
    database = DatabaseConfig
    app = AppConfig
    ingestion = IngestionConfig
    cache = CacheConfig

    @classmethod
    def initialize(cls, configure_logging: bool = True):
        """Validate settings, create directories and set up logging."""
        cls.app.validate()
        cls.ingestion.validate()
        cls.paths.ensure_directories()
        if configure_logging:
            setup_logging(cls.app.LOG_LEVEL, technical=cls.app.DEBUG)

    @classmethod
    def summary(cls) -> str:
        """Get configuration summary for logging."""
        return f"""
Configuration Summary:
  Environment: {cls.app.ENV}
  Debug: {cls.app.DEBUG}
  Database: {cls.database.DATABASE_URL}
  Cache Directory: {cls.paths.CACHE_DIR}
  Cache Quota: {cls.cache.QUOTA_BYTES} bytes
  Chunk Size: {cls.ingestion.CHUNK_SIZE}
  Log Level: {cls.app.LOG_LEVEL}
        """.strip()
