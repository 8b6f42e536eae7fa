"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Pydantic Settings resolves values in this order:
  1. Environment variables (highest priority)
  2. .env file values
  3. Defaults defined here (lowest priority)

Usage:
    from points_api.config import settings
    print(settings.MAX_TRANSFER_AMOUNT)
"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Point Transfer API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Point Transfer API"
    APP_VERSION: str = "2.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for single-node use; swap to a postgresql+asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/points.db"

    # Busy timeout handed to the driver: how long a connection waits for
    # another writer to release the database before giving up
    DB_TIMEOUT_SECONDS: float = 5.0

    # Upper bound on the atomic processing step of a single transfer
    TRANSFER_TIMEOUT_SECONDS: float = 10.0

    # --- Transfer rules ---
    MAX_TRANSFER_AMOUNT: Decimal = Decimal("2.00")
    NOTE_MAX_LENGTH: int = 512

    # --- User profile rules ---
    NAME_MAX_LENGTH: int = 3

    # --- Pagination ---
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 200
    DEFAULT_LEDGER_LIMIT: int = 50

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["*"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
