"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env
file as a fallback. Nothing here is secret: the simulator stores credentials
as Argon2 hashes and needs no signing keys.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from atm.config import settings
    print(settings.DATABASE_URL)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the ATM ledger."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    APP_NAME: str = "ATM Ledger"
    APP_VERSION: str = "0.1.0"
    # Echo every SQL statement through the sqlalchemy.engine logger
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/atm.db"

    # --- Logging ---
    LOG_LEVEL: str = "WARNING"
    # "standard" or "json"
    LOG_FORMAT: str = "standard"

    # --- Ledger retry bounds ---
    # Candidate account numbers tried before giving up on registration
    ACCOUNT_NUMBER_MAX_ATTEMPTS: int = 10
    # Read-verify-write rounds for a single debit or credit
    BALANCE_UPDATE_MAX_ATTEMPTS: int = 5
    # Rounds allowed for the compensating credit of a failed transfer
    COMPENSATION_MAX_ATTEMPTS: int = 50
    # Linear backoff between rounds: attempt * RETRY_BACKOFF_SECONDS
    RETRY_BACKOFF_SECONDS: float = 0.005


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
