"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This keeps secrets out of source code — the .env file is
gitignored, and .env.example provides a safe template for operators.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from backoffice.config import settings
    print(settings.BET_PAYOUT_MULTIPLIER)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the trading back-office.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
      - BANK_DETAILS_ENCRYPTION_KEY: Fernet key for bank account numbers at rest
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Trading Back-Office"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for single-node deployments; swap to a PostgreSQL URL (asyncpg) in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/backoffice.db"
    # Applied to non-SQLite engines. SQLite units of work use BEGIN IMMEDIATE instead.
    DB_ISOLATION_LEVEL: str = "SERIALIZABLE"

    # --- Authentication ---
    # REQUIRED: No default — forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Bank details encryption ---
    # REQUIRED: Fernet key for encrypting customer bank account numbers at rest
    # Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    BANK_DETAILS_ENCRYPTION_KEY: str

    # --- Trading ---
    # Winnings credited on a won bet = stake * multiplier (even-money payout)
    BET_PAYOUT_MULTIPLIER: int = 2
    SESSION_DURATION_SECONDS: int = 60

    # --- Transaction references ---
    # How many times a colliding PREFIX-username-timestamp reference is bumped
    REFERENCE_RETRY_LIMIT: int = 10

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
