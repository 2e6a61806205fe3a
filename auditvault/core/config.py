"""
Application configuration module.

Loads settings from environment variables (or .env file) using pydantic-settings.
Secrets (DB credentials, JWT signing key, chat API key) come from the
environment and are never hardcoded for production use.
"""

from typing import List

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Audit Vault API.

    Environment variables are loaded automatically from .env if present.
    In production, these should be injected via the container orchestrator.
    """

    PROJECT_NAME: str = "Audit Vault API"
    API_V1_STR: str = "/api/v1"

    # ── SQLite mode (no external DB required) ──
    USE_SQLITE: bool = False

    # ── PostgreSQL connection parameters ──
    # Empty defaults let USE_SQLITE=true start without dummy PG variables;
    # the validator below still fails fast when PostgreSQL mode is selected.
    POSTGRES_USER: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_SERVER: str = ""
    POSTGRES_DB: str = ""
    POSTGRES_PORT: int = 5432

    @model_validator(mode="after")
    def _require_pg_credentials_unless_sqlite(self) -> "Settings":
        """Fail fast if PostgreSQL credentials are missing in production mode."""
        if not self.USE_SQLITE:
            missing = [
                name
                for name in (
                    "POSTGRES_USER",
                    "POSTGRES_PASSWORD",
                    "POSTGRES_SERVER",
                    "POSTGRES_DB",
                )
                if not getattr(self, name)
            ]
            if missing:
                vars_list = ", ".join(missing)
                raise ValueError(
                    f"PostgreSQL mode requires these environment variables: "
                    f"{vars_list}.\n\n"
                    f"Either provide them (in .env or the process environment):\n"
                    f"       POSTGRES_USER=auditvault\n"
                    f"       POSTGRES_PASSWORD=auditvault\n"
                    f"       POSTGRES_SERVER=127.0.0.1\n"
                    f"       POSTGRES_DB=auditvault\n\n"
                    f"or run against an in-memory SQLite database:\n"
                    f"       USE_SQLITE=true uvicorn auditvault.main:app"
                )
        return self

    # ── Connection pool tuning ──
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds to wait for a connection from the pool
    DB_POOL_RECYCLE: int = 1800  # seconds before a connection is recycled

    # ── CORS ──
    # Comma-separated list of allowed origins. "*" in dev, restrict in prod.
    CORS_ORIGINS: str = "*"

    # ── Logging ──
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_FILE_BACKUP_COUNT: int = 5

    # ── Database circuit breaker ──
    CB_FAILURE_THRESHOLD: int = 5
    CB_RECOVERY_TIMEOUT: float = 30.0

    # ── Authentication ──
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ── Blob store (uploaded document bytes) ──
    UPLOAD_DIR: str = "uploads"
    # Larger uploads are accepted but logged, mirroring the soft limit of
    # the upload form.
    MAX_UPLOAD_SIZE_BYTES: int = 50 * 1024 * 1024
    BLOB_STORE_MAX_ATTEMPTS: int = 5
    BLOB_STORE_RETRY_DELAY: float = 0.025  # seconds, doubles per attempt
    BLOB_STORE_TIMEOUT: float = 10.0  # seconds per write attempt

    # ── Document workflow ──
    # When enabled, status changes must also follow the forward-only table
    # in ``document_service``; role checks always apply.
    ENFORCE_STATUS_TRANSITIONS: bool = False

    # ── Chat assistant (OpenRouter-compatible completion API) ──
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_API_URL: str = "https://openrouter.ai/api/v1/chat/completions"
    CHAT_DEFAULT_MODEL: str = "openai/gpt-3.5-turbo"
    CHAT_AVAILABLE_MODELS: List[str] = [
        "openai/gpt-4o",
        "openai/gpt-4-turbo",
        "openai/gpt-3.5-turbo",
        "anthropic/claude-3.5-sonnet",
        "anthropic/claude-3-opus",
        "google/gemini-pro",
        "meta-llama/llama-3.1-70b-instruct",
    ]
    CHAT_TIMEOUT: float = 60.0

    @property
    def DATABASE_URL(self) -> str:
        """Construct the async database DSN.

        Returns an in-memory SQLite URL when ``USE_SQLITE`` is enabled,
        otherwise a PostgreSQL DSN for asyncpg.
        """
        if self.USE_SQLITE:
            return "sqlite+aiosqlite://"
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
