"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Configuration
    cors_origins: str = Field(default="http://localhost:5173", alias="CORS_ORIGINS")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Remote generation service
    generation_api_url: str = Field(default="", alias="GENERATION_API_URL")
    generation_api_key: str = Field(default="", alias="GENERATION_API_KEY")
    generation_service: str = Field(default="meshy-5", alias="GENERATION_SERVICE")
    art_style: str = Field(default="realistic", alias="ART_STYLE")
    request_timeout_seconds: float = Field(default=30.0, alias="REQUEST_TIMEOUT_SECONDS")
    max_prompt_length: int = Field(default=600, alias="MAX_PROMPT_LENGTH")

    # Stage polling
    poll_interval_seconds: float = Field(default=3.0, alias="POLL_INTERVAL_SECONDS")
    max_poll_attempts: int = Field(default=60, ge=1, alias="MAX_POLL_ATTEMPTS")

    # Fallback result
    placeholder_model_url: str = Field(
        default="builtin://placeholder/cube.glb", alias="PLACEHOLDER_MODEL_URL"
    )

    # History / collections
    history_limit: int = Field(default=20, ge=1, alias="HISTORY_LIMIT")
    collections_limit: int = Field(default=10, ge=1, alias="COLLECTIONS_LIMIT")

    # Durable key-value store (in-memory when empty)
    database_url: str = Field(default="", alias="DATABASE_URL")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with clear error messages if configuration is incomplete.
        Validation is skipped in test environments.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not self.generation_api_url:
            missing.append(
                "GENERATION_API_URL: Base URL of the generation service "
                "(e.g. http://localhost:3001/api/ai)"
            )

        if self.app_env == "production" and not self.database_url:
            missing.append(
                "DATABASE_URL: Required in production so generation history survives restarts"
            )

        if missing:
            error_msg = "CRITICAL: Missing required environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            error_msg += "\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.app_env == "production":
        renderer = [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
