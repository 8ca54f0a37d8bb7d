"""
credX Rules Configuration Management

Uses Pydantic Settings for type-safe configuration from environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # =========================================================================
    # APPLICATION
    # =========================================================================
    APP_NAME: str = "credX Rules"
    APP_ENV: Literal["development", "test", "staging", "production"] = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "info"
    VERSION: str = "0.1.0"

    # =========================================================================
    # API SERVER
    # =========================================================================
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3000"

    # =========================================================================
    # DATABASE
    # =========================================================================
    # Create missing tables at startup; off where the hosted backend owns the schema
    DB_CREATE_TABLES: bool = True

    # =========================================================================
    # RULE ENGINE
    # =========================================================================
    # Upper bound for evaluating and executing a single rule against a ticket
    RULE_EXECUTION_TIMEOUT_SECONDS: float = 10.0
    # Tickets scanned by a manual ("Play") rule run
    MANUAL_RUN_TICKET_LIMIT: int = 100
    # Role used by the `{"assign_to_role": true}` shorthand
    DEFAULT_ASSIGNEE_ROLE: str = "admin"

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================
    # Channel used by notify actions that do not name one
    NOTIFICATION_CHANNEL: Literal["in_app", "webhook"] = "in_app"
    NOTIFICATION_WEBHOOK_URL: str = ""
    NOTIFICATION_TIMEOUT_SECONDS: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
