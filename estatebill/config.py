"""Application configuration from environment variables."""

from typing import Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./estatebill.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/estatebill.log", description="Log file path")

    # Formatting
    locale: str = Field(default="en_US", description="Locale for statement amounts and dates")

    # Invoices
    invoice_number_prefix: str = Field(default="INV", description="Prefix of generated invoice numbers")
    invoice_due_days: int = Field(default=30, ge=0, description="Days between invoice and due date")

    # Scheduler
    scheduler_max_workers: int = Field(
        default=4, ge=1, description="Definitions processed concurrently per run"
    )
    scheduler_definition_timeout: float = Field(
        default=30.0, gt=0, description="Seconds one definition may take before it is abandoned"
    )
    scheduler_interval_minutes: int = Field(
        default=60, ge=1, description="Interval between runs in serve mode"
    )


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings instance.

    Lazy-loaded so that environment variables set by tests or the CLI
    before first use are honoured.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings_instance
    _settings_instance = None


__all__ = ["Settings", "get_settings", "reset_settings"]
