"""
Configuration management for the Dockstore webservice.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Every field can be overridden by the upper-cased environment variable
    of the same name (e.g. ``DATABASE_URL``) or from a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Dockstore")
    debug: bool = Field(default=False)

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)
    api_workers: int = Field(default=1)

    # Database
    database_url: str = Field(default="sqlite:///./dockstore.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="'json' or 'console'")

    # Search indexing
    elasticsearch_url: Optional[str] = Field(
        default=None,
        description="Base URL of the search cluster. Unset disables indexing.",
    )
    elasticsearch_index: str = Field(default="entry")
    elasticsearch_timeout_seconds: float = Field(default=10.0)

    # Refresh
    refresh_skip_empty_snapshots: bool = Field(
        default=True,
        description=(
            "Skip reconciliation when source control returns no versions for "
            "an entry that currently has versions, instead of deleting them."
        ),
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
