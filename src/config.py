from typing import Final

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_PORT,
    DEFAULT_UNDO_WINDOW_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    # Server configuration
    debug: bool = Field(default=True, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="Server port")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./users.db", description="Database connection URL"
    )

    # Application configuration
    app_name: str = Field(default="User Console", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")

    # Avatar uploads
    upload_dir: str = Field(
        default="uploads", description="Directory uploaded avatars are written to"
    )
    public_base_url: str = Field(
        default="",
        description="Prefix for uploaded file URLs (empty for same-origin paths)",
    )
    max_upload_bytes: int = Field(
        default=DEFAULT_MAX_UPLOAD_BYTES, ge=1, description="Largest accepted upload"
    )

    # Client data layer
    api_base_url: str = Field(
        default=f"http://localhost:{DEFAULT_PORT}/api",
        description="Base URL the client uses to reach the API",
    )
    api_timeout_seconds: float = Field(default=10.0, gt=0)
    undo_window_seconds: float = Field(
        default=DEFAULT_UNDO_WINDOW_SECONDS,
        gt=0,
        description="How long a bulk deletion can be undone",
    )
    undo_state_dir: str = Field(
        default=".undo",
        description="Where session-scoped pending undo state is persisted",
    )

    # Logging configuration
    log_level: str | None = Field(
        default=None, description="Override log level (defaults from debug flag)"
    )
    log_to_file: bool = Field(
        default=False, description="Force logging to file even in debug mode"
    )

    # Pydantic Settings configuration
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug


# Global settings instance
settings: Final = Settings()
