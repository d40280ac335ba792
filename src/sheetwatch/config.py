"""Application configuration using pydantic-settings.

Configuration comes from environment variables or a .env file.
The application will fail to start if required configuration is missing.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Required environment variables:
    - SPREADSHEET_ID: The spreadsheet to monitor
    - GOOGLE_SERVICE_ACCOUNT_KEY: Path to the service account JSON key
      (not needed when LOCAL_SNAPSHOT_DIR is set)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars not defined in Settings
    )

    # Server
    webhook_port: int = 3001
    webhook_url: str = ""
    environment: str = "development"
    log_level: str = "INFO"

    # Google
    google_service_account_key: str = ""
    spreadsheet_id: str = ""
    request_timeout: int = 60

    # Drive watch channel. When channel_id/channel_token are unset, incoming
    # notifications are not checked against them.
    channel_id: str | None = None
    channel_token: str | None = None

    # Read snapshots from <dir>/<spreadsheet_id>/snapshot.json instead of the API
    local_snapshot_dir: Path | None = None

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Validate that required settings are configured."""
        errors = []

        if not self.spreadsheet_id:
            errors.append("SPREADSHEET_ID must be set")

        if not self.google_service_account_key and self.local_snapshot_dir is None:
            errors.append("GOOGLE_SERVICE_ACCOUNT_KEY must be set")

        if errors:
            raise ValueError("Configuration errors:\n  - " + "\n  - ".join(errors))

        if not self.webhook_url:
            object.__setattr__(self, "webhook_url", f"http://localhost:{self.webhook_port}")

        return self

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of: {allowed}")
        return v

    @field_validator("webhook_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v_upper


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    """
    return Settings()
