"""
Configuration Management

Uses pydantic-settings for type-safe configuration with environment variable support.
All settings can be overridden via environment variables or .env file.
"""

from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # API Server
    # =========================================================================
    api_host: str = Field(default="0.0.0.0", description="API server bind address")
    api_port: int = Field(default=3001, description="API server port")
    api_key: str = Field(default="", description="API key for authenticated endpoints")

    # =========================================================================
    # Persistence
    # =========================================================================
    data_dir: str = Field(default="data", description="Directory holding all persisted state")
    routines_file: str = Field(default="routines.json", description="Routine collection file")
    sources_file: str = Field(default="sources.json", description="Credential source file")
    settings_file: str = Field(default="settings.json", description="Runtime settings file")
    vault_key_file: str = Field(default="vault.key", description="Hex-encoded vault key file")
    activity_db_file: str = Field(default="activity.db", description="Activity log SQLite database")

    # =========================================================================
    # Device Control API
    # =========================================================================
    smartthings_api_url: str = Field(
        default="https://api.smartthings.com/v1",
        description="Base URL of the device-control REST API"
    )
    smartthings_token: Optional[str] = Field(
        default=None,
        description="Fallback bearer token used when no enabled source is stored"
    )
    remote_timeout: float = Field(default=10.0, description="Remote API request timeout in seconds")

    # =========================================================================
    # Scheduler
    # =========================================================================
    routine_check_interval_ms: int = Field(
        default=30000, description="Default routine evaluation interval in milliseconds"
    )
    max_concurrent_routines: int = Field(
        default=8, ge=1, description="Upper bound on routine runs executing at once"
    )

    # =========================================================================
    # Logging
    # =========================================================================
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/weephub.log", description="Log file path")

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def data_path(self) -> Path:
        """Get absolute path to the data directory"""
        return Path(self.data_dir).resolve()

    @property
    def routines_path(self) -> Path:
        return self.data_path / self.routines_file

    @property
    def sources_path(self) -> Path:
        return self.data_path / self.sources_file

    @property
    def settings_path(self) -> Path:
        return self.data_path / self.settings_file

    @property
    def vault_key_path(self) -> Path:
        return self.data_path / self.vault_key_file

    @property
    def activity_db_path(self) -> Path:
        return self.data_path / self.activity_db_file

    @property
    def log_full_path(self) -> Path:
        """Get absolute path to log file"""
        return Path(self.log_file).resolve()

    def ensure_directories(self):
        """Create necessary directories"""
        self.data_path.mkdir(parents=True, exist_ok=True)
        self.log_full_path.parent.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
