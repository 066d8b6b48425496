from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage backend
    storage_type: Literal["file", "database"] = Field(default="file")
    database_url: str = Field(default="sqlite+aiosqlite:///./jobwarden.db")

    # Application
    base_url: str = Field(default="http://localhost:8000")
    debug: bool = Field(default=False)
    log_dir: str = Field(default="")

    # Scheduler
    scheduler_enabled: bool = Field(default=True)
    scheduler_timezone: str = Field(default="UTC")
    scheduler_max_concurrent_jobs: int = Field(default=10)
    display_utc_offset_hours: int = Field(default=0)

    # Notification channels
    pushplus_token: str = Field(default="")
    notification_webhook_url: str = Field(default="")
    resend_api_key: str = Field(default="")
    email_from: str = Field(default="jobwarden <noreply@localhost>")


class StorageConfig:
    """File storage configuration from config.yml."""

    def __init__(self, data: dict[str, Any]) -> None:
        self.file_path: str = data.get("file_path", "App_Data/jobwarden")
        self.enable_backup: bool = data.get("enable_backup", True)
        self.backup_path: str = data.get("backup_path", "App_Data/jobwarden/backups")
        self.backup_interval_seconds: int = data.get("backup_interval_seconds", 3600)
        self.max_backup_files: int = data.get("max_backup_files", 10)
        self.log_retention_days: int = data.get("log_retention_days", 30)


class SchedulerConfig:
    """Scheduling engine configuration from config.yml."""

    def __init__(self, data: dict[str, Any]) -> None:
        self.name: str = data.get("name", "jobwarden")
        self.auto_start: bool = data.get("auto_start", True)
        self.misfire_grace_seconds: int = data.get("misfire_grace_seconds", 60)
        self.coalesce: bool = data.get("coalesce", True)


class NotificationDefaults:
    """Notification defaults from config.yml and environment.

    Only used to seed the persisted notification config; once an operator
    saves a config through the API, the stored setting wins.
    """

    def __init__(self, data: dict[str, Any], settings: "Settings") -> None:
        self.channel: str = data.get("channel", "pushplus")
        self.template: str = data.get("template", "html")
        self.token: str = settings.pushplus_token
        self.webhook_url: str = settings.notification_webhook_url
        self.email_to: list[str] = list(data.get("email_to", []))
        self.timeout_seconds: int = data.get("timeout_seconds", 30)


class AppConfig:
    """Combined application configuration from .env and config.yml."""

    def __init__(self) -> None:
        self.settings = Settings()
        self._load_yaml()

    def _load_yaml(self) -> None:
        config_path = Path("config.yml")
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        else:
            data = {}

        self.storage = StorageConfig(data.get("storage", {}))
        self.scheduler = SchedulerConfig(data.get("scheduler", {}))
        self.notifications = NotificationDefaults(data.get("notifications", {}), self.settings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@lru_cache
def get_config() -> AppConfig:
    """Get cached full config instance."""
    return AppConfig()
