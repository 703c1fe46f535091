from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment/.env."""

    database_url: str = Field(default="sqlite:///data/casetracker.db")
    max_attachment_bytes: int = Field(default=10 * 1024 * 1024)
    upcoming_window_days: int = Field(default=7)
    upcoming_limit: int = Field(default=10)
    alert_refresh_seconds: float = Field(default=60.0)
    notifications_enabled: bool = Field(default=True)
    notification_check_interval_ms: int = Field(default=3_600_000)
    notification_alert_days: list[int] = Field(default_factory=lambda: [7, 3, 1])
    notification_repeat_hours: float = Field(default=12.0)
    notification_retention_days: int = Field(default=7)
    password_hash_rounds: int = Field(default=12, ge=4, le=31)
    seed_demo_user: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="CASETRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )
