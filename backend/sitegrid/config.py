from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "SiteGrid"
    environment: str = os.getenv("SG_ENVIRONMENT", "development")
    host: str = os.getenv("SG_HOST", "127.0.0.1")
    port: int = int(os.getenv("SG_PORT", "8080"))
    log_level: str = os.getenv("SG_LOG_LEVEL", "INFO")
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("SG_CORS_ORIGINS", "http://127.0.0.1:5173,http://localhost:5173").split(",")
            if origin.strip()
        ]
    )

    storage_backend: str = os.getenv("SG_STORAGE", "sqlite")
    sqlite_path: Path = Path(os.getenv("SG_SQLITE_PATH", "./data/sitegrid.db"))
    database_url_override: Optional[str] = os.getenv("SG_DATABASE_URL")

    export_dir: Path = Path(os.getenv("SG_EXPORT_DIR", "./data/exports"))

    timezone: str = os.getenv("TZ", "UTC")

    weekly_capacity_hours: float = float(os.getenv("SG_WEEKLY_CAPACITY_HOURS", "40"))
    maintenance_window_days: int = int(os.getenv("SG_MAINTENANCE_WINDOW_DAYS", "14"))
    realtime_buffer_size: int = int(os.getenv("SG_REALTIME_BUFFER", "200"))

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if not value:
            return []
        return [origin.strip() for origin in value.split(",") if origin.strip()]

    @computed_field
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return f"sqlite:///{self.sqlite_path}"


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
settings.export_dir.mkdir(parents=True, exist_ok=True)
