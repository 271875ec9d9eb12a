"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "news-requester"
    app_env: Literal["development", "testing", "production"] = "development"
    database_url: str = ""
    source_name: str = "NewsAPI"
    query_spreadsheet_path: str = ""

    window_days: int = Field(default=10, ge=1)
    horizon_days: int = Field(default=180, ge=0)
    provider_lookback_days: int = Field(default=29, ge=0)
    pacing_delay_ms: int = Field(default=1000, ge=0)
    request_budget: int = Field(default=5, ge=1)
    request_timeout_s: float = Field(default=30.0, ge=0.5)
    activate_requests: bool = False
    advance_on_malformed: bool = True

    guardrail_target_time: str = "23:00"
    guardrail_window_minutes: int = Field(default=5, ge=0)

    response_dir: str = ""
    downstream_command: str = ""
    downstream_timeout_s: float = Field(default=3600.0, ge=1.0)

    log_dir: str = "logs"
    log_max_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)
    log_backup_count: int = Field(default=5, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="NEWS_REQUESTER_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    @property
    def pacing_delay_s(self) -> float:
        return self.pacing_delay_ms / 1000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
