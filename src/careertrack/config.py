from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def repo_root() -> Path:
    """
    Description: Resolve repository root from within src/ package.
    Layer: L0
    Input: None
    Output: Absolute Path to repo root
    """
    # src/careertrack/config.py -> src/careertrack -> src -> repo root
    return Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    """
    Description: Central configuration loader for careertrack.
    Layer: L0
    Input: .env in repo root + environment variables
    Output: Strongly typed settings object
    """

    model_config = SettingsConfigDict(
        env_file=str(repo_root() / ".env"),
        env_file_encoding="utf-8",
        env_prefix="CAREERTRACK_",
        extra="ignore",
    )

    # Storage
    database_path: str = "outputs/careertrack.db"

    # Suggestion rules
    stale_days: int = 7
    stale_high_priority_days: int = 14
    upcoming_deadline_days: int = 7
    urgent_deadline_days: int = 2
    default_snooze_days: int = 7

    # Free-tier style cap on tracked applications (None = unlimited)
    application_limit: Optional[int] = None

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Runtime
    log_level: str = "INFO"
    environment: str = "local"

    def resolved_database_path(self) -> Path:
        """Relative database paths are anchored at the repo root."""
        path = Path(self.database_path)
        return path if path.is_absolute() else repo_root() / path


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Description: Cached settings accessor for the API and services.
    Layer: L0
    Input: None
    Output: Settings
    """
    return Settings()
