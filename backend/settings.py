# backend/settings.py
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Environment-driven settings. Every field can be overridden with a
    SLEEP_-prefixed environment variable (e.g. SLEEP_MONGO_URL) or a .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="SLEEP_", env_file=".env", case_sensitive=False
    )

    # Document store
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "mySleepDB"
    nights_collection: str = "nights"
    prior_substances_collection: str = "priorSubstances"
    server_selection_timeout_ms: int = 5000

    # HTTP
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: List[str] = ["*"]
    frontend_dir: Path = Path(__file__).parent / "build"

    # 0 = Monday ... 6 = Sunday
    week_starts_on: int = 0

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator("week_starts_on")
    @classmethod
    def check_weekday(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError("week_starts_on must be between 0 (Monday) and 6 (Sunday)")
        return v

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
