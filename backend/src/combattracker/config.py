"""Environment-driven settings (pydantic-settings)."""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COMBATTRACKER_", env_file=".env", case_sensitive=False
    )

    app_title: str = "Combat Tracker"

    # SQLite file next to the project by default
    database_url: str = "sqlite:///./combattracker.sqlite3"
    database_echo: bool = False

    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
