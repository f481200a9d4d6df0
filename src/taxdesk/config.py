"""Configuration management using pydantic-settings."""

import tomllib
from enum import Enum
from pathlib import Path
from typing import Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.periods import MONTH_NAMES
from .domain.services import DEFAULT_ASSIGNMENT_WORKERS, DEFAULT_BATCH_CAP

DEFAULT_SNAPSHOT = "~/.local/share/taxdesk/workspace.yaml"
DEFAULT_TIMEOUT = 30.0
CONFIG_PATH = Path("~/.config/taxdesk/config.toml").expanduser()


class StoreBackend(str, Enum):
    """Available ledger store backends."""

    YAML = "yaml"
    SUPABASE = "supabase"


class StoreConfig(BaseSettings):
    """Ledger store configuration."""

    model_config = SettingsConfigDict(env_prefix="TAXDESK_STORE_")

    backend: StoreBackend = StoreBackend.YAML
    snapshot: Path = Path(DEFAULT_SNAPSHOT)
    url: str = ""
    api_key: str = ""
    timeout: float = DEFAULT_TIMEOUT

    @field_validator("snapshot", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser()

    @model_validator(mode="after")
    def require_url(self) -> Self:
        if self.backend == StoreBackend.SUPABASE and not self.url:
            raise ValueError("store.url is required for the supabase backend")
        return self


class PostingConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TAXDESK_POSTING_")

    batch_cap: int = DEFAULT_BATCH_CAP
    assignment_workers: int = DEFAULT_ASSIGNMENT_WORKERS

    @field_validator("batch_cap", "assignment_workers")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class CalendarConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TAXDESK_CALENDAR_")

    locale: str = "pl"

    @field_validator("locale")
    @classmethod
    def known_locale(cls, v: str) -> str:
        if v not in MONTH_NAMES:
            raise ValueError(f"Unsupported locale: {v}")
        return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TAXDESK_")

    store: StoreConfig = Field(default_factory=StoreConfig)
    posting: PostingConfig = Field(default_factory=PostingConfig)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from TOML file, falling back to defaults."""
    path = config_path or CONFIG_PATH

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)

        store = StoreConfig(**data.get("store", {}))
        posting = PostingConfig(**data.get("posting", {}))
        calendar = CalendarConfig(**data.get("calendar", {}))
        return Settings(store=store, posting=posting, calendar=calendar)

    return Settings()
