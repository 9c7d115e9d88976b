"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (RELEASECACHE__SYNC__UNSTABLE_DAYS=10)
  2. releasecache.yaml      (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("releasecache")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first releasecache.yaml found, or None."""
    candidates = [
        Path("releasecache.yaml"),
        Path(platformdirs.user_config_dir("releasecache")) / "releasecache.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class _Section(BaseModel):
    # A typo in a nested key must not silently fall back to the default.
    model_config = ConfigDict(extra="forbid")


class SyncSettings(_Section):
    # Minutes since the last successful sync after which the next call walks
    # the whole feed and drops deleted versions. 0 forces that on every call.
    reset_delta_minutes: int = Field(default=3 * 24 * 60, ge=0)
    # Versions released at least this many days ago are treated as immutable.
    unstable_days: float = Field(default=30.0, ge=0)
    # Hard lifetime of a record, counted from its creation.
    retention_days: int = Field(default=7, ge=1)

    @property
    def retention_minutes(self) -> int:
        return self.retention_days * 24 * 60


class GithubSettings(_Section):
    api_url: str = "https://api.github.com/"
    token: str | None = None
    page_size: int = Field(default=100, ge=1, le=100)
    timeout_seconds: float = 30.0


class CacheSettings(_Section):
    db_path: str = _DEFAULT_DB_PATH
    cleanup_interval_hours: int = 6


class LoggingSettings(_Section):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: RELEASECACHE__GITHUB__TOKEN=...
        env_prefix="RELEASECACHE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    sync: SyncSettings = SyncSettings()
    github: GithubSettings = GithubSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
