"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (GHSNIPPETS__CACHE__TTL_SECONDS=600)
  2. ghsnippets.yaml        (searched in cwd, then the platform config dir)
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

_DEFAULT_CONFIG_DIR = platformdirs.user_config_dir("ghsnippets")
_CONFIG_FILENAME = "ghsnippets.yaml"


def _find_config_file() -> str | None:
    """Return the path of the first ghsnippets.yaml found, or None."""
    candidates = [
        Path(_CONFIG_FILENAME),
        Path(_DEFAULT_CONFIG_DIR) / _CONFIG_FILENAME,
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class _Section(BaseModel):
    # A typo in the YAML (e.g. 'ttl_secnds') must fail loudly.
    model_config = ConfigDict(extra="forbid")


class ServerSettings(_Section):
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = ["*"]


class CacheSettings(_Section):
    ttl_seconds: int = Field(default=3600, ge=0)
    db_path: str = ":memory:"
    sweep_interval_seconds: int | None = Field(default=None, ge=1)

    @property
    def effective_sweep_interval(self) -> int:
        if self.sweep_interval_seconds is not None:
            return self.sweep_interval_seconds
        return max(1, self.ttl_seconds // 10)


class FetcherSettings(_Section):
    timeout_seconds: float = Field(default=5.0, gt=0)
    max_redirects: int = Field(default=3, ge=0)
    user_agent: str = "ghsnippets"
    github_token: str | None = None


class RenderSettings(_Section):
    default_theme: str = "github"


class RetrySettings(_Section):
    max_attempts: int = Field(default=3, ge=1)
    delay_seconds: float = Field(default=0.5, ge=0)
    backoff: float = Field(default=2.0, ge=1)


class LoggingSettings(_Section):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: GHSNIPPETS__SERVER__PORT=9090
        env_prefix="GHSNIPPETS__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    render: RenderSettings = RenderSettings()
    retry: RetrySettings = RetrySettings()
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
