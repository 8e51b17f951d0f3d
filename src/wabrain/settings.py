from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .config import (
    DEFAULT_STATE_PATH,
    ConfigError,
    resolve_config_path,
    resolve_relative,
)
from .parse import DEFAULT_PREFIXES, validate_prefixes
from .state import DEFAULT_CHECKPOINT_INTERVAL

LogLevel: TypeAlias = Literal["debug", "info", "warning", "error", "critical"]


class PluginsSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    directory: Path | None = None
    enabled: list[str] = Field(default_factory=list)
    builtin: bool = True

    @field_validator("enabled", mode="before")
    @classmethod
    def _validate_enabled(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: LogLevel = "info"
    format: Literal["console", "json"] = "console"

    @field_validator("level", "format", mode="before")
    @classmethod
    def _lowercase(cls, value: Any, info) -> Any:
        if not isinstance(value, str):
            raise ValueError(f"{info.field_name} must be a string")
        return value.strip().lower()


class WabrainSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="WABRAIN__",
        env_nested_delimiter="__",
    )

    prefixes: list[str] = Field(default_factory=lambda: list(DEFAULT_PREFIXES))
    state_path: Path = DEFAULT_STATE_PATH
    checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL
    handler_timeout: float | None = None

    plugins: PluginsSettings = Field(default_factory=PluginsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("prefixes")
    @classmethod
    def _validate_prefixes(cls, value: list[str]) -> list[str]:
        return list(validate_prefixes(value))

    @field_validator("checkpoint_interval", mode="before")
    @classmethod
    def _validate_checkpoint_interval(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("checkpoint_interval must be an integer")
        return value

    @field_validator("checkpoint_interval")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value < 1:
            raise ValueError("checkpoint_interval must be greater than 0")
        return value

    @field_validator("handler_timeout")
    @classmethod
    def _positive_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("handler_timeout must be greater than 0")
        return value

    @property
    def help_prefix(self) -> str:
        return self.prefixes[0]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def with_resolved_paths(self, *, config_path: Path) -> WabrainSettings:
        plugins = self.plugins
        if plugins.directory is not None:
            plugins = plugins.model_copy(
                update={
                    "directory": resolve_relative(
                        plugins.directory, config_path=config_path
                    )
                }
            )
        return self.model_copy(
            update={
                "state_path": resolve_relative(self.state_path, config_path=config_path),
                "plugins": plugins,
            }
        )


def load_settings(path: str | Path | None = None) -> tuple[WabrainSettings, Path]:
    """Load settings from TOML plus ``WABRAIN__`` env overrides.

    A missing config file is not an error: defaults and env vars apply.
    """
    cfg_path = resolve_config_path(path)
    if cfg_path.exists() and not cfg_path.is_file():
        raise ConfigError(f"Config path {cfg_path} exists but is not a file.") from None
    settings = _load_settings_from_path(cfg_path)
    return settings.with_resolved_paths(config_path=cfg_path), cfg_path


def _load_settings_from_path(cfg_path: Path) -> WabrainSettings:
    cfg = dict(WabrainSettings.model_config)
    cfg["toml_file"] = cfg_path
    Bound = type(
        "WabrainSettingsBound",
        (WabrainSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    try:
        return Bound()
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {cfg_path}: {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"Failed to load config {cfg_path}: {exc}") from exc
