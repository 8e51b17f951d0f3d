from __future__ import annotations

from pathlib import Path

HOME_DIR = Path.home() / ".wabrain"
HOME_CONFIG_PATH = HOME_DIR / "wabrain.toml"
DEFAULT_STATE_PATH = HOME_DIR / "memory.json"


class ConfigError(RuntimeError):
    pass


def resolve_config_path(path: str | Path | None) -> Path:
    return Path(path).expanduser() if path else HOME_CONFIG_PATH


def resolve_relative(value: Path, *, config_path: Path) -> Path:
    path = value.expanduser()
    if not path.is_absolute():
        path = config_path.parent / path
    return path
