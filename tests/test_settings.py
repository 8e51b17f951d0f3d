from pathlib import Path

import pytest

from wabrain.config import ConfigError
from wabrain.settings import WabrainSettings, load_settings


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "wabrain.toml"
    path.write_text(body, encoding="utf-8")
    return path


def test_defaults_when_config_is_missing(tmp_path: Path) -> None:
    config_path = tmp_path / "missing.toml"

    settings, path = load_settings(config_path)

    assert path == config_path
    assert settings.prefixes == ["#", "-", "!"]
    assert settings.checkpoint_interval == 10
    assert settings.handler_timeout is None
    assert settings.plugins.builtin is True
    assert settings.plugins.enabled == []
    assert settings.logging.level == "info"
    assert settings.state_path.name == "memory.json"
    assert settings.state_path.is_absolute()


def test_toml_values_and_relative_paths(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        'prefixes = ["!", "."]\n'
        'state_path = "data/memory.json"\n'
        "checkpoint_interval = 3\n"
        "handler_timeout = 2.5\n"
        "[plugins]\n"
        'directory = "plugins"\n'
        'enabled = ["wabrain-weather"]\n'
        "builtin = false\n"
        "[logging]\n"
        'level = "DEBUG"\n'
        'format = "json"\n',
    )

    settings, _ = load_settings(config_path)

    assert settings.prefixes == ["!", "."]
    assert settings.help_prefix == "!"
    assert settings.state_path == tmp_path / "data" / "memory.json"
    assert settings.checkpoint_interval == 3
    assert settings.handler_timeout == 2.5
    assert settings.plugins.directory == tmp_path / "plugins"
    assert settings.plugins.enabled == ["wabrain-weather"]
    assert settings.plugins.builtin is False
    assert settings.logging.level == "debug"
    assert settings.logging.format == "json"


def test_env_overrides_toml(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(tmp_path, "checkpoint_interval = 3\n")
    monkeypatch.setenv("WABRAIN__CHECKPOINT_INTERVAL", "25")
    monkeypatch.setenv("WABRAIN__LOGGING__LEVEL", "warning")

    settings, _ = load_settings(config_path)

    assert settings.checkpoint_interval == 25
    assert settings.logging.level == "warning"


@pytest.mark.parametrize(
    ("body", "match"),
    [
        ("prefixes = []\n", "prefix"),
        ('prefixes = ["!", "!!"]\n', "ambiguous"),
        ("checkpoint_interval = 0\n", "checkpoint_interval"),
        ("checkpoint_interval = true\n", "checkpoint_interval"),
        ("handler_timeout = -1\n", "handler_timeout"),
        ('[logging]\nlevel = "loud"\n', "level"),
        ("[plugins]\nunknown = 1\n", "unknown"),
    ],
)
def test_invalid_settings_raise_config_error(tmp_path: Path, body: str, match: str) -> None:
    config_path = _write_config(tmp_path, body)

    with pytest.raises(ConfigError, match=match):
        load_settings(config_path)


def test_invalid_toml_file_raises_config_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "prefixes = [\n")

    with pytest.raises(ConfigError, match="Failed to load config"):
        load_settings(config_path)


def test_invalid_value_in_file_raises_config_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "checkpoint_interval = -5\n")

    with pytest.raises(ConfigError, match="Invalid config"):
        load_settings(config_path)


def test_config_path_must_be_a_file(tmp_path: Path) -> None:
    directory = tmp_path / "wabrain.toml"
    directory.mkdir()

    with pytest.raises(ConfigError, match="not a file"):
        load_settings(directory)


def test_absolute_state_path_is_kept(tmp_path: Path) -> None:
    absolute = tmp_path / "elsewhere" / "state.json"
    config_path = _write_config(tmp_path, f'state_path = "{absolute.as_posix()}"\n')

    settings, _ = load_settings(config_path)

    assert settings.state_path == absolute
    assert isinstance(settings, WabrainSettings)
