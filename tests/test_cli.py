import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tests.fakes import GROUP_JID, group_event, make_event
from wabrain import __version__, cli
from wabrain.cli import config as cli_config


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch) -> None:
    monkeypatch.setattr(cli_config, "setup_logging", lambda *args, **kwargs: None)


def _config(tmp_path: Path, extra: str = "") -> Path:
    path = tmp_path / "wabrain.toml"
    path.write_text('state_path = "memory.json"\n' + extra, encoding="utf-8")
    return path


def _events(tmp_path: Path, rows: list) -> Path:
    path = tmp_path / "events.jsonl"
    lines = [json.dumps(row) for row in rows]
    path.write_text("\n".join(lines[:1] + ["", "{broken"] + lines[1:]) + "\n", encoding="utf-8")
    return path


def test_version() -> None:
    result = CliRunner().invoke(cli.create_app(), ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_replay_runs_pipeline_and_persists_state(tmp_path: Path) -> None:
    config_path = _config(tmp_path)
    events = _events(
        tmp_path,
        [
            group_event("#ping"),
            [make_event(text="hello"), make_event(text="#nope", from_me=True)],
            make_event(text="#menu utilities"),
        ],
    )

    result = CliRunner().invoke(
        cli.create_app(), ["replay", str(events), "--config", str(config_path)]
    )

    assert result.exit_code == 0, result.output
    assert "Pong!" in result.stdout
    assert "UTILITIES" in result.stdout
    assert "messages processed" in result.stdout
    state = json.loads((tmp_path / "memory.json").read_text(encoding="utf-8"))
    assert state["stats"]["totalMessages"] == 3
    assert state["stats"]["totalCommands"] == 2
    assert GROUP_JID in state["groups"]


def test_replay_missing_events_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli.create_app(), ["replay", str(tmp_path / "nope.jsonl")]
    )

    assert result.exit_code != 0


def test_invalid_config_exits_with_error(tmp_path: Path) -> None:
    config_path = _config(tmp_path, "checkpoint_interval = 0\n")
    events = _events(tmp_path, [make_event()])

    result = CliRunner().invoke(
        cli.create_app(), ["replay", str(events), "--config", str(config_path)]
    )

    assert result.exit_code == 1
    assert "error: Invalid config" in result.output


def test_plugins_lists_commands_and_errors(tmp_path: Path) -> None:
    plugin_dir = tmp_path / "plugins"
    plugin_dir.mkdir()
    (plugin_dir / "broken.py").write_text("raise RuntimeError('nope')\n", encoding="utf-8")
    config_path = _config(tmp_path, '[plugins]\ndirectory = "plugins"\nenabled = ["none-installed"]\n')

    result = CliRunner().invoke(cli.create_app(), ["plugins", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "#ping" in result.stdout
    assert "#groups" in result.stdout
    assert "loaded 3 of 4 candidates (1 failed)" in result.stdout
    assert "broken [broken.py]: nope" in result.stdout
    assert not (tmp_path / "memory.json").exists()


def test_stats_reads_state_file(tmp_path: Path) -> None:
    config_path = _config(tmp_path)
    events = _events(tmp_path, [make_event(text="hi"), make_event(text="#ping")])
    app = cli.create_app()
    CliRunner().invoke(app, ["replay", str(events), "--config", str(config_path)])

    result = CliRunner().invoke(app, ["stats", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "messages processed" in result.stdout
    assert "commands executed" in result.stdout


def test_stats_without_state_file(tmp_path: Path) -> None:
    config_path = _config(tmp_path)

    result = CliRunner().invoke(cli.create_app(), ["stats", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "no state file" in result.output
