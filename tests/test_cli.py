"""Tests for claude_roi.cli."""

import json
import socket
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from claude_roi import cli
from claude_roi.cli import RunOptions, build_parser, build_report, resolve_options
from claude_roi.services.config_manager import ConfigManager
from claude_roi.services.correlator import MatchStrategy


@pytest.fixture
def config(isolated_settings):
    return ConfigManager(settings=isolated_settings)


def _write_session(projects_dir: Path, session_id: str = "sess-1"):
    project_dir = projects_dir / "-home-wiz-projects-myapp"
    project_dir.mkdir(parents=True, exist_ok=True)
    records = [
        {"type": "user", "sessionId": session_id, "cwd": "/nonexistent/myapp",
         "timestamp": _recent(), "message": {"role": "user", "content": "hello"}},
        {"type": "assistant", "requestId": "r1", "timestamp": _recent(),
         "message": {"role": "assistant", "model": "claude-sonnet-4-5",
                     "content": [{"type": "text", "text": "hi"}],
                     "usage": {"input_tokens": 100, "output_tokens": 20}}},
    ]
    (project_dir / f"{session_id}.jsonl").write_text(
        "\n".join(json.dumps(r) for r in records) + "\n")


def _recent() -> str:
    return (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()


# ---------------------------------------------------------------------------
# 1. Option resolution
# ---------------------------------------------------------------------------

def test_defaults_come_from_config(config):
    options = resolve_options(build_parser().parse_args([]), config)
    assert options.days == 30
    assert options.matching == MatchStrategy.NEAREST
    assert options.pricing == "versioned"
    assert options.use_cache is True
    assert options.projects_dir == Path("~/.claude/projects").expanduser()


def test_flags_override_config(config):
    config.set_int("general/days", 90)
    args = build_parser().parse_args([
        "--days", "7", "--matching", "greedy", "--pricing", "flat",
        "--no-cache", "--projects-dir", "/tmp/projects", "--project", "myapp",
    ])
    options = resolve_options(args, config)
    assert options.days == 7
    assert options.matching == MatchStrategy.GREEDY
    assert options.pricing == "flat"
    assert options.use_cache is False
    assert options.projects_dir == Path("/tmp/projects")
    assert options.project == "myapp"


def test_stored_settings_used(config):
    config.set_int("general/days", 90)
    config.set_string("general/matching", "greedy")
    options = resolve_options(build_parser().parse_args([]), config)
    assert options.days == 90
    assert options.matching == MatchStrategy.GREEDY


def test_invalid_choice_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--pricing", "free"])


def test_invalid_stored_choice_falls_back(config, caplog):
    config.set_string("general/matching", "fastest")
    config.set_string("general/pricing", "free")
    options = resolve_options(build_parser().parse_args([]), config)

    assert options.matching == MatchStrategy.NEAREST
    assert options.pricing == "versioned"
    assert "Ignoring invalid general/matching setting 'fastest'" in caplog.text
    # The bad values are forgotten, not re-read on the next run
    assert config.get_string("general/matching") == "nearest"
    assert config.get_string("general/pricing") == "versioned"


# ---------------------------------------------------------------------------
# 2. Pipeline
# ---------------------------------------------------------------------------

def _options(projects_dir, **overrides):
    values = dict(projects_dir=projects_dir, days=30, project=None,
                  matching=MatchStrategy.NEAREST, pricing="versioned",
                  use_cache=False, refresh=False)
    values.update(overrides)
    return RunOptions(**values)


def test_build_report_without_sessions(tmp_projects_dir):
    assert build_report(_options(tmp_projects_dir)) is None


def test_build_report_unknown_pricing(tmp_projects_dir):
    with pytest.raises(ValueError):
        build_report(_options(tmp_projects_dir, pricing="free"))


def test_build_report(tmp_projects_dir, monkeypatch):
    _write_session(tmp_projects_dir)
    monkeypatch.setattr(cli, "get_git_user", lambda: {"name": "Dev", "email": "dev@example.com"})
    payload = build_report(_options(tmp_projects_dir))

    assert payload["summary"]["totalSessions"] == 1
    assert payload["summary"]["totalCommits"] == 0
    assert payload["meta"]["gitUser"]["email"] == "dev@example.com"
    assert payload["sessions"][0]["projectName"] == "myapp"


# ---------------------------------------------------------------------------
# 3. Entry point
# ---------------------------------------------------------------------------

@pytest.fixture
def isolated_run(isolated_settings, monkeypatch):
    monkeypatch.setattr(cli, "ConfigManager", lambda: ConfigManager(settings=isolated_settings))
    monkeypatch.setattr(cli, "get_git_user", lambda: {"name": "Dev", "email": "dev@example.com"})


def test_run_json(isolated_run, tmp_projects_dir, capsysbinary):
    _write_session(tmp_projects_dir)
    code = cli.run(["--json", "--no-cache", "--projects-dir", str(tmp_projects_dir)])
    assert code == 0
    out = capsysbinary.readouterr().out
    data = json.loads(out)
    assert data["summary"]["totalSessions"] == 1
    assert "tokenAnalytics" in data


def test_run_no_sessions(isolated_run, tmp_projects_dir, capsys):
    code = cli.run(["--json", "--no-cache", "--projects-dir", str(tmp_projects_dir)])
    assert code == 0
    assert "No Claude Code sessions found." in capsys.readouterr().err


def test_port_in_use(tmp_projects_dir, monkeypatch, capsys):
    import uvicorn

    def fail(*args, **kwargs):
        raise AssertionError("server started")

    monkeypatch.setattr(uvicorn, "run", fail)
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen(1)
        port = busy.getsockname()[1]

        assert cli.check_port("127.0.0.1", port) is not None
        code = cli.serve({}, _options(tmp_projects_dir), "127.0.0.1", port)

    assert code == 1
    assert f"Try: claude-roi --port {port + 1}" in capsys.readouterr().err


def test_free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    assert cli.check_port("127.0.0.1", port) is None


def test_run_serves_without_json(isolated_run, tmp_projects_dir, monkeypatch):
    _write_session(tmp_projects_dir)
    served = {}

    def fake_serve(payload, options, host, port):
        served.update(payload=payload, host=host, port=port)
        return 0

    monkeypatch.setattr(cli, "serve", fake_serve)
    assert cli.run(["--no-cache", "-p", "4000", "--projects-dir", str(tmp_projects_dir)]) == 0
    assert served["port"] == 4000
    assert served["host"] == "127.0.0.1"
    assert served["payload"]["summary"]["totalSessions"] == 1
