from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from cli import common
from cli.main import app
from conftest import FakeRunner

runner = CliRunner()


@pytest.fixture
def no_tools(monkeypatch) -> FakeRunner:
    fake = FakeRunner()
    monkeypatch.setattr(common, "runner", lambda: fake)
    return fake


def test_help_lists_command_groups():
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for group in ("configs", "packages", "github", "sync", "ollama", "system", "doctor"):
        assert group in result.output


def test_delete_repos_without_targets_is_usage_error():
    result = runner.invoke(app, ["github", "delete-repos", "acme"])

    assert result.exit_code == 1
    assert "Must specify either --all or provide repository names" in result.output


def test_copy_without_orgs_is_usage_error(monkeypatch):
    monkeypatch.delenv("SRC_ORG", raising=False)
    monkeypatch.delenv("DST_ORG", raising=False)

    result = runner.invoke(app, ["github", "copy"])

    assert result.exit_code == 1
    assert "SRC_ORG and DST_ORG must be set" in result.output


def test_copy_without_git_exits_two(no_tools):
    result = runner.invoke(app, ["github", "copy"], env={"SRC_ORG": "old", "DST_ORG": "new"})

    assert result.exit_code == 2
    assert "git" in result.output


def test_two_way_sync_logs_usage_errors(tmp_path: Path):
    log_file = tmp_path / "logs" / "sync.log"

    result = runner.invoke(
        app,
        ["sync", "two-way", str(tmp_path / "missing"), "nas:/data", "--log-file", str(log_file)],
    )

    assert result.exit_code == 1
    assert "Local directory does not exist" in result.output
    assert "ERROR: Local directory does not exist" in log_file.read_text()


def test_ollama_requires_screen_and_ollama(tmp_path: Path, no_tools):
    result = runner.invoke(app, ["ollama", "local", "--dir", str(tmp_path)])

    assert result.exit_code == 1
    assert "Not installed: screen, ollama" in result.output
    assert not (tmp_path / ".screenrc-ollama").exists()


def test_setup_github_writes_user_env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    result = runner.invoke(app, ["doctor", "setup-github"], input="ghp_example\n\n")

    assert result.exit_code == 0
    env_file = tmp_path / "system-setup" / ".env"
    assert "SYSTEM_SETUP_GITHUB_TOKEN=ghp_example" in env_file.read_text().splitlines()


def test_setup_and_host_commands_are_registered():
    top = runner.invoke(app, ["--help"])
    host = runner.invoke(app, ["system", "--help"])

    assert "setup" in top.output
    for command in ("ssh-socket", "issue", "apt-sources", "migrate-networkd"):
        assert command in host.output
