"""Tests for the spk-agent command line."""

import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from spk_agent.cli import app
from spk_agent.config import reload_settings

FAKE_NODE = Path(__file__).resolve().parents[1] / "fixtures" / "fake_node.py"

runner = CliRunner()

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="wrapper script needs a POSIX shell")


@pytest.fixture
def node_env(monkeypatch, tmp_path: Path):
    """Point the CLI at the fake node through a wrapper executable."""
    wrapper = tmp_path / "ipfs"
    wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_NODE}" "$@"\n')
    wrapper.chmod(0o755)

    repo = tmp_path / "repo"
    monkeypatch.setenv("SPK_NODE_BINARY", str(wrapper))
    monkeypatch.setenv("SPK_REPO_PATH", str(repo))
    reload_settings()
    return repo


class StubAutostart:
    def __init__(self):
        self.enabled = False

    def enable(self):
        self.enabled = True

    def disable(self):
        self.enabled = False

    def is_enabled(self):
        return self.enabled


class TestInitCommand:
    """Tests for `spk-agent init`."""

    def test_init_creates_repo(self, node_env: Path):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0, result.output
        assert "12D3KooWFakePeerIdForTests" in result.output
        assert (node_env / "config").exists()
        assert (node_env / "agent-config.json").exists()

    def test_init_twice(self, node_env: Path):
        runner.invoke(app, ["init"])
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0

    def test_init_failure_exits_nonzero(self, node_env: Path, monkeypatch):
        monkeypatch.setenv("FAKE_NODE_FAIL", "init")

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 1
        assert "Initialization failed" in result.output


class TestStatusCommand:
    """Tests for `spk-agent status`."""

    def test_status_uninitialized(self, node_env: Path):
        result = runner.invoke(app, ["status", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["initialized"] is False
        assert data["peer_id"] is None
        assert data["total_earned"] == "0.000 HBD"

    def test_status_initialized(self, node_env: Path):
        runner.invoke(app, ["init"])

        result = runner.invoke(app, ["status", "--json"])

        data = json.loads(result.output)
        assert data["initialized"] is True
        assert data["peer_id"] == "12D3KooWFakePeerIdForTests"
        assert data["ipfs_repo_size"] == 4096

    def test_status_table(self, node_env: Path):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Repository" in result.output


class TestAutostartCommands:
    """Tests for `spk-agent autostart`."""

    def test_enable_and_status(self, node_env: Path):
        stub = StubAutostart()
        with patch("spk_agent.cli.get_autostart", return_value=stub):
            result = runner.invoke(app, ["autostart", "enable"])
            assert result.exit_code == 0
            assert stub.enabled is True

            status = runner.invoke(app, ["autostart", "status"])
            assert "enabled" in status.output

        saved = json.loads((node_env / "agent-config.json").read_text())
        assert saved["auto_start"] is True

    def test_disable(self, node_env: Path):
        stub = StubAutostart()
        stub.enabled = True
        with patch("spk_agent.cli.get_autostart", return_value=stub):
            result = runner.invoke(app, ["autostart", "disable"])

        assert result.exit_code == 0
        assert stub.enabled is False
