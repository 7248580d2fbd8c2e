"""Shared fixtures: a fake node binary and supervisors wired to it."""

import sys
from pathlib import Path

import pytest

from spk_agent.config import reload_settings
from spk_agent.node import BootstrapOptions, NodeSupervisor
from spk_agent.store import AgentConfigStore

FAKE_NODE = Path(__file__).parent / "fixtures" / "fake_node.py"


class RecordingNotifier:
    """Collects (event, payload) pairs instead of showing them."""

    def __init__(self):
        self.events = []

    def notify(self, event, payload):
        self.events.append((event, payload))

    def of(self, event):
        return [payload for name, payload in self.events if name == event]


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path: Path):
    """Point settings at a temp home and drop the settings cache around each test."""
    for name in ("SPK_REPO_PATH", "SPK_AGENT_CONFIG_PATH", "SPK_NODE_BINARY", "SPK_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    for name in ("FAKE_NODE_SILENT", "FAKE_NODE_EXIT", "FAKE_NODE_FAIL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SPK_REPO_PATH", str(tmp_path / "spk-ipfs"))
    reload_settings()
    yield
    monkeypatch.undo()
    reload_settings()


@pytest.fixture
def fake_node_command():
    """Command prefix that runs the fake node under the current interpreter."""
    return [sys.executable, str(FAKE_NODE)]


@pytest.fixture
def repo_path(tmp_path: Path) -> Path:
    return tmp_path / "repo"


@pytest.fixture
def calls(repo_path: Path):
    """Return the list of fake node invocations so far."""

    def read():
        log = repo_path / "calls.log"
        if not log.exists():
            return []
        return log.read_text().splitlines()

    return read


@pytest.fixture
def make_supervisor(fake_node_command, repo_path: Path):
    """Factory for supervisors on the fake node; every one is closed at teardown."""
    created = []

    def factory(**kwargs):
        kwargs.setdefault("poll_interval", 0.05)
        kwargs.setdefault("poll_attempts", 100)
        kwargs.setdefault("stop_timeout", 2.0)
        kwargs.setdefault("bootstrap", BootstrapOptions(storage_max_gb=10))
        supervisor = NodeSupervisor(fake_node_command, repo_path, **kwargs)
        created.append(supervisor)
        return supervisor

    yield factory

    for supervisor in created:
        supervisor.close()


@pytest.fixture
def supervisor(make_supervisor):
    return make_supervisor()


@pytest.fixture
def store(tmp_path: Path) -> AgentConfigStore:
    return AgentConfigStore(tmp_path / "agent-config.json")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
