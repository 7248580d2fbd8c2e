"""Unit tests for AgentConfig persistence."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from spk_agent.errors import AgentError, ConfigWriteError
from spk_agent.models import AgentConfig, AgentConfigUpdate
from spk_agent.store import AgentConfigStore


class TestLoad:
    """Test loading the settings record."""

    def test_missing_file_yields_defaults(self, store):
        config = store.load()
        assert config == AgentConfig()
        assert config.max_storage_gb == 50
        assert config.auto_pin is True

    def test_corrupt_file_yields_defaults(self, store):
        """A corrupt file is tolerated and replaced on the next save."""
        store.path.write_text("{broken")

        assert store.load() == AgentConfig()

        store.save(AgentConfig(hive_username="alice"))
        assert json.loads(store.path.read_text())["hive_username"] == "alice"

    def test_invalid_values_yield_defaults(self, store):
        store.path.write_text(json.dumps({"challenge_count": -4}))
        assert store.load().challenge_count == 0

    def test_unknown_keys_ignored(self, store):
        store.path.write_text(json.dumps({"hive_username": "bob", "legacy_field": 1}))
        assert store.load().hive_username == "bob"


class TestSave:
    """Test writing the settings record."""

    def test_round_trip(self, store):
        store.save(AgentConfig(hive_username="alice", total_earned_hbd=1.5, challenge_count=3))
        loaded = store.load()
        assert loaded.hive_username == "alice"
        assert loaded.total_earned_hbd == 1.5
        assert loaded.challenge_count == 3

    def test_creates_parent_directory(self, tmp_path: Path):
        store = AgentConfigStore(tmp_path / "nested" / "dir" / "agent-config.json")
        store.save(AgentConfig())
        assert store.path.exists()

    def test_no_temp_files_left(self, store):
        store.save(AgentConfig())
        assert [p.name for p in store.path.parent.iterdir()] == ["agent-config.json"]

    def test_failed_replace_raises_agent_error(self, store):
        store.save(AgentConfig(hive_username="alice"))

        with patch("spk_agent.store.os.replace", side_effect=PermissionError("read-only")):
            with pytest.raises(ConfigWriteError) as exc_info:
                store.save(AgentConfig(hive_username="bob"))

        assert isinstance(exc_info.value, AgentError)
        assert exc_info.value.status_code == 500
        assert "read-only" in str(exc_info.value)
        assert [p.name for p in store.path.parent.iterdir()] == ["agent-config.json"]
        assert store.load().hive_username == "alice"

    def test_unwritable_directory_raises_agent_error(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = AgentConfigStore(blocker / "agent-config.json")

        with pytest.raises(ConfigWriteError):
            store.save(AgentConfig())

    def test_mutate_propagates_write_failure(self, store):
        with patch("spk_agent.store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(ConfigWriteError):
                store.mutate(lambda config: setattr(config, "auto_pin", False))

        assert not store.path.exists()

    def test_ensure_exists_writes_defaults_once(self, store):
        store.ensure_exists()
        store.save(AgentConfig(hive_username="carol"))
        store.ensure_exists()
        assert store.load().hive_username == "carol"


class TestUpdate:
    """Test partial updates."""

    def test_only_provided_fields_change(self, store):
        store.save(AgentConfig(hive_username="alice", auto_pin=True, max_storage_gb=50))

        updated = store.update(AgentConfigUpdate(max_storage_gb=100))

        assert updated.max_storage_gb == 100
        assert updated.hive_username == "alice"
        assert updated.auto_pin is True

    def test_empty_string_clears_username(self, store):
        store.save(AgentConfig(hive_username="alice", hive_posting_key_hash="abc"))

        updated = store.update(AgentConfigUpdate(hive_username="", hive_posting_key_hash=""))

        assert updated.hive_username is None
        assert updated.hive_posting_key_hash is None

    def test_explicit_null_is_ignored(self, store):
        store.save(AgentConfig(hive_username="alice"))
        updated = store.update(AgentConfigUpdate.model_validate({"hive_username": None}))
        assert updated.hive_username == "alice"

    def test_ledger_fields_untouched(self, store):
        store.save(AgentConfig(total_earned_hbd=9.0, challenge_count=4))
        updated = store.update(AgentConfigUpdate(notify_daily_summary=False))
        assert updated.total_earned_hbd == 9.0
        assert updated.challenge_count == 4
        assert updated.notify_daily_summary is False
