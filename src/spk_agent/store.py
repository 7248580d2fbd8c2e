"""Persistence for the user-facing AgentConfig record."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable

from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigWriteError
from .models import AgentConfig, AgentConfigUpdate

logger = logging.getLogger(__name__)

# Fields where an empty string in an update means "clear"
_CLEARABLE = {"hive_username", "hive_posting_key_hash"}


class AgentConfigStore:
    """
    Loads and saves AgentConfig as a JSON document.

    A missing, unreadable or corrupt file yields defaults (with a warning) so
    the agent keeps running; the file is rewritten on the next save.
    Read-modify-write sequences go through `mutate()`, which holds a lock for
    the whole cycle.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()

    def load(self) -> AgentConfig:
        if not self.path.exists():
            return AgentConfig()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return AgentConfig.model_validate(data)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(f"[Config] Failed to load {self.path}: {e}, using defaults")
            return AgentConfig()

    def save(self, config: AgentConfig) -> None:
        """Write the record atomically. Raises ConfigWriteError on failure."""
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(prefix=".agent-config-", dir=str(self.path.parent))
            except OSError as e:
                raise ConfigWriteError(f"Failed to save settings to {self.path}: {e}") from e
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(config.model_dump_json(indent=2))
                os.replace(tmp_name, self.path)
            except OSError as e:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise ConfigWriteError(f"Failed to save settings to {self.path}: {e}") from e
        logger.info(f"[Config] Saved to {self.path}")

    def mutate(self, change: Callable[[AgentConfig], None]) -> AgentConfig:
        """Load, apply `change` in place, save, and return the new record."""
        with self._lock:
            config = self.load()
            change(config)
            self.save(config)
            return config

    def update(self, update: AgentConfigUpdate) -> AgentConfig:
        """Apply a partial update; fields absent from the request are kept."""
        changes = update.model_dump(exclude_unset=True)

        def apply(config: AgentConfig) -> None:
            for field, value in changes.items():
                if value is None:
                    continue
                if field in _CLEARABLE and value == "":
                    value = None
                setattr(config, field, value)

        return self.mutate(apply)

    def ensure_exists(self) -> AgentConfig:
        """Write defaults on first run."""
        with self._lock:
            config = self.load()
            if not self.path.exists():
                self.save(config)
            return config
