"""
SPK Agent Configuration

Runtime settings are loaded from environment variables prefixed with SPK_.

Key settings:
- SPK_REPO_PATH: IPFS repository directory (default: ~/.spk-ipfs)
- SPK_AGENT_CONFIG_PATH: User settings / earnings file (default: ~/.spk-ipfs/agent-config.json)
- SPK_NODE_BINARY: Path to the ipfs (Kubo) binary. If unset, a bundled
  binaries/ipfs next to the interpreter is preferred, then `ipfs` on PATH.
- SPK_API_PORT: Control plane port (default: 5111, loopback only)
- SPK_STATS_TTL_SECONDS: How long repository stats are served from cache

The user-facing settings record (account, quota, notification toggles,
earnings ledger) is not part of Settings; see spk_agent.store.
"""

from __future__ import annotations

import logging
import shutil
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_REPO_PATH = Path.home() / ".spk-ipfs"


def _find_node_binary() -> str:
    """Locate the node binary: bundled copy first, then PATH, then bare name."""
    binary = "ipfs.exe" if sys.platform == "win32" else "ipfs"

    bundled = Path(sys.executable).resolve().parent / "binaries" / binary
    if bundled.exists():
        return str(bundled)

    on_path = shutil.which(binary)
    if on_path:
        return on_path

    return binary


class Settings(BaseSettings):
    """Agent runtime settings."""

    repo_path: Path = Field(default=DEFAULT_REPO_PATH)
    agent_config_path: Optional[Path] = Field(
        default=None,
        description="Defaults to <repo_path>/agent-config.json",
    )
    node_binary: str = Field(default_factory=_find_node_binary)

    # Control plane
    api_host: str = "127.0.0.1"
    api_port: int = 5111

    # Node listening ports written into the repository config
    node_api_port: int = 5001
    gateway_port: int = 8080
    swarm_port: int = 4001
    storage_max_gb: int = Field(default=50, ge=1)

    # Supervisor tuning
    stats_ttl_seconds: float = Field(default=30.0, gt=0)
    ready_poll_interval: float = Field(default=0.25, gt=0)
    ready_poll_attempts: int = Field(default=20, ge=1)
    stop_timeout: float = Field(default=5.0, gt=0)
    autostart_node: bool = True

    # Show earnings events as desktop notifications; otherwise log them only
    desktop_notifications: bool = True

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SPK_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("repo_path", "agent_config_path", mode="before")
    @classmethod
    def _expand_path(cls, value):
        if value is None or value == "":
            return None
        return Path(value).expanduser()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = str(value).upper().strip()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @property
    def settings_file(self) -> Path:
        return self.agent_config_path or self.repo_path / "agent-config.json"

    @property
    def node_command(self) -> list[str]:
        return [self.node_binary]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache agent settings."""
    settings = Settings()
    logger.debug(
        f"Settings loaded (repo={settings.repo_path}, binary={settings.node_binary})"
    )
    return settings


def reload_settings() -> Settings:
    """Clear cached settings (useful for tests) and reload."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings", "DEFAULT_REPO_PATH"]
