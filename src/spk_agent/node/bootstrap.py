"""
Repository configuration bootstrap.

The node writes a full default config during `init`. Rather than issuing one
`ipfs config` subprocess per key, the bootstrapper loads that document, applies
every desktop-specific key in memory and writes it back in a single atomic
replace. Keys it does not own are left untouched.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..errors import ConfigParseError, RepoInitError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config"

CORS_ALLOW_ORIGIN = ["*"]
CORS_ALLOW_METHODS = ["PUT", "POST", "GET"]
CORS_ALLOW_HEADERS = ["Authorization", "X-Requested-With", "Range", "Content-Range"]

GC_WATERMARK = 90
CONN_MGR_LOW_WATER = 50
CONN_MGR_HIGH_WATER = 200
CONN_MGR_GRACE_PERIOD = "20s"
ROUTING_TYPE = "dhtclient"


@dataclass(frozen=True)
class BootstrapOptions:
    """Values written into a fresh repository."""

    api_port: int = 5001
    gateway_port: int = 8080
    swarm_port: int = 4001
    storage_max_gb: int = 50

    def key_writes(self) -> dict[str, Any]:
        """Dotted key path -> value for every key this agent owns."""
        return {
            "API.HTTPHeaders.Access-Control-Allow-Origin": list(CORS_ALLOW_ORIGIN),
            "API.HTTPHeaders.Access-Control-Allow-Methods": list(CORS_ALLOW_METHODS),
            "API.HTTPHeaders.Access-Control-Allow-Headers": list(CORS_ALLOW_HEADERS),
            "Datastore.StorageMax": f"{self.storage_max_gb}GB",
            "Datastore.StorageGCWatermark": GC_WATERMARK,
            "Addresses.API": f"/ip4/127.0.0.1/tcp/{self.api_port}",
            "Addresses.Gateway": f"/ip4/127.0.0.1/tcp/{self.gateway_port}",
            "Addresses.Swarm": [
                f"/ip4/0.0.0.0/tcp/{self.swarm_port}",
                f"/ip6/::/tcp/{self.swarm_port}",
            ],
            "Swarm.ConnMgr.Type": "basic",
            "Swarm.ConnMgr.LowWater": CONN_MGR_LOW_WATER,
            "Swarm.ConnMgr.HighWater": CONN_MGR_HIGH_WATER,
            "Swarm.ConnMgr.GracePeriod": CONN_MGR_GRACE_PERIOD,
            "Routing.Type": ROUTING_TYPE,
            "Pubsub.Enabled": True,
        }


def set_path(document: dict, dotted_key: str, value: Any) -> None:
    """Set `value` at a dotted key path, creating intermediate objects."""
    *parents, leaf = dotted_key.split(".")
    node = document
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[leaf] = value


def get_path(document: dict, dotted_key: str, default: Any = None) -> Any:
    node: Any = document
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def config_path(repo_path: Path) -> Path:
    return Path(repo_path) / CONFIG_FILENAME


def read_config(repo_path: Path) -> dict:
    """
    Load the node's config document.

    Raises:
        ConfigParseError: If the file is missing, unreadable or not a JSON object.
    """
    path = config_path(repo_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigParseError(f"Cannot read node config {path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigParseError(f"Node config {path} is not a JSON object")
    return document


def write_config_atomic(repo_path: Path, document: dict) -> None:
    """Serialize the whole document to a temp file and swap it into place."""
    path = config_path(repo_path)
    fd, tmp_name = tempfile.mkstemp(prefix=".config-", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(document, indent=2))
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise RepoInitError(f"Failed to write node config {path}: {e}") from e


def read_peer_id(repo_path: Path) -> Optional[str]:
    """Return Identity.PeerID from the repository config, if present."""
    peer_id = get_path(read_config(repo_path), "Identity.PeerID")
    return peer_id if isinstance(peer_id, str) and peer_id else None


class ConfigBootstrapper:
    """Applies the desktop profile to a freshly initialized repository."""

    def __init__(self, repo_path: Path, options: Optional[BootstrapOptions] = None):
        self.repo_path = Path(repo_path)
        self.options = options or BootstrapOptions()

    def apply(self) -> dict:
        """
        Read, patch and rewrite the repository config in one pass.

        Returns:
            The document as written.
        """
        document = read_config(self.repo_path)
        for key, value in self.options.key_writes().items():
            set_path(document, key, value)
        write_config_atomic(self.repo_path, document)

        logger.info(
            f"Desktop configuration applied (API :{self.options.api_port}, "
            f"gateway :{self.options.gateway_port}, quota {self.options.storage_max_gb}GB)"
        )
        return document
