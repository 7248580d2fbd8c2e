"""Error taxonomy shared by the supervisor, the ledger and the control plane.

Every error carries the HTTP status the control plane answers with, so route
handlers can let core exceptions propagate and rely on the app-level handler.
"""

from __future__ import annotations

from typing import Optional


class AgentError(Exception):
    """Base class for all agent failures."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SpawnError(AgentError):
    """The node binary is missing or cannot be executed."""


class RepoInitError(AgentError):
    """Repository directory creation or `init` failed."""


class ConfigParseError(AgentError):
    """The node's configuration document is missing or malformed."""


class SubprocessError(AgentError):
    """A node CLI invocation exited non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str):
        command = " ".join(args)
        detail = stderr.strip() or f"exit code {returncode}"
        super().__init__(f"'{command}' failed: {detail}")
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr


class ValidationError(AgentError):
    """Rejected input, e.g. a negative earnings amount."""

    status_code = 400


class NotRunningError(AgentError):
    """The operation needs a live, ready daemon."""

    status_code = 503

    def __init__(self, message: str = "IPFS daemon not running", latency_ms: int = 0):
        super().__init__(message)
        self.latency_ms = latency_ms


class BlockFetchError(AgentError):
    """A block of a challenged CID could not be read from the node."""

    status_code = 404

    def __init__(
        self,
        cid: str,
        index: int,
        reason: str,
        latency_ms: int = 0,
    ):
        super().__init__(f"Failed to fetch block {index} of {cid}: {reason}")
        self.cid = cid
        self.index = index
        self.reason = reason
        self.latency_ms = latency_ms


class AutostartError(AgentError):
    """Registering or removing the login item failed."""


class ConfigWriteError(AgentError):
    """The agent settings file could not be written."""


def error_payload(exc: Exception, latency_ms: Optional[int] = None) -> dict:
    """Build the JSON body for a failed control-plane request."""
    payload = {"success": False, "error": str(exc)}
    if latency_ms is not None:
        payload["latency_ms"] = latency_ms
    return payload


__all__ = [
    "AgentError",
    "SpawnError",
    "RepoInitError",
    "ConfigParseError",
    "SubprocessError",
    "ValidationError",
    "NotRunningError",
    "BlockFetchError",
    "AutostartError",
    "ConfigWriteError",
    "error_payload",
]
