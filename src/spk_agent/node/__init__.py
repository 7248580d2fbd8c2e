"""Supervision of the local IPFS (Kubo) node."""

from .bootstrap import BootstrapOptions, ConfigBootstrapper
from .process import ProcessHandle
from .readiness import READY_MARKERS, ReadinessDetector
from .runner import NodeRunner
from .stats_cache import CachedStats, StatusCache
from .supervisor import DaemonPhase, NodeState, NodeSupervisor, check_cid, format_bytes

__all__ = [
    "BootstrapOptions",
    "ConfigBootstrapper",
    "ProcessHandle",
    "READY_MARKERS",
    "ReadinessDetector",
    "NodeRunner",
    "CachedStats",
    "StatusCache",
    "DaemonPhase",
    "NodeState",
    "NodeSupervisor",
    "check_cid",
    "format_bytes",
]
