"""
Node Supervisor - lifecycle management for the local IPFS daemon.

Lifecycle:
    UNINITIALIZED -> INITIALIZED -> STARTING -> RUNNING -> STOPPED

- initialize() creates and configures the repository on first run and reads
  the peer identity on every run.
- start_daemon() spawns `ipfs daemon`, watches its stdout for a readiness
  marker and polls that flag for a bounded time. When the budget runs out the
  child is kept: a slow daemon is still the current process, and the flag may
  still flip later. is_running() stays false until it does.
- stop_daemon() terminates the child and clears readiness.
- close() (also on context exit and finalization) kills any tracked child so
  the daemon never outlives its supervisor.

The readiness flag is an Event owned by each supervisor instance, written only
by the stdout reader thread.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from ..errors import (
    BlockFetchError,
    RepoInitError,
    SpawnError,
    SubprocessError,
    ValidationError,
)
from ..models import PinInfo, RepoStats, StorageInfo
from .bootstrap import (
    BootstrapOptions,
    ConfigBootstrapper,
    config_path,
    get_path,
    read_config,
    read_peer_id,
)
from .process import ProcessHandle
from .readiness import READY_MARKERS, ReadinessDetector
from .runner import NodeRunner
from .stats_cache import DEFAULT_TTL_SECONDS, StatusCache

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.25
DEFAULT_POLL_ATTEMPTS = 20

_STORAGE_MAX_RE = re.compile(r"^(\d+)\s*(MB|GB|TB)$", re.IGNORECASE)
_UNIT_BYTES = {"MB": 1024 ** 2, "GB": 1024 ** 3, "TB": 1024 ** 4}


class NodeState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


class DaemonPhase(str, Enum):
    """Sampled view of the child: absent, spawned but unconfirmed, confirmed ready."""

    NOT_STARTED = "not_started"
    UNCONFIRMED = "unconfirmed"
    READY = "ready"


def check_cid(cid: str) -> str:
    """Reject CIDs that could be read as CLI flags or split into extra arguments."""
    if not cid or cid.startswith("-") or any(c.isspace() or not c.isprintable() for c in cid):
        raise ValidationError(f"Invalid CID: {cid!r}")
    return cid


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


class NodeSupervisor:
    """
    Supervises one IPFS repository and at most one daemon child.

    Not internally synchronized for lifecycle calls: the control plane
    serializes start/stop/pin/unpin through AgentRuntime's write lock.
    """

    def __init__(
        self,
        command: Sequence[str],
        repo_path: Path,
        bootstrap: Optional[BootstrapOptions] = None,
        stats_ttl: float = DEFAULT_TTL_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
        stop_timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            command: Binary invocation prefix for the node CLI.
            repo_path: Repository directory (exported as IPFS_PATH).
            bootstrap: Ports and quota written on first initialization.
            stats_ttl: Seconds repository stats are served from cache.
            poll_interval: Seconds between readiness checks during startup.
            poll_attempts: Readiness checks before proceeding optimistically.
            stop_timeout: Grace period between SIGTERM and SIGKILL.
            clock: Monotonic clock for the stats cache.
        """
        self.repo_path = Path(repo_path)
        self.runner = NodeRunner(command, self.repo_path)
        self.bootstrap = bootstrap or BootstrapOptions()
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self.stop_timeout = stop_timeout

        self.state = NodeState.UNINITIALIZED
        self._peer_id: Optional[str] = None
        self._process: Optional[ProcessHandle] = None
        self._detector: Optional[ReadinessDetector] = None
        self._ready = threading.Event()
        self._release_lock = threading.Lock()

        self.stats_cache = StatusCache(self.fetch_stats, ttl=stats_ttl, clock=clock)

    @classmethod
    def from_settings(cls, settings) -> "NodeSupervisor":
        return cls(
            command=settings.node_command,
            repo_path=settings.repo_path,
            bootstrap=BootstrapOptions(
                api_port=settings.node_api_port,
                gateway_port=settings.gateway_port,
                swarm_port=settings.swarm_port,
                storage_max_gb=settings.storage_max_gb,
            ),
            stats_ttl=settings.stats_ttl_seconds,
            poll_interval=settings.ready_poll_interval,
            poll_attempts=settings.ready_poll_attempts,
            stop_timeout=settings.stop_timeout,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def api_port(self) -> int:
        return self.bootstrap.api_port

    @property
    def gateway_port(self) -> int:
        return self.bootstrap.gateway_port

    @property
    def swarm_port(self) -> int:
        return self.bootstrap.swarm_port

    @property
    def api_url(self) -> str:
        return f"http://127.0.0.1:{self.api_port}"

    @property
    def peer_id(self) -> Optional[str]:
        """Peer identity read during initialize(); never triggers I/O."""
        return self._peer_id

    def initialize(self) -> Optional[str]:
        """
        Ensure the repository exists and is configured; load the peer id.

        Idempotent: an existing repository is only read, unless a previous
        run was interrupted before the desktop keys were written, in which
        case they are applied again.

        Raises:
            RepoInitError: Directory creation, `init` or the config write failed.
            ConfigParseError: The config document cannot be read back.
        """
        if config_path(self.repo_path).exists():
            logger.info(f"Repository exists at {self.repo_path}")
            if not self._is_bootstrapped():
                logger.warning("Repository config is missing desktop keys, applying them again")
                ConfigBootstrapper(self.repo_path, self.bootstrap).apply()
            self._load_peer_id()
            return self._peer_id

        logger.info(f"Initializing new repository at {self.repo_path}")
        try:
            self.repo_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RepoInitError(f"Failed to create repo directory {self.repo_path}: {e}") from e

        try:
            self.runner.run("init", "--profile=server")
        except (SpawnError, SubprocessError) as e:
            raise RepoInitError(f"Repository init failed: {e}") from e
        logger.info("Repository initialized")

        ConfigBootstrapper(self.repo_path, self.bootstrap).apply()
        self._load_peer_id()
        return self._peer_id

    def _is_bootstrapped(self) -> bool:
        """True if every key the bootstrapper owns is present in the config."""
        document = read_config(self.repo_path)
        return all(get_path(document, key) is not None for key in self.bootstrap.key_writes())

    def _load_peer_id(self) -> None:
        peer_id = read_peer_id(self.repo_path)
        if peer_id and self._peer_id is None:
            logger.info(f"PeerID: {peer_id}")
        self._peer_id = peer_id
        if self.state == NodeState.UNINITIALIZED:
            self.state = NodeState.INITIALIZED

    def start_daemon(self) -> bool:
        """
        Spawn the daemon and wait (bounded) for a readiness marker.

        Returns:
            True if readiness was confirmed within the polling budget.

        Raises:
            SpawnError: The binary could not be executed.
        """
        process = self._process
        if process is not None and not process.is_alive():
            logger.warning(f"Daemon (pid {process.pid}) exited with code {process.returncode}, restarting")
            self._release(process)
        elif process is not None:
            logger.info("Daemon already running")
            return self._ready.is_set()

        logger.info("Starting daemon...")
        self._ready.clear()
        self.state = NodeState.STARTING

        try:
            process = ProcessHandle.spawn(
                self.runner.argv("daemon", "--enable-gc"),
                env=self.runner.env,
            )
        except SpawnError:
            self.state = NodeState.STOPPED
            raise

        detector = ReadinessDetector(self._ready, READY_MARKERS, name="ipfs")
        detector.watch(process.stdout, process.stderr)
        self._process = process
        self._detector = detector

        ready = self._wait_ready()
        if not ready and not process.is_alive():
            logger.warning(f"Daemon exited during startup with code {process.returncode}")
            self._release(process)
            return False

        self.state = NodeState.RUNNING
        if ready:
            logger.info(
                f"Daemon ready - API: 127.0.0.1:{self.api_port}, "
                f"Gateway: 127.0.0.1:{self.gateway_port}"
            )
        else:
            logger.warning(
                f"Daemon (pid {process.pid}) not ready after "
                f"{self.poll_attempts * self.poll_interval:.1f}s; keeping it as the current process"
            )
        return ready

    def _wait_ready(self) -> bool:
        for _ in range(self.poll_attempts):
            if self._ready.is_set():
                return True
            if self._process is not None and not self._process.is_alive():
                return False
            time.sleep(self.poll_interval)
        return self._ready.is_set()

    def stop_daemon(self) -> None:
        """Terminate the tracked child, if any. Safe to call repeatedly."""
        process = self._process
        if process is None:
            return

        logger.info("Stopping daemon...")
        try:
            code = process.terminate(timeout=self.stop_timeout)
            logger.info(f"Daemon stopped (exit code {code})")
        finally:
            self._release(process)

    def _release(self, process: ProcessHandle) -> None:
        # Readers may reconcile a dead child concurrently; only one releases it
        with self._release_lock:
            if self._process is not process:
                return
            detector, self._detector = self._detector, None
            self._process = None
            self._ready.clear()
            if detector is not None:
                detector.join(timeout=1.0)
            process.close_pipes()
            self.state = NodeState.STOPPED

    def is_running(self) -> bool:
        """True iff a child is tracked, still alive, and has reported ready."""
        process = self._process
        if process is None:
            return False
        if not process.is_alive():
            logger.warning(f"Daemon (pid {process.pid}) exited with code {process.returncode}")
            self._release(process)
            return False
        return self._ready.is_set()

    @property
    def phase(self) -> DaemonPhase:
        if self._process is None:
            return DaemonPhase.NOT_STARTED
        if self._ready.is_set():
            return DaemonPhase.READY
        return DaemonPhase.UNCONFIRMED

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def close(self) -> None:
        """Forcibly kill any tracked child."""
        process = self._process
        if process is None:
            return
        try:
            process.kill()
        except OSError as e:
            logger.debug(f"Error killing daemon {process.pid}: {e}")
        self._release(process)

    def __enter__(self) -> "NodeSupervisor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        # Interpreter shutdown may have torn down module globals already
        try:
            self.close()
        except Exception:
            pass

    # -------------------------------------------------------------------------
    # Node operations
    # -------------------------------------------------------------------------

    def pin(self, cid: str) -> None:
        check_cid(cid)
        self.runner.run("pin", "add", cid)
        self.stats_cache.invalidate()
        logger.info(f"Pinned: {cid}")

    def unpin(self, cid: str) -> None:
        check_cid(cid)
        self.runner.run("pin", "rm", cid)
        self.stats_cache.invalidate()
        logger.info(f"Unpinned: {cid}")

    def list_pins(self) -> List[PinInfo]:
        output = self.runner.run_text("pin", "ls", "--type=recursive")
        pins = []
        for line in output.splitlines():
            parts = line.split()
            if parts:
                pins.append(PinInfo(cid=parts[0]))
        return pins

    def block_refs(self, cid: str) -> List[str]:
        """Direct child block CIDs of `cid`, in DAG order."""
        check_cid(cid)
        output = self.runner.run_text("refs", cid)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def iter_blocks(self, cid: str, indices: Iterable[int]) -> Iterator[bytes]:
        """
        Yield the raw bytes of each requested block of `cid`, in order.

        Index i addresses the i-th direct child block. A leaf CID without
        children exposes a single block, index 0, which is the CID itself.
        The child list is resolved once, before the first block is read.

        Raises:
            BlockFetchError: An index is out of range or the node failed.
        """
        indices = list(indices)
        if not indices:
            return

        try:
            blocks = self.block_refs(cid) or [cid]
        except (SubprocessError, SpawnError, ValidationError) as e:
            raise BlockFetchError(cid, indices[0], str(e)) from e

        for index in indices:
            if index < 0 or index >= len(blocks):
                raise BlockFetchError(cid, index, f"index out of range ({len(blocks)} blocks)")
            try:
                data = self.runner.run("block", "get", blocks[index])
            except (SubprocessError, SpawnError) as e:
                raise BlockFetchError(cid, index, str(e)) from e
            yield data

    def get_block(self, cid: str, index: int) -> bytes:
        """Raw bytes of block `index` of `cid`. See iter_blocks()."""
        return next(self.iter_blocks(cid, [index]))

    def fetch_stats(self) -> RepoStats:
        """Query the node directly (uncached)."""
        output = self.runner.run_text("repo", "stat", "--size-only")
        size = 0
        for line in output.splitlines():
            if line.startswith("RepoSize"):
                parts = line.split()
                if len(parts) > 1 and parts[1].isdigit():
                    size = int(parts[1])
                break

        pin_output = self.runner.run_text("pin", "ls", "--type=recursive", "--quiet")
        num_pins = len([line for line in pin_output.splitlines() if line.strip()])
        return RepoStats(repo_size=size, num_pins=num_pins)

    def repo_stats(self) -> RepoStats:
        return self.stats_cache.get()

    def node_version(self) -> str:
        return self.runner.run_text("version", "--number").strip()

    def storage_info(self) -> StorageInfo:
        """Repository usage against Datastore.StorageMax."""
        used = self.repo_stats().repo_size
        max_bytes = self.bootstrap.storage_max_gb * _UNIT_BYTES["GB"]

        storage_max = get_path(read_config(self.repo_path), "Datastore.StorageMax")
        match = _STORAGE_MAX_RE.match(storage_max) if isinstance(storage_max, str) else None
        if match:
            max_bytes = int(match.group(1)) * _UNIT_BYTES[match.group(2).upper()]

        return StorageInfo(
            used_bytes=used,
            max_bytes=max_bytes,
            used_formatted=format_bytes(used),
            max_formatted=format_bytes(max_bytes),
            percentage=round(used / max_bytes * 100) if max_bytes > 0 else 0,
        )
