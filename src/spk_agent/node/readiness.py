"""Readiness detection from the daemon's standard output."""

from __future__ import annotations

import logging
import threading
from typing import IO, Iterable, Optional

logger = logging.getLogger(__name__)

# Either the RPC API or the gateway coming up means the control surface the
# supervisor depends on is accepting requests.
READY_MARKERS: tuple[str, ...] = (
    "Daemon is ready",
    "API server listening",
    "Gateway server listening",
    "Gateway (readonly) server listening",
)


def is_ready_line(line: str, markers: Iterable[str] = READY_MARKERS) -> bool:
    return any(marker in line for marker in markers)


class ReadinessDetector:
    """
    Watches a child's output streams on background threads.

    The stdout thread is the only writer of `ready`. stderr is drained on its
    own thread so the child never blocks on a full pipe.
    """

    def __init__(
        self,
        ready: threading.Event,
        markers: Iterable[str] = READY_MARKERS,
        name: str = "node",
    ):
        self.ready = ready
        self.markers = tuple(markers)
        self.name = name
        self._threads: list[threading.Thread] = []

    def watch(self, stdout: Optional[IO[str]], stderr: Optional[IO[str]] = None) -> None:
        """Start the reader threads for the given streams."""
        if stdout is not None:
            self._start(self._read_stdout, stdout, f"{self.name}-stdout")
        if stderr is not None:
            self._start(self._read_stderr, stderr, f"{self.name}-stderr")

    def _start(self, target, stream: IO[str], thread_name: str) -> None:
        thread = threading.Thread(target=target, args=(stream,), name=thread_name, daemon=True)
        thread.start()
        self._threads.append(thread)

    def _read_stdout(self, stream: IO[str]) -> None:
        try:
            for line in stream:
                line = line.rstrip()
                logger.debug(f"[{self.name} stdout] {line}")
                if not self.ready.is_set() and is_ready_line(line, self.markers):
                    logger.info(f"{self.name} reported ready: {line}")
                    self.ready.set()
        except (OSError, ValueError) as e:
            # Stream closed underneath us during shutdown
            logger.debug(f"{self.name} stdout reader stopped: {e}")

    def _read_stderr(self, stream: IO[str]) -> None:
        try:
            for line in stream:
                logger.debug(f"[{self.name} stderr] {line.rstrip()}")
        except (OSError, ValueError) as e:
            logger.debug(f"{self.name} stderr reader stopped: {e}")

    def join(self, timeout: float = 1.0) -> None:
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = [t for t in self._threads if t.is_alive()]
