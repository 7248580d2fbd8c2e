"""Process handle for the spawned node daemon."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Mapping, Optional, Sequence

from ..errors import SpawnError

logger = logging.getLogger(__name__)


class ProcessHandle:
    """
    Owns one spawned child process and its captured output pipes.

    stdout and stderr are opened as text pipes; the caller is expected to
    drain both (see ReadinessDetector), otherwise a chatty child blocks once
    the pipe buffer fills.
    """

    def __init__(self, process: subprocess.Popen):
        self._process = process

    @classmethod
    def spawn(
        cls,
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> "ProcessHandle":
        """
        Start a child with stdout/stderr piped.

        Args:
            args: Full command line, binary first.
            env: Extra environment variables merged over os.environ.

        Raises:
            SpawnError: If the binary is missing or not executable.
        """
        full_env = dict(os.environ)
        if env:
            full_env.update(env)

        try:
            process = subprocess.Popen(
                list(args),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=full_env,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise SpawnError(f"Failed to spawn {args[0]}: {e}") from e

        logger.info(f"Spawned {' '.join(args)} (pid {process.pid})")
        return cls(process)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stdout(self):
        return self._process.stdout

    @property
    def stderr(self):
        return self._process.stderr

    @property
    def returncode(self) -> Optional[int]:
        return self._process.poll()

    def is_alive(self) -> bool:
        return self._process.poll() is None

    def wait(self, timeout: Optional[float] = None) -> int:
        return self._process.wait(timeout=timeout)

    def terminate(self, timeout: float = 5.0) -> int:
        """
        Ask the child to exit, escalating to kill after `timeout` seconds.

        Returns:
            The child's exit code.
        """
        if not self.is_alive():
            return self._process.wait()

        self._process.terminate()
        try:
            return self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {self.pid} ignored SIGTERM for {timeout}s, killing")
            return self.kill()

    def kill(self) -> int:
        """Forcibly kill the child and reap it."""
        if self.is_alive():
            self._process.kill()
        return self._process.wait()

    def close_pipes(self) -> None:
        for pipe in (self._process.stdout, self._process.stderr):
            if pipe is not None:
                try:
                    pipe.close()
                except OSError as e:
                    logger.debug(f"Error closing pipe of {self.pid}: {e}")
