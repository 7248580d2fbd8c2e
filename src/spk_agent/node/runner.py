"""One-shot invocations of the node CLI against a repository."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from ..errors import SpawnError, SubprocessError

logger = logging.getLogger(__name__)


class NodeRunner:
    """
    Runs node CLI commands with IPFS_PATH pointing at the managed repository.

    Every call blocks until the child exits. A non-zero exit raises
    SubprocessError carrying the captured stderr; a binary that cannot be
    executed raises SpawnError.
    """

    def __init__(self, command: Sequence[str], repo_path: Path):
        """
        Args:
            command: Binary invocation prefix, e.g. ["ipfs"] or
                [sys.executable, "fake_node.py"].
            repo_path: Repository directory exported as IPFS_PATH.
        """
        self.command = list(command)
        self.repo_path = Path(repo_path)

    @property
    def env(self) -> dict[str, str]:
        return {"IPFS_PATH": str(self.repo_path)}

    def argv(self, *args: str) -> list[str]:
        return [*self.command, *args]

    def run(self, *args: str, timeout: Optional[float] = None) -> bytes:
        """Run a command and return its raw stdout."""
        argv = self.argv(*args)
        env = dict(os.environ)
        env.update(self.env)

        logger.debug(f"Running {' '.join(argv)}")
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                stdin=subprocess.DEVNULL,
                env=env,
                timeout=timeout,
            )
        except OSError as e:
            raise SpawnError(f"Failed to run {argv[0]}: {e}") from e
        except subprocess.TimeoutExpired as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace")
            raise SubprocessError(list(args), -1, stderr or f"timed out after {timeout}s") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            raise SubprocessError(list(args), result.returncode, stderr)

        return result.stdout

    def run_text(self, *args: str, timeout: Optional[float] = None) -> str:
        return self.run(*args, timeout=timeout).decode("utf-8", errors="replace")
