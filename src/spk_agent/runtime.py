"""Shared state behind the control plane."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from .autostart import Autostart, get_autostart
from .challenge import ChallengeResponder
from .config import Settings
from .ledger import EarningsLedger
from .node import NodeSupervisor
from .notifications import DesktopNotifier, LogNotifier, Notifier
from .store import AgentConfigStore

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    Many concurrent readers or one writer.

    Waiting writers block new readers so a steady stream of status reads
    cannot starve a pin or a daemon restart.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class AgentRuntime:
    """
    Everything a request handler needs: the supervised node, the settings
    store, the ledger, the challenge responder and the autostart backend.
    """

    def __init__(
        self,
        supervisor: NodeSupervisor,
        store: AgentConfigStore,
        notifier: Optional[Notifier] = None,
        autostart: Optional[Autostart] = None,
        manage_node: bool = True,
    ):
        self.supervisor = supervisor
        self.store = store
        self.notifier = notifier or LogNotifier()
        self.autostart = autostart or get_autostart()
        self.ledger = EarningsLedger(store, self.notifier)
        self.challenges = ChallengeResponder(supervisor)
        self.lock = ReadWriteLock()
        self.manage_node = manage_node
        self.started_at = time.monotonic()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        notifier: Optional[Notifier] = None,
    ) -> "AgentRuntime":
        if notifier is None and settings.desktop_notifications:
            notifier = DesktopNotifier()
        return cls(
            supervisor=NodeSupervisor.from_settings(settings),
            store=AgentConfigStore(settings.settings_file),
            notifier=notifier,
            manage_node=settings.autostart_node,
        )

    @property
    def uptime_seconds(self) -> int:
        return int(time.monotonic() - self.started_at)

    def start_node(self) -> bool:
        """Initialize the repository and start the daemon under the write lock."""
        with self.lock.write():
            self.supervisor.initialize()
            return self.supervisor.start_daemon()

    def stop_node(self) -> None:
        with self.lock.write():
            self.supervisor.stop_daemon()

    def shutdown(self) -> None:
        """Stop the daemon on the way out; kill it if a graceful stop fails."""
        try:
            self.stop_node()
        finally:
            self.supervisor.close()
