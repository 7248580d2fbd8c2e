"""Fire-and-forget user notifications."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

APP_NAME = "SPK Desktop"


class Notifier(Protocol):
    def notify(self, event: str, payload: Dict[str, Any]) -> None: ...


def describe(event: str, payload: Dict[str, Any]) -> tuple[str, str]:
    """Title and body for a notification event."""
    if event == "challenge":
        return (
            "Storage challenge passed",
            f"Earned {payload.get('amount', 0):.3f} HBD",
        )
    if event == "milestone":
        return (
            "Earnings milestone reached",
            f"You crossed {payload.get('milestone'):g} HBD "
            f"(total {payload.get('total', 0):.3f} HBD)",
        )
    return event.replace("_", " ").capitalize(), str(payload)


class LogNotifier:
    """Records notifications in the log only."""

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        title, body = describe(event, payload)
        logger.info(f"[Notify] {title}: {body}")


class DesktopNotifier:
    """
    Shows notifications through the platform's own tool (notify-send on
    Linux, osascript on macOS). The child is not waited on.
    """

    def __init__(self, platform: Optional[str] = None):
        self.platform = platform or sys.platform

    def _command(self, title: str, body: str) -> Optional[list[str]]:
        if self.platform.startswith("linux") and shutil.which("notify-send"):
            return ["notify-send", "--app-name", APP_NAME, title, body]
        if self.platform == "darwin":
            script = f"display notification {_quote(body)} with title {_quote(title)}"
            return ["osascript", "-e", script]
        return None

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        title, body = describe(event, payload)
        command = self._command(title, body)
        if command is None:
            logger.info(f"[Notify] {title}: {body}")
            return
        try:
            subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning(f"[Notify] Failed to show notification: {e}")


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
