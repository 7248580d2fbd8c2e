"""
Run-at-login registration.

- Linux: XDG autostart entry in ~/.config/autostart
- macOS: LaunchAgent plist in ~/Library/LaunchAgents
- Windows: value under HKCU\\Software\\Microsoft\\Windows\\CurrentVersion\\Run

The registered command starts the control plane (`spk-agent serve`).
"""

from __future__ import annotations

import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .errors import AutostartError

logger = logging.getLogger(__name__)

APP_ID = "network.spk.desktop"
DESKTOP_FILENAME = "spk-desktop.desktop"
WINDOWS_VALUE_NAME = "SPKDesktop"
WINDOWS_RUN_KEY = r"Software\Microsoft\Windows\CurrentVersion\Run"


class Autostart(Protocol):
    def enable(self) -> None: ...

    def disable(self) -> None: ...

    def is_enabled(self) -> bool: ...


def default_command() -> List[str]:
    return [sys.executable, "-m", "spk_agent.cli", "serve"]


class LinuxAutostart:
    def __init__(self, command: Sequence[str], home: Optional[Path] = None):
        self.command = list(command)
        self.path = (home or Path.home()) / ".config" / "autostart" / DESKTOP_FILENAME

    def enable(self) -> None:
        content = (
            "[Desktop Entry]\n"
            "Type=Application\n"
            "Name=SPK Desktop\n"
            "Comment=SPK Network Desktop Agent\n"
            f"Exec={shlex.join(self.command)}\n"
            "Terminal=false\n"
            "Categories=Network;\n"
            "StartupNotify=false\n"
            "X-GNOME-Autostart-enabled=true\n"
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise AutostartError(f"Failed to write desktop file: {e}") from e
        logger.info(f"[Autostart] Enabled Linux auto-start at {self.path}")

    def disable(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise AutostartError(f"Failed to remove desktop file: {e}") from e
        logger.info("[Autostart] Disabled Linux auto-start")

    def is_enabled(self) -> bool:
        return self.path.exists()


class MacAutostart:
    def __init__(self, command: Sequence[str], home: Optional[Path] = None):
        self.command = list(command)
        self.path = (home or Path.home()) / "Library" / "LaunchAgents" / f"{APP_ID}.plist"

    def enable(self) -> None:
        import plistlib

        plist = {
            "Label": APP_ID,
            "ProgramArguments": self.command,
            "RunAtLoad": True,
            "KeepAlive": False,
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "wb") as f:
                plistlib.dump(plist, f)
        except OSError as e:
            raise AutostartError(f"Failed to write LaunchAgent plist: {e}") from e
        logger.info(f"[Autostart] Enabled macOS auto-start at {self.path}")

    def disable(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise AutostartError(f"Failed to remove LaunchAgent plist: {e}") from e
        logger.info("[Autostart] Disabled macOS auto-start")

    def is_enabled(self) -> bool:
        return self.path.exists()


class WindowsAutostart:
    def __init__(self, command: Sequence[str]):
        self.command = list(command)

    def enable(self) -> None:
        import subprocess
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, WINDOWS_RUN_KEY, 0, winreg.KEY_SET_VALUE) as key:
                winreg.SetValueEx(
                    key, WINDOWS_VALUE_NAME, 0, winreg.REG_SZ, subprocess.list2cmdline(self.command)
                )
        except OSError as e:
            raise AutostartError(f"Failed to set registry value: {e}") from e
        logger.info("[Autostart] Enabled Windows auto-start")

    def disable(self) -> None:
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, WINDOWS_RUN_KEY, 0, winreg.KEY_SET_VALUE) as key:
                winreg.DeleteValue(key, WINDOWS_VALUE_NAME)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise AutostartError(f"Failed to delete registry value: {e}") from e
        logger.info("[Autostart] Disabled Windows auto-start")

    def is_enabled(self) -> bool:
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, WINDOWS_RUN_KEY, 0, winreg.KEY_READ) as key:
                winreg.QueryValueEx(key, WINDOWS_VALUE_NAME)
            return True
        except OSError:
            return False


class UnsupportedAutostart:
    def enable(self) -> None:
        raise AutostartError(f"Auto-start not supported on {sys.platform}")

    def disable(self) -> None:
        raise AutostartError(f"Auto-start not supported on {sys.platform}")

    def is_enabled(self) -> bool:
        return False


def get_autostart(
    command: Optional[Sequence[str]] = None,
    platform: Optional[str] = None,
) -> Autostart:
    """Autostart backend for the current (or given) platform."""
    command = list(command or default_command())
    platform = platform or sys.platform

    if platform.startswith("linux"):
        return LinuxAutostart(command)
    if platform == "darwin":
        return MacAutostart(command)
    if platform == "win32":
        return WindowsAutostart(command)
    return UnsupportedAutostart()
