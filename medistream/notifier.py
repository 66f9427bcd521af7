"""Native desktop notifications."""

import logging
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)

GRANTED = "granted"
DENIED = "denied"
DEFAULT = "default"     # not decided yet


class DesktopNotifier(ABC):
    """A notification surface with a granted/denied/default permission lifecycle."""

    @property
    @abstractmethod
    def permission(self) -> str:
        pass

    @abstractmethod
    def request_permission(self) -> str:
        """Ask for permission; returns the resulting state."""
        pass

    @abstractmethod
    def show(self, title: str, message: str) -> None:
        pass

    def notify(self, title: str, message: str) -> bool:
        """
        Show a notification if permission allows it.

        Undecided permission is requested first; a denial is not an error.

        Returns:
            True if the notification was shown.
        """
        permission = self.permission
        if permission == DEFAULT:
            permission = self.request_permission()
        if permission != GRANTED:
            logger.debug(f"Desktop notification skipped (permission: {permission})")
            return False
        try:
            self.show(title, message)
        except Exception as e:
            logger.warning(f"Failed to show desktop notification: {e}")
            return False
        return True


class CommandNotifier(DesktopNotifier):
    """
    Uses ``notify-send`` on Linux and ``osascript`` on macOS.

    Permission stays undecided until first use; it is granted when the
    platform command exists and denied otherwise.
    """

    def __init__(self, app_name: str = "Medistream", timeout: float = 5.0):
        self.app_name = app_name
        self.timeout = timeout
        self._permission = DEFAULT
        self._command: Optional[str] = None

    @property
    def permission(self) -> str:
        return self._permission

    def request_permission(self) -> str:
        if self._permission != DEFAULT:
            return self._permission
        name = "osascript" if sys.platform == "darwin" else "notify-send"
        self._command = shutil.which(name)
        self._permission = GRANTED if self._command else DENIED
        logger.info(f"Desktop notifications {self._permission} ({name})")
        return self._permission

    def show(self, title: str, message: str) -> None:
        if sys.platform == "darwin":
            script = f"display notification {_applescript_string(message)} with title {_applescript_string(title)}"
            args = [self._command, "-e", script]
        else:
            args = [self._command, "--app-name", self.app_name, title, message]
        subprocess.run(args, check=True, timeout=self.timeout,
                       stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


class NullNotifier(DesktopNotifier):
    """Headless environments: permission is always denied."""

    @property
    def permission(self) -> str:
        return DENIED

    def request_permission(self) -> str:
        return DENIED

    def show(self, title: str, message: str) -> None:
        pass


def _applescript_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
