"""Delivery backends for notifications."""

from __future__ import annotations

import logging
import shutil
import subprocess

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .notifier import NEGATIVE_ICON, Notification

_LOGGER = logging.getLogger(__name__)


class NotificationBackend:
    """Delivers a Notification to the host. Subclasses declare what they honour."""

    name = "base"
    supports_buttons = True
    supports_require_interaction = True

    def deliver(self, notification: Notification) -> None:
        raise NotImplementedError


class ConsoleBackend(NotificationBackend):
    """Render notifications as panels on the terminal."""

    name = "console"

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def deliver(self, notification: Notification) -> None:
        style = "red" if notification.icon == NEGATIVE_ICON else "green"
        lines = [escape(notification.body)]
        for button in notification.buttons:
            lines.append(f"[bold]{escape(button)}[/] → {escape(notification.id)}")
        subtitle = "requires interaction" if notification.require_interaction else None
        self.console.print(
            Panel("\n".join(lines), title=escape(notification.title), subtitle=subtitle, border_style=style)
        )


class DesktopBackend(NotificationBackend):
    """Send notifications through ``notify-send`` (libnotify).

    notify-send has no click-through buttons; the closest thing to
    "require interaction" is critical urgency, which most daemons keep on
    screen until dismissed.
    """

    name = "desktop"
    supports_buttons = False

    _ICONS = {
        "favicon-green.png": "dialog-information",
        "favicon-red.png": "dialog-error",
    }

    def __init__(self, app_name: str = "Bitbucket Alerts", executable: str = "notify-send"):
        self.app_name = app_name
        self.executable = executable

    def deliver(self, notification: Notification) -> None:
        if shutil.which(self.executable) is None:
            _LOGGER.warning("%s not found; dropping notification %r", self.executable, notification.title)
            return

        cmd = [
            self.executable,
            "--app-name",
            self.app_name,
            "--icon",
            self._ICONS.get(notification.icon, notification.icon),
            "--urgency",
            "critical" if notification.require_interaction else "normal",
            notification.title,
            notification.body,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
        except (OSError, subprocess.TimeoutExpired) as exc:
            _LOGGER.warning("Desktop notification failed: %s", exc)
            return
        if result.returncode != 0:
            _LOGGER.warning("Desktop notification failed: %s", result.stderr.strip())


BACKENDS = {
    ConsoleBackend.name: ConsoleBackend,
    DesktopBackend.name: DesktopBackend,
}


def create_backend(name: str) -> NotificationBackend:
    try:
        return BACKENDS[name]()
    except KeyError:
        raise ValueError(f"Unknown notification backend: {name!r} (choose from {sorted(BACKENDS)})") from None
