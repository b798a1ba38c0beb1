"""User-facing notifications for build and pull request changes."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable

import click

from ..store import KeyValueStore, read_require_interaction

if TYPE_CHECKING:
    from .backends import NotificationBackend

_LOGGER = logging.getLogger(__name__)

NEUTRAL_ICON = "favicon-green.png"
NEGATIVE_ICON = "favicon-red.png"

MAX_ACTIVE = 100


@dataclass(frozen=True)
class Action:
    title: str
    link: str


@dataclass(frozen=True)
class Notification:
    id: str
    icon: str
    title: str
    body: str
    require_interaction: bool = False
    buttons: tuple[str, ...] = ()


class Notifier:
    """Builds notifications, tracks them by id, and hands them to a backend.

    The id is the action link when there is one, so a second notification
    for the same link replaces the first. Without an action the id is a
    millisecond timestamp and every call produces a new entry. Only the
    newest ``max_active`` notifications are remembered.
    """

    def __init__(
        self,
        backend: "NotificationBackend",
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        opener: Callable[[str], object] = click.launch,
        max_active: int = MAX_ACTIVE,
    ):
        self.backend = backend
        self.store = store
        self._clock = clock
        self._opener = opener
        self.max_active = max(1, max_active)
        self._active: OrderedDict[str, Notification] = OrderedDict()
        self._links: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def active(self) -> dict[str, Notification]:
        with self._lock:
            return dict(self._active)

    def _next_timestamp_id(self) -> str:
        candidate = str(int(self._clock() * 1000))
        # Two notifications inside the same millisecond must not collapse.
        while candidate in self._active:
            candidate = str(int(candidate) + 1)
        return candidate

    def notify(self, title: str, body: str, negative: bool = False, action: Action | None = None) -> Notification:
        with self._lock:
            notification_id = action.link if action else self._next_timestamp_id()
            notification = Notification(
                id=notification_id,
                icon=NEGATIVE_ICON if negative else NEUTRAL_ICON,
                title=title,
                body=body,
                require_interaction=read_require_interaction(self.store),
                buttons=(action.title,) if action else (),
            )
            if notification_id in self._active:
                _LOGGER.debug("Replacing notification %s", notification_id)
            self._active[notification_id] = notification
            self._active.move_to_end(notification_id)
            if action:
                self._links[notification_id] = action.link
            while len(self._active) > self.max_active:
                oldest, _ = self._active.popitem(last=False)
                self._links.pop(oldest, None)

        delivered = notification
        if not self.backend.supports_require_interaction:
            delivered = replace(delivered, require_interaction=False)
        if not self.backend.supports_buttons:
            delivered = replace(delivered, buttons=())

        _LOGGER.info("Notify: %s | %s", title, body.replace("\n", " / "))
        try:
            self.backend.deliver(delivered)
        except Exception:
            _LOGGER.exception("Notification backend %s failed", self.backend.name)
        return notification

    def button_clicked(self, notification_id: str) -> bool:
        """Open the link behind a notification's action button, if it has one."""
        with self._lock:
            link = self._links.get(notification_id)
        if link is None:
            return False
        self._opener(link)
        return True

    def dismiss(self, notification_id: str) -> None:
        with self._lock:
            self._active.pop(notification_id, None)
            self._links.pop(notification_id, None)

    def send_test_notification(self) -> Notification:
        return self.notify("Hello!", "Hope you like it.")
