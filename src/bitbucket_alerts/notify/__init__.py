"""Notifications and the backends that deliver them."""

from .notifier import Action, Notification, Notifier
from .backends import ConsoleBackend, DesktopBackend, NotificationBackend, create_backend

__all__ = [
    "Action",
    "ConsoleBackend",
    "DesktopBackend",
    "Notification",
    "NotificationBackend",
    "Notifier",
    "create_backend",
]
