"""Typed access to the handful of keys the alert engine reads and writes."""

from __future__ import annotations

import base64
import logging
import os

from ..errors import CredentialMissingError, StorageError
from ..models import Alert
from .backends import KeyValueStore

_LOGGER = logging.getLogger(__name__)

ALERTS_KEY = "bitbucket-alerts-alerts"
USERNAME_KEY = "bitbucket-alerts-username"
APP_PASSWORD_KEY = "bitbucket-alerts-app-password"
REQUIRE_INTERACTION_KEY = "bitbucket-alerts-require-interaction"

USERNAME_ENV = "BITBUCKET_USERNAME"
APP_PASSWORD_ENV = "BITBUCKET_APP_PASSWORD"


def load_alerts(store: KeyValueStore) -> list[Alert]:
    """Return the whole alert collection; an absent or non-list value is empty."""
    raw = store.get(ALERTS_KEY)
    if not isinstance(raw, list):
        return []

    alerts: list[Alert] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            alerts.append(Alert.from_dict(item))
        except (KeyError, TypeError, ValueError):
            _LOGGER.warning("Skipping malformed stored alert: %r", item)
    return alerts


def save_alerts(store: KeyValueStore, alerts: list[Alert]) -> None:
    store.set(ALERTS_KEY, [alert.to_dict() for alert in alerts])


def read_credentials(store: KeyValueStore) -> tuple[str, str]:
    """Return ``(username, app_password)``, falling back to the environment."""
    username = store.get(USERNAME_KEY) or os.getenv(USERNAME_ENV, "")
    app_password = store.get(APP_PASSWORD_KEY) or os.getenv(APP_PASSWORD_ENV, "")
    return str(username), str(app_password)


def write_credentials(store: KeyValueStore, username: str, app_password: str) -> None:
    store.set(USERNAME_KEY, username)
    store.set(APP_PASSWORD_KEY, app_password)


def encode_auth_token(username: str, app_password: str) -> str:
    return base64.b64encode(f"{username}:{app_password}".encode("utf-8")).decode("ascii")


def get_auth_token(store: KeyValueStore, strict: bool = False) -> str:
    """Build the Basic auth token from the stored secrets.

    In strict mode missing secrets raise CredentialMissingError. Otherwise an
    incomplete token is returned and the remote calls fail on their own.
    """
    username, app_password = read_credentials(store)
    if strict and (not username or not app_password):
        raise CredentialMissingError(
            "Bitbucket credentials are not configured. Run `bitbucket-alerts login` first."
        )
    return encode_auth_token(username, app_password)


def read_require_interaction(store: KeyValueStore) -> bool:
    """Only an explicit ``False`` turns the preference off."""
    try:
        value = store.get(REQUIRE_INTERACTION_KEY)
    except StorageError:
        _LOGGER.exception("Could not read notification preference; assuming default")
        return True
    return value is not False


def write_require_interaction(store: KeyValueStore, enabled: bool) -> None:
    store.set(REQUIRE_INTERACTION_KEY, bool(enabled))
