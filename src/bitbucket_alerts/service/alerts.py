"""Alert service: scheduled passes, alert creation and removal, and the message channel."""

from __future__ import annotations

import logging
import re
from functools import partial
from pathlib import Path
from typing import Any, Callable

from ..engine import RUNWAY, Reconciler, RunwayGuard
from ..engine.reconciler import RemoteClient
from ..errors import AlertsError, StorageError
from ..models import Alert
from ..notify import Notifier, create_backend
from ..remote import BitbucketClient
from ..store import JsonFileStore, KeyValueStore, get_auth_token, load_alerts, save_alerts

_LOGGER = logging.getLogger(__name__)

NEW_ALERT = "new-alert"
REMOVE_ALERT = "remove-alert"

_PULL_REQUEST_URL = re.compile(
    r"^https?://(?:www\.)?bitbucket\.org/([\w.-]+)/([\w.-]+)/pull-requests/(\d+)(?:[/?#].*)?$"
)

ClientFactory = Callable[[str], RemoteClient]


def parse_pull_request_url(url: str) -> tuple[str, str, str] | None:
    """Extract ``(organisation, repository, request_number)`` from a pull request page URL."""
    match = _PULL_REQUEST_URL.match(url.strip())
    if not match:
        return None
    return match.group(1), match.group(2), match.group(3)


def _close(client: Any) -> None:
    close = getattr(client, "close", None)
    if callable(close):
        close()


class AlertService:
    """Owns the read-modify-write cycles on the alert collection.

    Every cycle runs under the runway guard so a scheduled pass and a
    user request never interleave their writes.
    """

    def __init__(
        self,
        store: KeyValueStore,
        reconciler: Reconciler,
        client_factory: ClientFactory,
        guard: RunwayGuard = RUNWAY,
    ):
        self.store = store
        self.reconciler = reconciler
        self.client_factory = client_factory
        self.guard = guard

    @property
    def notifier(self) -> Notifier:
        return self.reconciler.notifier

    def list_alerts(self) -> list[Alert]:
        return load_alerts(self.store)

    def run_pass(self) -> dict[str, int] | None:
        """Reconcile every alert once and write the collection back.

        Alerts already flagged for removal when the pass starts are dropped;
        alerts flagged during this pass are kept until the next one. Returns
        pass statistics, or None when there was nothing to do or the store
        could not be read.
        """
        with self.guard:
            try:
                alerts = load_alerts(self.store)
                if not alerts:
                    _LOGGER.debug("No alerts to process")
                    return None
                token = get_auth_token(self.store)
            except StorageError:
                _LOGGER.exception("Could not load alerts; skipping this pass")
                return None

            survivors = [alert for alert in alerts if not alert.pending_removal]
            client = self.client_factory(token)
            try:
                for alert in survivors:
                    try:
                        self.reconciler.reconcile(alert, client, strict=False)
                    except Exception:
                        _LOGGER.exception("Unexpected failure reconciling %s", alert.id)
            finally:
                _close(client)

            try:
                save_alerts(self.store, survivors)
            except StorageError:
                _LOGGER.exception("Could not write alerts back; changes from this pass are lost")
                return None

        stats = {
            "processed": len(survivors),
            "removed": len(alerts) - len(survivors),
            "stale": sum(1 for alert in survivors if alert.stale),
            "pending_removal": sum(1 for alert in survivors if alert.pending_removal),
        }
        _LOGGER.info(
            "Pass complete: %d processed, %d removed, %d stale, %d pending removal",
            stats["processed"],
            stats["removed"],
            stats["stale"],
            stats["pending_removal"],
        )
        return stats

    def create_alert(self, organisation: str, repository: str, request_number: str | int) -> dict[str, Any]:
        """Start tracking a pull request and refresh it straight away.

        Returns ``{"confirmed": True}``, ``{"alreadyExists": True}`` or
        ``{"error": True, "message": ...}``.
        """
        alert = Alert.create(organisation, repository, request_number)

        with self.guard:
            try:
                alerts = load_alerts(self.store)
                if any(existing.id == alert.id for existing in alerts):
                    _LOGGER.info("Alert %s already exists", alert.id)
                    return {"alreadyExists": True}

                alerts.insert(0, alert)
                save_alerts(self.store, alerts)

                token = get_auth_token(self.store, strict=True)
                client = self.client_factory(token)
                try:
                    self.reconciler.reconcile(alert, client, strict=True)
                finally:
                    _close(client)

                save_alerts(self.store, alerts)
            except AlertsError as exc:
                _LOGGER.warning("Could not create alert %s: %s", alert.id, exc)
                return {"error": True, "message": str(exc)}

        _LOGGER.info("Tracking %s", alert.id)
        return {"confirmed": True}

    def remove_alert(self, alert_id: str) -> bool:
        """Stop tracking ``alert_id``. Returns whether anything was removed."""
        with self.guard:
            alerts = load_alerts(self.store)
            remaining = [alert for alert in alerts if alert.id != alert_id]
            if len(remaining) == len(alerts):
                return False
            save_alerts(self.store, remaining)
        _LOGGER.info("Removed alert %s", alert_id)
        return True

    def handle_message(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Dispatch one UI message. ``remove-alert`` is fire-and-forget."""
        message_type = message.get("type")

        if message_type == NEW_ALERT:
            fields = [message.get(key) for key in ("organisation", "repository", "requestNumber")]
            if any(value is None or str(value).strip() == "" for value in fields):
                return {"error": True, "message": "organisation, repository and requestNumber are required"}
            organisation, repository, request_number = (str(value).strip() for value in fields)
            return self.create_alert(organisation, repository, request_number)

        if message_type == REMOVE_ALERT:
            alert_id = message.get("id")
            if not alert_id:
                _LOGGER.warning("remove-alert message without an id: %r", message)
                return None
            try:
                self.remove_alert(str(alert_id))
            except StorageError:
                _LOGGER.exception("Could not remove alert %s", alert_id)
            return None

        raise ValueError(f"Unknown message type: {message_type!r}")


def build_service(config: dict) -> AlertService:
    """Wire the file store, notifier, reconciler and HTTP client from config.

    The guard locks a file beside the store, so a ``watch`` process and a
    one-off ``add`` or ``remove`` never interleave their writes.
    """
    store = JsonFileStore(Path(config["store"]["path"]))
    notifier = Notifier(create_backend(config["notifications"]["backend"]), store)
    reconciler = Reconciler.from_config(config, notifier)
    client_factory = partial(
        BitbucketClient,
        base_url=config["api"]["base_url"],
        timeout=float(config["api"]["timeout_seconds"]),
    )
    guard = RunwayGuard(
        poll_seconds=float(config["schedule"]["guard_poll_seconds"]),
        lock_path=store.path.with_name(store.path.name + ".lock"),
    )
    return AlertService(store, reconciler, client_factory, guard=guard)
