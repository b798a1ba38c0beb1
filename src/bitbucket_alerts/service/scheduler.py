"""Fixed-period scheduler that runs reconciliation passes on a background thread."""

from __future__ import annotations

import logging
import threading

from .alerts import AlertService

_LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60


class Scheduler:
    def __init__(self, service: AlertService, interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        self.service = service
        self.interval_seconds = max(1.0, float(interval_seconds))
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> None:
        """Run one pass. Failures are logged so the loop keeps going."""
        try:
            self.service.run_pass()
        except Exception:
            _LOGGER.exception("Reconciliation pass failed")

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            if self._stop_event.wait(self.interval_seconds):
                break

    def start(self) -> threading.Thread:
        if self.running:
            raise RuntimeError("Scheduler is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="alerts-scheduler", daemon=True)
        self._thread.start()
        _LOGGER.info("Scheduler started, every %.0fs", self.interval_seconds)
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        _LOGGER.info("Scheduler stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until stopped. Returns True if the stop was requested."""
        return self._stop_event.wait(timeout)
