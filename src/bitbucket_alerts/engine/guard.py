"""Runway guard: at most one reconciliation pass in flight at a time."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable

from filelock import FileLock, Timeout

_LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 0.1


class RunwayGuard:
    """A busy flag that waiters poll, rather than a blocking lock.

    The alert collection is only ever replaced whole, so two passes that
    read-modify-write it concurrently would lose one writer's changes.
    With ``lock_path`` the runway also covers other processes sharing the
    same store file: taking it means holding that lock file as well.
    """

    def __init__(
        self,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        lock_path: str | Path | None = None,
    ):
        self.poll_seconds = poll_seconds
        self._sleep = sleep
        self._state_lock = threading.Lock()
        self._in_progress = False
        self.lock_path = Path(lock_path) if lock_path is not None else None
        # Not per-thread: whichever thread holds the runway releases it.
        self._file_lock = FileLock(str(self.lock_path), thread_local=False) if self.lock_path else None

    @property
    def in_progress(self) -> bool:
        with self._state_lock:
            return self._in_progress

    def try_acquire(self) -> bool:
        with self._state_lock:
            if self._in_progress:
                return False
            self._in_progress = True

        if self._file_lock is not None:
            try:
                self._file_lock.acquire(timeout=0)
            except Timeout:
                with self._state_lock:
                    self._in_progress = False
                return False
        return True

    def acquire(self) -> None:
        waited = False
        while not self.try_acquire():
            if not waited:
                _LOGGER.debug("Runway busy, waiting")
                waited = True
            self._sleep(self.poll_seconds)

    def release(self) -> None:
        with self._state_lock:
            if self._file_lock is not None and self._in_progress:
                self._file_lock.release()
            self._in_progress = False

    def __enter__(self) -> "RunwayGuard":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


# Shared by every service in the process unless one is injected.
RUNWAY = RunwayGuard()
