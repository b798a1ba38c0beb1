"""Key-value storage with whole-value get/set and change notifications."""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable

from ..errors import StorageError

_LOGGER = logging.getLogger(__name__)

ChangeListener = Callable[[str, Any, Any], None]


class KeyValueStore:
    """Shared behaviour for stores: values are replaced whole, never patched.

    Listeners are called with ``(key, old_value, new_value)`` after every
    ``set`` that changes the stored value.
    """

    def __init__(self):
        self._listeners: list[ChangeListener] = []
        self._listeners_lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, key: str, old_value: Any, new_value: Any) -> None:
        if old_value == new_value:
            return
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(key, old_value, new_value)
            except Exception:
                _LOGGER.exception("Store listener failed for key %s", key)


class MemoryStore(KeyValueStore):
    """Process-local store. Values are deep-copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None):
        super().__init__()
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        old_value = self._data.get(key)
        self._data[key] = copy.deepcopy(value)
        self._emit(key, old_value, value)


class JsonFileStore(KeyValueStore):
    """Store backed by a single JSON object on disk.

    Every ``get`` re-reads the file so separate processes see each other's
    writes. Writes go to a sibling temp file first and are then moved into
    place, so a crash mid-write never leaves a truncated document.
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Could not read {self.path}: {exc}") from exc
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt store file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Store file {self.path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Could not write {self.path}: {exc}") from exc

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        old_value = data.get(key)
        data[key] = value
        self._write(data)
        self._emit(key, old_value, value)
