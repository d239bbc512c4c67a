"""In-process namespace backed by a dictionary."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Mapping, Optional, Tuple

from ..core.source import NamespaceCallback
from ..core.types import NamespaceChange

logger = logging.getLogger(__name__)


class MemoryNamespace:
    """Namespace holding its values in memory.

    Every mutation is reported to change listeners as a
    :class:`NamespaceChange`.
    """

    def __init__(self, name: str, values: Optional[Mapping[str, str]] = None):
        self.name = name
        self.id = f"memory:{name}"
        self._values: Dict[str, str] = dict(values or {})
        self._lock = threading.RLock()
        self._callbacks: Tuple[NamespaceCallback, ...] = ()

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def exists(self, key: str) -> bool:
        return key in self._values

    def keys(self) -> List[str]:
        return list(self._values.keys())

    def values(self) -> Dict[str, str]:
        return dict(self._values)

    def size(self) -> int:
        return len(self._values)

    def add_change_listener(self, callback: NamespaceCallback) -> None:
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks = self._callbacks + (callback,)

    def remove_change_listener(self, callback: NamespaceCallback) -> None:
        with self._lock:
            self._callbacks = tuple(c for c in self._callbacks if c != callback)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            old = self._values.get(key)
            if old == value and key in self._values:
                return
            self._values[key] = value
        self._fire(NamespaceChange(key, old, value, "added" if old is None else "modified"))

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._values:
                return
            old = self._values.pop(key)
        self._fire(NamespaceChange(key, old, None, "deleted"))

    def replace(self, values: Mapping[str, str]) -> None:
        """Replace the whole content, reporting only the keys that differ."""
        with self._lock:
            current = dict(self._values)
            self._values = dict(values)
        changes: List[NamespaceChange] = []
        for key, old in current.items():
            if key not in values:
                changes.append(NamespaceChange(key, old, None, "deleted"))
        for key, value in values.items():
            old = current.get(key)
            if key not in current:
                changes.append(NamespaceChange(key, None, value, "added"))
            elif old != value:
                changes.append(NamespaceChange(key, old, value, "modified"))
        for change in changes:
            self._fire(change)

    def _fire(self, change: NamespaceChange) -> None:
        for callback in self._callbacks:
            try:
                callback(change)
            except Exception:
                logger.exception(
                    "Change listener failed for %s of %s in namespace %s",
                    change.change_type,
                    change.key,
                    self.name,
                )
