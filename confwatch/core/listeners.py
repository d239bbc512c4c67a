"""Listener registry and dispatch of update results."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Tuple

from .source import UpdateListener
from .types import UpdateResult

logger = logging.getLogger(__name__)


class CallbackListener:
    """Adapts a plain callable to the update listener protocol."""

    def __init__(self, callback: Callable[[UpdateResult], Any]):
        self.callback = callback

    def update_configuration(self, result: UpdateResult) -> None:
        self.callback(result)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CallbackListener) and other.callback == self.callback

    def __hash__(self) -> int:
        return hash(self.callback)


class ListenerRegistry:
    """Ordered set of update listeners with copy-on-write mutation.

    Dispatch iterates over the tuple captured when it starts, so listeners
    may be added or removed concurrently, including from inside a listener.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Tuple[UpdateListener, ...] = ()

    def add_listener(self, listener: Optional[UpdateListener]) -> None:
        if listener is None:
            return
        with self._lock:
            if listener in self._listeners:
                return
            self._listeners = self._listeners + (listener,)

    def remove_listener(self, listener: Optional[UpdateListener]) -> None:
        if listener is None:
            return
        with self._lock:
            self._listeners = tuple(l for l in self._listeners if l != listener)

    def add_callback(self, callback: Callable[[UpdateResult], Any]) -> UpdateListener:
        """Register a plain callable and return the handle to remove it with."""
        listener = CallbackListener(callback)
        self.add_listener(listener)
        return listener

    def listeners(self) -> Tuple[UpdateListener, ...]:
        return self._listeners

    def clear(self) -> None:
        with self._lock:
            self._listeners = ()

    def __len__(self) -> int:
        return len(self._listeners)

    def dispatch(self, result: UpdateResult) -> int:
        """Deliver ``result`` to every registered listener.

        A failing listener is logged and skipped; the remaining listeners
        still receive the result.

        Returns:
            Number of listeners that handled the result without raising.
        """
        delivered = 0
        for listener in self._listeners:
            try:
                listener.update_configuration(result)
                delivered += 1
            except Exception:
                logger.exception("Error in invoking update listener %r", listener)
        return delivered
