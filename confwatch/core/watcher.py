"""Classification of raw tree events into update results."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Dict, Optional

from .gate import InitializationGate
from .keys import path_depth, path_to_key
from .listeners import ListenerRegistry
from .types import TreeEvent, TreeEventKind, UpdateKind, UpdateResult

logger = logging.getLogger(__name__)

# Depth of /dubbo/config/<service>/<rule>, counting the leading empty segment.
DEFAULT_NOTIFY_DEPTH = 5
# Levels between the watched root and a notified node.
RELATIVE_NOTIFY_OFFSET = 2
_WORKER_PREFIX = "confwatch-watcher"

_UPDATE_KINDS: Dict[TreeEventKind, UpdateKind] = {
    TreeEventKind.ADDED: UpdateKind.ADDED,
    TreeEventKind.CHANGED: UpdateKind.CHANGED,
    TreeEventKind.REMOVED: UpdateKind.DELETED,
}


class WatcherState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SYNCING = "syncing"
    READY = "ready"
    CLOSED = "closed"


class TreeWatcher:
    """Turn the backend event stream into update results for listeners.

    Events handed to :meth:`submit` are processed one at a time on a single
    worker thread, so listeners observe them in backend order. Listeners run
    on that worker too; a slow listener delays the events behind it.

    Only nodes at the notification depth reach listeners. Shallower and
    deeper nodes stay visible through snapshot reads.
    """

    def __init__(
        self,
        root_path: str,
        registry: Optional[ListenerRegistry] = None,
        gate: Optional[InitializationGate] = None,
        notify_depth: Optional[int] = None,
        relative_depth: bool = False,
        encoding: str = "utf-8",
    ):
        """Initialize TreeWatcher.

        Args:
            root_path: Watched root, stripped from paths to build keys.
            registry: Listener registry results are dispatched to.
            gate: Gate opened when the backend finishes its initial sync.
            notify_depth: Absolute path depth of notified nodes.
            relative_depth: Derive the depth from ``root_path`` instead.
            encoding: Payload text encoding.
        """
        self.root_path = root_path
        self.registry = registry if registry is not None else ListenerRegistry()
        self.gate = gate if gate is not None else InitializationGate()
        if relative_depth:
            # "/" splits into two empty segments, count it like the empty path
            self.notify_depth = path_depth(root_path.rstrip("/")) + RELATIVE_NOTIFY_OFFSET
        else:
            self.notify_depth = DEFAULT_NOTIFY_DEPTH if notify_depth is None else notify_depth
        self.encoding = encoding
        self.dispatched_count = 0
        self.dropped_count = 0
        self._state = WatcherState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    @property
    def state(self) -> WatcherState:
        return self._state

    def _transition(self, new_state: WatcherState) -> None:
        with self._state_lock:
            if self._state is WatcherState.CLOSED or self._state is new_state:
                return
            logger.debug("Watcher on %s: %s -> %s", self.root_path, self._state.value, new_state.value)
            self._state = new_state

    def on_connecting(self) -> None:
        self._transition(WatcherState.CONNECTING)

    def on_connected(self) -> None:
        if self.gate.is_open:
            self._transition(WatcherState.READY)
        else:
            self._transition(WatcherState.SYNCING)

    def on_disconnected(self) -> None:
        self._transition(WatcherState.CONNECTING)

    def on_initialized(self) -> None:
        self.gate.open()
        self._transition(WatcherState.READY)

    def submit(self, event: TreeEvent) -> Optional[Future]:
        """Queue an event for processing on the watcher's worker thread."""
        with self._executor_lock:
            if self._state is WatcherState.CLOSED:
                logger.debug("Watcher on %s is closed, dropping %s event", self.root_path, event.kind.value)
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=_WORKER_PREFIX
                )
            return self._executor.submit(self._process_logged, event)

    def _process_logged(self, event: TreeEvent) -> Optional[UpdateResult]:
        try:
            return self.process(event)
        except Exception:
            logger.exception(
                "Failed to process %s event for %s", event.kind.value, event.path
            )
            return None

    def process(self, event: TreeEvent) -> Optional[UpdateResult]:
        """Classify one event and dispatch the resulting update.

        Returns:
            The dispatched result, or None if the event was dropped.
        """
        if event.kind is TreeEventKind.INITIALIZED:
            self.on_initialized()
            return None

        kind = _UPDATE_KINDS.get(event.kind)
        if kind is None or not event.path:
            return None

        if path_depth(event.path) != self.notify_depth:
            logger.debug(
                "Ignoring %s event for %s outside notification depth %d",
                event.kind.value,
                event.path,
                self.notify_depth,
            )
            self.dropped_count += 1
            return None

        try:
            value = (event.payload or b"").decode(self.encoding)
        except UnicodeDecodeError:
            logger.exception(
                "Cannot decode payload of %s event for %s, dropping it",
                event.kind.value,
                event.path,
            )
            self.dropped_count += 1
            return None

        result = UpdateResult.single(kind, path_to_key(event.path, self.root_path), value)
        self.registry.dispatch(result)
        self.dispatched_count += 1
        return result

    def close(self, wait: bool = True) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
            with self._state_lock:
                self._state = WatcherState.CLOSED
        if executor is not None:
            # a listener closing the source runs on the worker and cannot join it
            if threading.current_thread().name.startswith(_WORKER_PREFIX):
                wait = False
            executor.shutdown(wait=wait)
