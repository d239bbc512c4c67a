from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

import redis

from ..core.source import NamespaceCallback
from ..core.types import NamespaceChange

logger = logging.getLogger(__name__)

_DELETE_EVENTS = {"del", "expired", "evicted", "rename_from"}
_SET_EVENTS = {"set", "setrange", "append", "incrby", "incrbyfloat", "rename_to"}


class RedisNamespace:
    """Namespace reading string keys under a prefix of a Redis database.

    Changes are observed through keyspace notifications, which the server
    must publish (``notify-keyspace-events`` containing ``K``, ``$``, ``g``,
    ``x`` and ``e``). Pass ``enable_notifications=True`` to configure that
    on connect.
    """

    def __init__(
        self,
        uri: str,
        name: Optional[str] = None,
        prefix: str = "",
        enable_notifications: bool = False,
    ):
        self.uri = uri
        self.client = redis.Redis.from_url(uri, decode_responses=True)
        self.name = name or f"redis:{uri}"
        self.id = uri
        self.prefix = prefix
        self.enable_notifications = enable_notifications
        self._lock = threading.Lock()
        self._callbacks: Tuple[NamespaceCallback, ...] = ()
        self._pubsub: Optional[Any] = None
        self._thread: Optional[Any] = None

    def _prefixed(self, key: str) -> str:
        return f"{self.prefix}{key}" if self.prefix else key

    def _unprefixed(self, key: str) -> str:
        if self.prefix and key.startswith(self.prefix):
            return key[len(self.prefix) :]
        return key

    @property
    def _channel_pattern(self) -> str:
        db = self.client.connection_pool.connection_kwargs.get("db", 0)
        return f"__keyspace@{db}__:{self._prefixed('*')}"

    def get(self, key: str) -> Optional[str]:
        return self.client.get(self._prefixed(key))

    def exists(self, key: str) -> bool:
        return bool(self.client.exists(self._prefixed(key)))

    def keys(self) -> List[str]:
        return [self._unprefixed(k) for k in self.client.scan_iter(match=self._prefixed("*"))]

    def values(self) -> Dict[str, str]:
        keys = list(self.client.scan_iter(match=self._prefixed("*")))
        kv: Dict[str, str] = {}
        if keys:
            for k, v in zip(keys, self.client.mget(keys)):
                if v is not None:
                    kv[self._unprefixed(k)] = v
        return kv

    def add_change_listener(self, callback: NamespaceCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                return
            self._callbacks = self._callbacks + (callback,)
            if self._thread is None:
                self._subscribe()

    def remove_change_listener(self, callback: NamespaceCallback) -> None:
        with self._lock:
            self._callbacks = tuple(c for c in self._callbacks if c != callback)
            if not self._callbacks:
                self._unsubscribe()

    def _subscribe(self) -> None:
        if self.enable_notifications:
            self.client.config_set("notify-keyspace-events", "K$gxe")
        self._pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.psubscribe(**{self._channel_pattern: self._on_message})
        self._thread = self._pubsub.run_in_thread(sleep_time=0.5, daemon=True)

    def _unsubscribe(self) -> None:
        thread, self._thread = self._thread, None
        pubsub, self._pubsub = self._pubsub, None
        if thread is not None:
            thread.stop()
        if pubsub is not None:
            pubsub.close()

    def _on_message(self, message: Dict[str, Any]) -> None:
        channel = message.get("channel") or ""
        operation = message.get("data")
        _, _, raw_key = channel.partition(":")
        if not raw_key:
            return
        key = self._unprefixed(raw_key)
        if operation in _DELETE_EVENTS:
            change = NamespaceChange(key, None, None, "deleted")
        elif operation in _SET_EVENTS:
            change = NamespaceChange(key, None, self.client.get(raw_key), "modified")
        else:
            return
        for callback in self._callbacks:
            try:
                callback(change)
            except Exception:
                logger.exception(
                    "Change listener failed for %s of %s in namespace %s",
                    change.change_type,
                    key,
                    self.name,
                )

    def close(self) -> None:
        with self._lock:
            self._callbacks = ()
            self._unsubscribe()
        self.client.close()
