"""ZooKeeper backed watched configuration source."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from kazoo.client import KazooClient, KazooState
from kazoo.exceptions import KazooException
from kazoo.recipe.cache import TreeCache
from kazoo.recipe.cache import TreeEvent as KazooTreeEvent
from kazoo.retry import KazooRetry

from ..core.errors import ConnectivityError, SourceStartupError
from ..core.gate import InitializationGate
from ..core.keys import join_path, normalize_root_path
from ..core.listeners import ListenerRegistry
from ..core.settings import SourceSettings
from ..core.snapshot import SnapshotReader
from ..core.source import TreeClient, UpdateListener
from ..core.types import ConfigNode, TreeEvent, TreeEventKind, UpdateKind, UpdateResult
from ..core.watcher import TreeWatcher, WatcherState
from .memory import MemoryNamespace

logger = logging.getLogger(__name__)

_EVENT_KINDS: Dict[int, TreeEventKind] = {
    KazooTreeEvent.NODE_ADDED: TreeEventKind.ADDED,
    KazooTreeEvent.NODE_UPDATED: TreeEventKind.CHANGED,
    KazooTreeEvent.NODE_REMOVED: TreeEventKind.REMOVED,
    KazooTreeEvent.INITIALIZED: TreeEventKind.INITIALIZED,
}


def connect(settings: SourceSettings) -> KazooClient:
    """Create and start a client, waiting up to ``connect_timeout`` for it.

    Raises:
        ConfigurationError: If the settings are invalid.
        ConnectivityError: If strict and the connection was not established.
        SourceStartupError: If the client failed while starting.
    """
    settings.validate()
    client = KazooClient(
        hosts=settings.address,
        timeout=settings.session_timeout,
        connection_retry=KazooRetry(max_tries=3, delay=1.0, backoff=2),
    )
    try:
        client.start_async().wait(settings.connect_timeout)
    except KazooException as e:
        raise SourceStartupError(
            f"The client failed unexpectedly while connecting to config center "
            f"(zookeeper) {settings.address}"
        ) from e

    if not client.connected:
        if settings.strict:
            client.stop()
            client.close()
            raise ConnectivityError(
                f"Failed to connect to config center (zookeeper): {settings.address} "
                f"in {settings.connect_timeout}s."
            )
        logger.warning(
            "Cannot connect to config center (zookeeper) %s in %ss",
            settings.address,
            settings.connect_timeout,
        )
    return client


class KazooTreeClient:
    """Tree client backed by a kazoo :class:`TreeCache`."""

    def __init__(self, client: KazooClient, root_path: str):
        self.client = client
        self.root_path = root_path
        self.cache = TreeCache(client, root_path)

    def listen(self, callback: Callable[[TreeEvent], Any]) -> None:
        def _forward(event: KazooTreeEvent) -> None:
            callback(self.translate(event))

        self.cache.listen(_forward)

    @staticmethod
    def translate(event: KazooTreeEvent) -> TreeEvent:
        kind = _EVENT_KINDS.get(event.event_type, TreeEventKind.OTHER)
        data = event.event_data
        if data is None:
            return TreeEvent(kind=kind)
        return TreeEvent(kind=kind, path=data.path, payload=data.data)

    def start(self) -> None:
        self.cache.start()

    def get_children(self, path: str) -> Optional[Dict[str, ConfigNode]]:
        names = self.cache.get_children(path)
        if names is None:
            return None
        children: Dict[str, ConfigNode] = {}
        for name in names:
            child_path = join_path(path, name)
            node = self.cache.get_data(child_path)
            if node is None:
                continue
            version = node.stat.version if node.stat is not None else None
            children[name] = ConfigNode(path=child_path, data=node.data, version=version)
        return children

    def close(self) -> None:
        self.cache.close()


class ZooKeeperConfigurationSource:
    """Watched configuration source mirroring a ZooKeeper subtree.

    Listeners receive one :class:`UpdateResult` per qualifying node change,
    in the order ZooKeeper reported them. :meth:`get_current_data` returns a
    fresh snapshot once the initial sync has completed.

    Example:
        >>> source = ZooKeeperConfigurationSource.from_settings(
        ...     SourceSettings(address="127.0.0.1:2181", root_path="dubbo"))
        >>> source.add_update_listener(listener)
        >>> source.start()
        >>> source.get_current_data()
        {'service.configurators': '...'}
    """

    def __init__(
        self,
        tree_client: TreeClient,
        client: Optional[KazooClient] = None,
        owns_client: bool = False,
        notify_depth: Optional[int] = None,
        relative_depth: bool = False,
        snapshot_timeout: Optional[float] = None,
    ):
        """Initialize the source around an existing tree client.

        Args:
            tree_client: Backend delivering events and cached children.
            client: Client whose connection state drives the watcher state.
            owns_client: Stop ``client`` on :meth:`close`.
            notify_depth: Absolute path depth of notified nodes.
            relative_depth: Derive the notification depth from the root.
            snapshot_timeout: Seconds snapshot reads wait for the initial sync.
        """
        self.root_path = tree_client.root_path
        self.snapshot_timeout = snapshot_timeout
        self._tree = tree_client
        self._client = client
        self._owns_client = owns_client
        self._gate = InitializationGate()
        self._registry = ListenerRegistry()
        self._watcher = TreeWatcher(
            self.root_path,
            registry=self._registry,
            gate=self._gate,
            notify_depth=notify_depth,
            relative_depth=relative_depth,
        )
        self._reader = SnapshotReader(tree_client, self.root_path, self._gate)
        self._close_lock = threading.Lock()
        self._started = False
        self._closed = False

        if client is not None:
            if client.connected:
                self._watcher.on_connected()
            client.add_listener(self._on_connection_state)

    @classmethod
    def from_settings(cls, settings: SourceSettings) -> "ZooKeeperConfigurationSource":
        """Connect to ZooKeeper and watch ``<root>`` as configured.

        Raises:
            ConfigurationError: If the address is missing or the root is malformed.
            ConnectivityError: If strict and ZooKeeper is unreachable.
            SourceStartupError: If the client failed while starting.
        """
        settings.validate()
        root_path = normalize_root_path(settings.root_path)
        client = connect(settings)
        return cls(
            KazooTreeClient(client, root_path),
            client=client,
            owns_client=True,
            notify_depth=settings.notify_depth,
            relative_depth=settings.relative_depth,
            snapshot_timeout=settings.snapshot_timeout,
        )

    @classmethod
    def from_client(
        cls, client: KazooClient, root_path: str, **options: Any
    ) -> "ZooKeeperConfigurationSource":
        """Watch ``root_path`` (e.g. ``/my-app/config``) with a started client.

        The root is used verbatim and the client is left running on close.
        """
        return cls(KazooTreeClient(client, root_path), client=client, **options)

    @property
    def state(self) -> WatcherState:
        return self._watcher.state

    @property
    def watcher(self) -> TreeWatcher:
        return self._watcher

    def _on_connection_state(self, state: str) -> None:
        if state == KazooState.CONNECTED:
            self._watcher.on_connected()
        else:
            self._watcher.on_disconnected()

    def start(self) -> None:
        """Subscribe to the subtree and start mirroring it."""
        if self._started:
            return
        self._started = True
        if self._client is None:
            # the tree client manages its own session
            self._watcher.on_connected()
        elif not self._client.connected:
            self._watcher.on_connecting()
        self._tree.listen(self._watcher.submit)
        try:
            self._tree.start()
        except KazooException:
            if self._client is None or self._client.connected:
                raise
            # the cache refreshes itself once the client reconnects
            logger.warning(
                "Config center (zookeeper) is not connected, watching %s once the "
                "connection is established",
                self.root_path,
            )

    def await_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the initial sync completed, False on timeout."""
        return self._gate.wait(timeout)

    def get_current_data(self) -> Dict[str, str]:
        return self._reader.get_current_data(self.snapshot_timeout)

    def add_update_listener(self, listener: Optional[UpdateListener]) -> None:
        self._registry.add_listener(listener)

    def remove_update_listener(self, listener: Optional[UpdateListener]) -> None:
        self._registry.remove_listener(listener)

    def close(self) -> None:
        """Release the watch. Later calls do nothing."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            self._tree.close()
        except Exception:
            logger.exception("Error releasing the watch on %s", self.root_path)
        self._gate.interrupt()
        self._watcher.close()
        self._registry.clear()

        if self._client is not None:
            self._client.remove_listener(self._on_connection_state)
            if self._owns_client:
                try:
                    self._client.stop()
                    self._client.close()
                except Exception:
                    logger.exception("Error stopping the zookeeper client for %s", self.root_path)

    def __enter__(self) -> "ZooKeeperConfigurationSource":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ZooKeeperNamespace(MemoryNamespace):
    """Overlay namespace mirroring the data of a watched source."""

    def __init__(
        self,
        name: str,
        source: ZooKeeperConfigurationSource,
        owns_source: bool = False,
    ):
        super().__init__(name)
        self.id = f"zookeeper:{source.root_path}"
        self.source = source
        self.owns_source = owns_source

    def attach(self) -> None:
        """Subscribe to the source and seed the mirror from a snapshot."""
        self.source.add_update_listener(self)
        self.replace(self.source.get_current_data())

    def detach(self) -> None:
        self.source.remove_update_listener(self)

    def close(self) -> None:
        self.detach()
        if self.owns_source:
            self.source.close()

    def update_configuration(self, result: UpdateResult) -> None:
        for event in result.events():
            if event.kind is UpdateKind.DELETED:
                self.delete(event.key)
            else:
                self.put(event.key, event.value)
