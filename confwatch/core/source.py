"""Protocols for watched tree backends, watched sources and namespaces."""

from __future__ import annotations

from typing import Callable, Dict, Optional, Protocol

from .types import ConfigNode, NamespaceChange, TreeEvent, UpdateResult


class TreeClient(Protocol):
    """Protocol for a watch-capable hierarchical key/value backend.

    The client owns its connection and reconnection machinery; confwatch
    only consumes its event stream and its cached view of the tree.
    """

    root_path: str

    def listen(self, callback: Callable[[TreeEvent], None]) -> None:
        """Register the callback receiving every raw tree event.

        Args:
            callback: Called once per backend event, in backend order.
        """
        ...

    def start(self) -> None:
        """Start watching the subtree below ``root_path``."""
        ...

    def get_children(self, path: str) -> Optional[Dict[str, ConfigNode]]:
        """List the cached immediate children of a node.

        Args:
            path: Full node path.

        Returns:
            Mapping of child name to node, or None if the node is unknown.
        """
        ...

    def close(self) -> None:
        """Release the watch."""
        ...


class UpdateListener(Protocol):
    """Capability of receiving incremental update results."""

    def update_configuration(self, result: UpdateResult) -> None:
        ...


class WatchedSource(Protocol):
    def get_current_data(self) -> Dict[str, str]:
        ...

    def add_update_listener(self, listener: Optional[UpdateListener]) -> None:
        ...

    def remove_update_listener(self, listener: Optional[UpdateListener]) -> None:
        ...


NamespaceCallback = Callable[[NamespaceChange], None]


class Namespace(Protocol):
    """Protocol for a named key/value namespace taking part in overlays.

    Attributes:
        name: Namespace name used in provenance records.
    """

    name: str

    def get(self, key: str) -> Optional[str]:
        """Get a value by key, None if the namespace lacks it."""
        ...

    def add_change_listener(self, callback: NamespaceCallback) -> None:
        ...

    def remove_change_listener(self, callback: NamespaceCallback) -> None:
        ...
