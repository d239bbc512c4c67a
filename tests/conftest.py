"""Shared fixtures and fakes for confwatch tests."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from confwatch.core.keys import join_path
from confwatch.core.types import ConfigNode, TreeEvent, TreeEventKind, UpdateResult


class FakeTreeClient:
    """In-memory tree client emitting events like a tree cache would."""

    def __init__(self, root_path: str = "/dubbo/config", nodes: Optional[Dict[str, bytes]] = None):
        self.root_path = root_path
        self.nodes: Dict[str, bytes] = dict(nodes or {})
        self.callbacks: List[Callable[[TreeEvent], Any]] = []
        self.started = False
        self.close_calls = 0
        self.close_error: Optional[Exception] = None
        self.auto_initialize = True

    def listen(self, callback):
        self.callbacks.append(callback)

    def start(self):
        """Replay existing nodes as added, then report the initial sync."""
        self.started = True
        for path in sorted(self.nodes):
            self.emit(TreeEvent(TreeEventKind.ADDED, path, self.nodes[path]))
        if self.auto_initialize:
            self.initialize()

    def initialize(self):
        return self.emit(TreeEvent(TreeEventKind.INITIALIZED))

    def emit(self, event: TreeEvent):
        results = [callback(event) for callback in self.callbacks]
        return results[-1] if results else None

    def put(self, path: str, data: bytes):
        kind = TreeEventKind.CHANGED if path in self.nodes else TreeEventKind.ADDED
        self.nodes[path] = data
        return self.emit(TreeEvent(kind, path, data))

    def delete(self, path: str):
        data = self.nodes.pop(path)
        return self.emit(TreeEvent(TreeEventKind.REMOVED, path, data))

    def get_children(self, path: str) -> Optional[Dict[str, ConfigNode]]:
        prefix = path.rstrip("/") + "/"
        if path != self.root_path and path not in self.nodes:
            return None
        children: Dict[str, ConfigNode] = {}
        for node_path in self.nodes:
            if not node_path.startswith(prefix):
                continue
            name = node_path[len(prefix):].split("/", 1)[0]
            child_path = join_path(path, name)
            children[name] = ConfigNode(child_path, self.nodes.get(child_path, b""))
        return children

    def close(self):
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class RecordingListener:
    """Update listener remembering every result it receives."""

    def __init__(self):
        self.results: List[UpdateResult] = []

    def update_configuration(self, result: UpdateResult) -> None:
        self.results.append(result)


class FailingListener:
    def __init__(self):
        self.calls = 0

    def update_configuration(self, result: UpdateResult) -> None:
        self.calls += 1
        raise RuntimeError("listener failure")


@pytest.fixture
def tree() -> FakeTreeClient:
    return FakeTreeClient(
        nodes={
            "/dubbo/config/service-a": b"",
            "/dubbo/config/service-a/configurators": b"weight=100",
            "/dubbo/config/service-a/routers": b"host = 10.0.0.1",
            "/dubbo/config/service-b": b"",
            "/dubbo/config/service-b/configurators": b"timeout=5",
        }
    )


@pytest.fixture
def recorder() -> RecordingListener:
    return RecordingListener()
