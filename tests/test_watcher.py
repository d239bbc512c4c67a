"""Tests for event classification in TreeWatcher."""

from __future__ import annotations

import logging
import threading
import time

import pytest
from conftest import FailingListener, RecordingListener

from confwatch.core.gate import InitializationGate
from confwatch.core.listeners import ListenerRegistry
from confwatch.core.types import TreeEvent, TreeEventKind, UpdateResult
from confwatch.core.watcher import DEFAULT_NOTIFY_DEPTH, TreeWatcher, WatcherState

ROOT = "/dubbo/config"


@pytest.fixture
def watcher(recorder):
    registry = ListenerRegistry()
    registry.add_listener(recorder)
    w = TreeWatcher(ROOT, registry=registry)
    yield w
    w.close()


class TestClassification:
    """Test suite for TreeWatcher.process."""

    @pytest.mark.parametrize(
        "kind, attr",
        [
            (TreeEventKind.ADDED, "added"),
            (TreeEventKind.CHANGED, "changed"),
            (TreeEventKind.REMOVED, "deleted"),
        ],
    )
    def test_event_at_notification_depth_yields_single_entry(self, watcher, recorder, kind, attr):
        event = TreeEvent(kind, "/dubbo/config/service/configurators", b"weight=100")
        result = watcher.process(event)

        assert recorder.results == [result]
        mapping = getattr(result, attr)
        assert mapping == {"service.configurators": "weight=100"}
        others = [m for m in (result.added, result.changed, result.deleted) if m is not mapping]
        assert others == [None, None]

    @pytest.mark.parametrize(
        "path",
        [
            "/dubbo/config",
            "/dubbo/config/dubbo.properties",
            "/dubbo/config/service/configurators/extra",
        ],
    )
    def test_events_outside_notification_depth_are_dropped(self, watcher, recorder, path):
        assert watcher.process(TreeEvent(TreeEventKind.ADDED, path, b"x")) is None
        assert recorder.results == []
        assert watcher.dropped_count == 1

    def test_other_kinds_are_ignored(self, watcher, recorder):
        event = TreeEvent(TreeEventKind.OTHER, "/dubbo/config/service/configurators", b"x")
        assert watcher.process(event) is None
        assert recorder.results == []

    def test_events_without_path_are_ignored(self, watcher, recorder):
        assert watcher.process(TreeEvent(TreeEventKind.ADDED)) is None
        assert recorder.results == []

    def test_missing_payload_decodes_to_empty_string(self, watcher, recorder):
        watcher.process(TreeEvent(TreeEventKind.REMOVED, "/dubbo/config/service/routers"))
        assert recorder.results[0].deleted == {"service.routers": ""}

    def test_undecodable_payload_is_logged_and_dropped(self, watcher, recorder, caplog):
        event = TreeEvent(TreeEventKind.CHANGED, "/dubbo/config/service/routers", b"\xff\xfe\xfd")
        with caplog.at_level(logging.ERROR, logger="confwatch.core.watcher"):
            assert watcher.process(event) is None
        assert recorder.results == []
        assert "/dubbo/config/service/routers" in caplog.text
        assert "changed" in caplog.text

        watcher.process(TreeEvent(TreeEventKind.ADDED, "/dubbo/config/service/routers", b"ok"))
        assert len(recorder.results) == 1

    def test_listener_failure_does_not_affect_watcher(self, recorder):
        registry = ListenerRegistry()
        registry.add_listener(FailingListener())
        registry.add_listener(recorder)
        watcher = TreeWatcher(ROOT, registry=registry)
        watcher.on_initialized()

        watcher.process(TreeEvent(TreeEventKind.ADDED, "/dubbo/config/a/configurators", b"1"))
        watcher.process(TreeEvent(TreeEventKind.CHANGED, "/dubbo/config/a/configurators", b"2"))

        assert [r.added or r.changed for r in recorder.results] == [
            {"a.configurators": "1"},
            {"a.configurators": "2"},
        ]
        assert watcher.state is WatcherState.READY
        assert watcher.dispatched_count == 2


class TestNotificationDepth:
    """The absolute depth only matches roots like /app/config."""

    def test_default_depth(self):
        assert TreeWatcher(ROOT).notify_depth == DEFAULT_NOTIFY_DEPTH == 5

    def test_absolute_depth_ignores_deeper_root(self, recorder):
        registry = ListenerRegistry()
        registry.add_listener(recorder)
        watcher = TreeWatcher("/org/app/config", registry=registry)
        watcher.process(TreeEvent(TreeEventKind.ADDED, "/org/app/config/svc/configurators", b"x"))
        assert recorder.results == []

    def test_relative_depth_follows_root(self, recorder):
        registry = ListenerRegistry()
        registry.add_listener(recorder)
        watcher = TreeWatcher("/org/app/config", registry=registry, relative_depth=True)
        assert watcher.notify_depth == 6
        watcher.process(TreeEvent(TreeEventKind.ADDED, "/org/app/config/svc/configurators", b"x"))
        assert recorder.results[0].added == {"svc.configurators": "x"}

    def test_relative_depth_matches_reference_root(self):
        assert TreeWatcher(ROOT, relative_depth=True).notify_depth == 5

    def test_relative_depth_for_filesystem_root(self, recorder):
        registry = ListenerRegistry()
        registry.add_listener(recorder)
        watcher = TreeWatcher("/", registry=registry, relative_depth=True)
        assert watcher.notify_depth == 3
        watcher.process(TreeEvent(TreeEventKind.ADDED, "/svc/configurators", b"x"))
        assert recorder.results[0].added == {"svc.configurators": "x"}

    def test_explicit_depth(self):
        assert TreeWatcher(ROOT, notify_depth=4).notify_depth == 4

    def test_explicit_zero_depth_is_kept(self):
        assert TreeWatcher(ROOT, notify_depth=0).notify_depth == 0


class TestStates:
    """Test suite for watcher state transitions."""

    def test_lifecycle(self):
        gate = InitializationGate()
        watcher = TreeWatcher(ROOT, gate=gate)
        assert watcher.state is WatcherState.DISCONNECTED
        watcher.on_connecting()
        assert watcher.state is WatcherState.CONNECTING
        watcher.on_connected()
        assert watcher.state is WatcherState.SYNCING
        assert not gate.is_open

        watcher.process(TreeEvent(TreeEventKind.INITIALIZED))
        assert watcher.state is WatcherState.READY
        assert gate.is_open

    def test_session_loss_and_reconnect(self):
        watcher = TreeWatcher(ROOT)
        watcher.on_connected()
        watcher.on_initialized()
        watcher.on_disconnected()
        assert watcher.state is WatcherState.CONNECTING
        watcher.on_connected()
        assert watcher.state is WatcherState.READY

    def test_gate_opens_once(self):
        gate = InitializationGate()
        watcher = TreeWatcher(ROOT, gate=gate)
        watcher.on_initialized()
        watcher.on_initialized()
        assert gate.wait(timeout=0)

    def test_closed_is_terminal(self):
        watcher = TreeWatcher(ROOT)
        watcher.close()
        watcher.on_connected()
        assert watcher.state is WatcherState.CLOSED
        assert watcher.submit(TreeEvent(TreeEventKind.INITIALIZED)) is None


class TestWorker:
    """Events submitted to the worker are delivered in order."""

    def test_submitted_events_keep_backend_order(self, watcher, recorder):
        futures = [
            watcher.submit(
                TreeEvent(TreeEventKind.CHANGED, "/dubbo/config/svc/configurators", str(i).encode())
            )
            for i in range(50)
        ]
        for future in futures:
            future.result(timeout=5)

        assert [r.changed["svc.configurators"] for r in recorder.results] == [
            str(i) for i in range(50)
        ]

    def test_filtered_events_are_skipped_without_duplicates(self, watcher, recorder):
        paths = [
            "/dubbo/config/a/configurators",
            "/dubbo/config/dubbo.properties",
            "/dubbo/config/b/routers",
            "/dubbo/config/b/routers/deep",
            "/dubbo/config/c/configurators",
        ]
        futures = [watcher.submit(TreeEvent(TreeEventKind.ADDED, p, b"v")) for p in paths]
        for future in futures:
            future.result(timeout=5)

        keys = [next(iter(r.added)) for r in recorder.results]
        assert keys == ["a.configurators", "b.routers", "c.configurators"]

    def test_processing_runs_on_single_worker_thread(self):
        threads = set()
        registry = ListenerRegistry()
        registry.add_callback(lambda r: threads.add(threading.current_thread().name))
        watcher = TreeWatcher(ROOT, registry=registry)
        futures = [
            watcher.submit(TreeEvent(TreeEventKind.ADDED, f"/dubbo/config/s{i}/routers", b"v"))
            for i in range(10)
        ]
        for future in futures:
            future.result(timeout=5)
        watcher.close()
        assert len(threads) == 1
        assert threading.current_thread().name not in threads

    def test_slow_listener_delays_but_does_not_reorder(self):
        seen = []

        def slow(result: UpdateResult):
            if "slow.routers" in (result.added or {}):
                time.sleep(0.05)
            seen.append(next(iter(result.added)))

        registry = ListenerRegistry()
        registry.add_callback(slow)
        watcher = TreeWatcher(ROOT, registry=registry)
        first = watcher.submit(TreeEvent(TreeEventKind.ADDED, "/dubbo/config/slow/routers", b"v"))
        second = watcher.submit(TreeEvent(TreeEventKind.ADDED, "/dubbo/config/fast/routers", b"v"))
        second.result(timeout=5)
        first.result(timeout=5)
        watcher.close()
        assert seen == ["slow.routers", "fast.routers"]
