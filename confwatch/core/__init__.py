from .errors import (
    ConfigurationError,
    ConfwatchError,
    ConnectivityError,
    GateInterrupted,
    SourceStartupError,
)
from .gate import InitializationGate
from .keys import normalize_root_path, path_depth, path_to_key
from .listeners import ListenerRegistry
from .overlay import OverlayResolver, resolve
from .settings import SettingsLoader, SourceSettings
from .snapshot import SnapshotReader
from .source import Namespace, TreeClient, UpdateListener, WatchedSource
from .types import (
    ChangeKind,
    ConfigCategory,
    ConfigChangeEvent,
    ConfigNode,
    NamespaceChange,
    ProvenanceRecord,
    TreeEvent,
    TreeEventKind,
    UpdateEvent,
    UpdateKind,
    UpdateResult,
)
from .watcher import TreeWatcher, WatcherState

__all__ = [
    "ChangeKind",
    "ConfigCategory",
    "ConfigChangeEvent",
    "ConfigNode",
    "ConfigurationError",
    "ConfwatchError",
    "ConnectivityError",
    "GateInterrupted",
    "InitializationGate",
    "ListenerRegistry",
    "Namespace",
    "NamespaceChange",
    "OverlayResolver",
    "ProvenanceRecord",
    "SettingsLoader",
    "SnapshotReader",
    "SourceSettings",
    "SourceStartupError",
    "TreeClient",
    "TreeEvent",
    "TreeEventKind",
    "TreeWatcher",
    "UpdateEvent",
    "UpdateKind",
    "UpdateListener",
    "UpdateResult",
    "WatchedSource",
    "WatcherState",
    "normalize_root_path",
    "path_depth",
    "path_to_key",
    "resolve",
]
