"""confwatch - Watched configuration sources.

Mirror a subtree of a remote hierarchical store, notify listeners of
incremental changes and resolve keys across prioritized namespaces.
"""

from .core.errors import ConfigurationError, ConnectivityError, SourceStartupError
from .core.overlay import OverlayResolver
from .core.settings import SettingsLoader, SourceSettings
from .core.types import ConfigChangeEvent, UpdateResult
from .sources.memory import MemoryNamespace

__all__ = [
    "ConfigChangeEvent",
    "ConfigurationError",
    "ConnectivityError",
    "MemoryNamespace",
    "OverlayResolver",
    "SettingsLoader",
    "SourceSettings",
    "SourceStartupError",
    "UpdateResult",
]
