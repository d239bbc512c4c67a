"""Type definitions for the confwatch configuration system."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional


class TreeEventKind(str, Enum):
    """Kinds of raw events delivered by a watched tree backend."""

    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"
    INITIALIZED = "initialized"
    OTHER = "other"


class UpdateKind(str, Enum):
    ADDED = "added"
    CHANGED = "changed"
    DELETED = "deleted"


class ChangeKind(str, Enum):
    """Two-way change taxonomy seen by overlay listeners."""

    MODIFIED = "modified"
    DELETED = "deleted"


class ConfigCategory(str, Enum):
    """Category of a governance rule, derived from its key suffix.

    Attributes:
        CONFIGURATORS: Traffic governance rules.
        ROUTERS: Routing rules.
    """

    CONFIGURATORS = "configurators"
    ROUTERS = "routers"


@dataclass(frozen=True)
class ConfigNode:
    """A node of the remote tree, mirrored read-only.

    Attributes:
        path: Full node path.
        data: Raw node payload, None when the node carries no data.
        version: Backend specific version marker.
    """

    path: str
    data: Optional[bytes] = None
    version: Any = None


@dataclass(frozen=True)
class TreeEvent:
    """Raw change notification from the backend."""

    kind: TreeEventKind
    path: Optional[str] = None
    payload: Optional[bytes] = None


@dataclass(frozen=True)
class UpdateEvent:
    kind: UpdateKind
    key: str
    value: str


@dataclass(frozen=True)
class UpdateResult:
    """A batch of added, changed and deleted keys delivered as one notification.

    Attributes:
        added: Keys that appeared, with their values.
        changed: Keys whose value changed, with the new values.
        deleted: Keys that were removed, with their last known values.
        incremental: False when the result describes the full data set.
    """

    added: Optional[Dict[str, str]] = None
    changed: Optional[Dict[str, str]] = None
    deleted: Optional[Dict[str, str]] = None
    incremental: bool = True

    @classmethod
    def incremental_result(
        cls,
        added: Optional[Dict[str, str]] = None,
        changed: Optional[Dict[str, str]] = None,
        deleted: Optional[Dict[str, str]] = None,
    ) -> "UpdateResult":
        return cls(added=added, changed=changed, deleted=deleted, incremental=True)

    @classmethod
    def full(cls, complete: Dict[str, str]) -> "UpdateResult":
        return cls(added=dict(complete), incremental=False)

    @classmethod
    def single(cls, kind: UpdateKind, key: str, value: str) -> "UpdateResult":
        """Build a result carrying exactly one key in the map matching ``kind``."""
        entry = {key: value}
        if kind is UpdateKind.ADDED:
            return cls.incremental_result(added=entry)
        if kind is UpdateKind.CHANGED:
            return cls.incremental_result(changed=entry)
        return cls.incremental_result(deleted=entry)

    def events(self) -> Iterator[UpdateEvent]:
        for kind, mapping in (
            (UpdateKind.ADDED, self.added),
            (UpdateKind.CHANGED, self.changed),
            (UpdateKind.DELETED, self.deleted),
        ):
            for key, value in (mapping or {}).items():
                yield UpdateEvent(kind=kind, key=key, value=value)

    def is_empty(self) -> bool:
        return not (self.added or self.changed or self.deleted)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "incremental": self.incremental,
            "added": self.added,
            "changed": self.changed,
            "deleted": self.deleted,
        }


@dataclass(frozen=True)
class NamespaceChange:
    """Raw change reported by a namespace.

    Attributes:
        key: Changed key.
        old_value: Value before the change, None if unknown or absent.
        new_value: Value after the change, None when deleted.
        change_type: 'added', 'modified' or 'deleted'.
    """

    key: str
    old_value: Optional[str]
    new_value: Optional[str]
    change_type: str  # "added" | "modified" | "deleted"


@dataclass(frozen=True)
class ConfigChangeEvent:
    key: str
    new_value: Optional[str]
    category: ConfigCategory
    change_kind: ChangeKind


@dataclass(frozen=True)
class ProvenanceRecord:
    """Record tracking which namespace supplied a resolved value.

    Attributes:
        key: Configuration key.
        namespace: Name of the namespace the value came from.
        resolved_at: When the value was resolved.
    """

    key: str
    namespace: str
    resolved_at: datetime
