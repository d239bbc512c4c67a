"""Precedence-ordered lookup across several named namespaces."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import (
    Callable,
    Collection,
    Dict,
    FrozenSet,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from .source import Namespace
from .types import (
    ChangeKind,
    ConfigCategory,
    ConfigChangeEvent,
    NamespaceChange,
    ProvenanceRecord,
)

logger = logging.getLogger(__name__)

CONFIGURATORS_SUFFIX = ".configurators"
ROUTERS_SUFFIX = ".routers"

# Checked in order; the first matching suffix decides the category.
DEFAULT_CATEGORY_SUFFIXES: Dict[ConfigCategory, str] = {
    ConfigCategory.CONFIGURATORS: CONFIGURATORS_SUFFIX,
    ConfigCategory.ROUTERS: ROUTERS_SUFFIX,
}

Lookup = Callable[[str], Optional[str]]


class ConfigurationListener(Protocol):
    def process(self, event: ConfigChangeEvent) -> None:
        ...


def resolve(namespaces: Sequence[Tuple[str, Lookup]], key: str) -> Optional[str]:
    """Return the value from the first namespace that has ``key``.

    Args:
        namespaces: ``(name, lookup)`` pairs in precedence order.
        key: Key to resolve.

    Returns:
        First value that is not None, or None if no namespace has the key.
    """
    for _name, lookup in namespaces:
        value = lookup(key)
        if value is not None:
            return value
    return None


def change_kind(change_type: str) -> ChangeKind:
    if change_type == "deleted":
        return ChangeKind.DELETED
    return ChangeKind.MODIFIED


class _Attachment:
    """One listener attached to one namespace's change stream."""

    def __init__(
        self,
        resolver: "OverlayResolver",
        namespace: Namespace,
        listener: ConfigurationListener,
        keys: Optional[FrozenSet[str]],
    ):
        self.resolver = resolver
        self.namespace = namespace
        self.listener = listener
        self.keys = keys

    def __call__(self, change: NamespaceChange) -> None:
        if self.keys is not None and change.key not in self.keys:
            return
        event = self.resolver.classify(change)
        if event is None:
            return
        try:
            self.listener.process(event)
        except Exception:
            logger.exception(
                "Error in configuration listener %r for %s change of %s in namespace %s",
                self.listener,
                change.change_type,
                change.key,
                self.namespace.name,
            )


class OverlayResolver:
    """Resolve keys across namespaces with first-match-wins precedence.

    A listener registered here is attached to every namespace's change
    stream. Changes are kept only when their key ends with one of the
    category suffixes, and are re-emitted as :class:`ConfigChangeEvent`.
    """

    def __init__(
        self,
        namespaces: Sequence[Namespace],
        category_suffixes: Optional[Dict[ConfigCategory, str]] = None,
    ):
        """Initialize OverlayResolver.

        Args:
            namespaces: Namespaces in precedence order, highest first.
            category_suffixes: Key suffix per category, checked in order.
        """
        self.namespaces: List[Namespace] = list(namespaces)
        self.category_suffixes = dict(category_suffixes or DEFAULT_CATEGORY_SUFFIXES)
        self._lock = threading.Lock()
        self._attachments: List[_Attachment] = []

    def _lookups(self) -> List[Tuple[str, Lookup]]:
        return [(ns.name, ns.get) for ns in self.namespaces]

    def resolve(self, key: str) -> Optional[str]:
        return resolve(self._lookups(), key)

    def resolve_with_provenance(
        self, key: str
    ) -> Tuple[Optional[str], Optional[ProvenanceRecord]]:
        """Resolve ``key`` and record which namespace supplied it."""
        for ns in self.namespaces:
            value = ns.get(key)
            if value is not None:
                return value, ProvenanceRecord(
                    key=key,
                    namespace=ns.name,
                    resolved_at=datetime.now(timezone.utc),
                )
        return None, None

    def values(self, keys: Collection[str]) -> Dict[str, str]:
        resolved: Dict[str, str] = {}
        for key in keys:
            value = self.resolve(key)
            if value is not None:
                resolved[key] = value
        return resolved

    def classify(self, change: NamespaceChange) -> Optional[ConfigChangeEvent]:
        """Map a raw namespace change to a typed event, None if uncategorized."""
        for category, suffix in self.category_suffixes.items():
            if change.key.endswith(suffix):
                return ConfigChangeEvent(
                    key=change.key,
                    new_value=change.new_value,
                    category=category,
                    change_kind=change_kind(change.change_type),
                )
        return None

    def add_listener(
        self,
        listener: Optional[ConfigurationListener],
        keys: Optional[Collection[str]] = None,
    ) -> None:
        """Attach ``listener`` to the change stream of every namespace.

        Args:
            listener: Receives categorized change events.
            keys: Only deliver changes of these keys, all keys when None.
        """
        if listener is None:
            return
        interested = frozenset(keys) if keys is not None else None
        attachments = [_Attachment(self, ns, listener, interested) for ns in self.namespaces]
        with self._lock:
            self._attachments.extend(attachments)
        for attachment in attachments:
            attachment.namespace.add_change_listener(attachment)

    def remove_listener(self, listener: Optional[ConfigurationListener]) -> None:
        if listener is None:
            return
        with self._lock:
            removed = [a for a in self._attachments if a.listener is listener]
            self._attachments = [a for a in self._attachments if a.listener is not listener]
        for attachment in removed:
            attachment.namespace.remove_change_listener(attachment)

    def get_config(
        self, key: str, listener: Optional[ConfigurationListener] = None
    ) -> Optional[str]:
        """Resolve ``key``, registering ``listener`` for its changes first."""
        if listener is not None:
            self.add_listener(listener, keys=[key])
        return self.resolve(key)

    def close(self) -> None:
        with self._lock:
            attachments, self._attachments = self._attachments, []
        for attachment in attachments:
            attachment.namespace.remove_change_listener(attachment)
