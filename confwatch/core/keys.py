"""Mapping between backend node paths and dotted logical keys."""

from __future__ import annotations

from .errors import ConfigurationError

PATH_SEPARATOR = "/"
KEY_SEPARATOR = "."
CONFIG_SUFFIX = "config"


def path_to_key(path: str, root_path: str) -> str:
    """Convert a node path into a logical key.

    The ``root_path + "/"`` prefix is stripped from the head of ``path`` and
    the remaining separators are replaced with dots, so
    ``/dubbo/config/service/configurators`` under ``/dubbo/config`` becomes
    ``service.configurators``.

    Args:
        path: Full node path.
        root_path: Root the key is relative to.

    Returns:
        Dotted key. Empty or blank input is returned unchanged.
    """
    if not path or not path.strip():
        return path
    prefix = root_path.rstrip(PATH_SEPARATOR) + PATH_SEPARATOR
    if path.startswith(prefix):
        path = path[len(prefix) :]
    return path.replace(PATH_SEPARATOR, KEY_SEPARATOR)


def path_depth(path: str) -> int:
    """Number of ``/``-delimited segments, the leading empty one included."""
    return len(path.split(PATH_SEPARATOR))


def join_path(parent: str, child: str) -> str:
    if parent.endswith(PATH_SEPARATOR):
        return f"{parent}{child}"
    return f"{parent}{PATH_SEPARATOR}{child}"


def normalize_root_path(root_path: str) -> str:
    """Resolve the configured root into the path that is actually watched.

    A relative root such as ``dubbo`` is expanded to ``/dubbo/config``; an
    absolute root is used as given.

    Raises:
        ConfigurationError: If the root is blank or malformed.
    """
    if root_path is None or not root_path.strip():
        raise ConfigurationError("root path must not be empty")
    root = root_path.strip()
    if "//" in root:
        raise ConfigurationError(f"malformed root path: {root_path!r}")
    if root != PATH_SEPARATOR and root.endswith(PATH_SEPARATOR):
        raise ConfigurationError(f"root path must not end with '/': {root_path!r}")
    if not root.startswith(PATH_SEPARATOR):
        root = f"{PATH_SEPARATOR}{root}{PATH_SEPARATOR}{CONFIG_SUFFIX}"
    return root
