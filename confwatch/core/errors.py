"""Exceptions raised by confwatch."""

from __future__ import annotations


class ConfwatchError(Exception):
    """Base class for confwatch errors."""


class ConfigurationError(ConfwatchError, ValueError):
    """Invalid construction parameters (missing address, malformed root)."""


class ConnectivityError(ConfwatchError, ConnectionError):
    """The backend could not be reached within the connect timeout."""


class SourceStartupError(ConfwatchError, RuntimeError):
    """The backend client failed while waiting for the initial connection."""


class GateInterrupted(ConfwatchError):
    """A wait on the initialization gate was interrupted before it opened."""
