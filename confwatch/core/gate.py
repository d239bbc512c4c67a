"""One-shot readiness barrier opened once the initial tree sync completes."""

from __future__ import annotations

import threading
from typing import Optional

from .errors import GateInterrupted


class InitializationGate:
    """Block callers until :meth:`open` has been called once.

    The gate never closes again. :meth:`interrupt` releases current and
    future waiters with :class:`GateInterrupted` while the gate is still
    pending, which is how a shutting-down source unblocks readers.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._opened = False
        self._interrupted = False

    @property
    def is_open(self) -> bool:
        with self._cond:
            return self._opened

    def open(self) -> None:
        with self._cond:
            if self._opened:
                return
            self._opened = True
            self._cond.notify_all()

    def interrupt(self) -> None:
        with self._cond:
            self._interrupted = True
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the gate to open.

        Args:
            timeout: Seconds to wait, None to wait indefinitely.

        Returns:
            True if the gate is open, False if the timeout elapsed first.

        Raises:
            GateInterrupted: If :meth:`interrupt` was called before the gate opened.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._opened or self._interrupted, timeout)
            if self._opened:
                return True
            if self._interrupted:
                raise GateInterrupted("interrupted while waiting for initialization")
            return False
