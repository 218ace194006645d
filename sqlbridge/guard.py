"""Connection guard: exclusive, blocking access to the one connection.

Every bridge operation runs inside ``with guard.acquire() as conn:``. The lock
is released on every exit path. If the guarded block dies with anything other
than a bridge or engine error, the guard is poisoned: later acquisitions raise
LockFailure until a host calls clear_poison().

There is no timeout and no cancellation. A long statement blocks every other
caller until it finishes.
"""
from __future__ import annotations
import sqlite3, threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .base_backend import Backend
from .errors import BridgeError, LockFailure
from .logging_util import error, info

# Failures that leave the connection in a known state; anything else poisons.
_EXPECTED_ERRORS = (BridgeError, sqlite3.Error, GeneratorExit)


class ConnectionGuard:
    def __init__(self, backend: Backend):
        self.backend = backend
        self._conn = backend.open()
        self._lock = threading.Lock()
        self._poison: Optional[str] = None

    @property
    def is_poisoned(self) -> bool:
        return self._poison is not None

    @contextmanager
    def acquire(self) -> Iterator[sqlite3.Connection]:
        self._lock.acquire()
        try:
            if self._poison is not None:
                raise LockFailure(f"Connection lock poisoned: {self._poison}")
            if self._conn is None:
                raise LockFailure("Connection has been shut down")
            try:
                yield self._conn
            except _EXPECTED_ERRORS:
                raise
            except BaseException as e:
                self._poison = f"{type(e).__name__}: {e}"
                error("guard_poisoned", path=self.backend.path, cause=self._poison)
                raise
        finally:
            self._lock.release()

    def clear_poison(self) -> None:
        """Accept the connection state again after a poisoning failure."""
        with self._lock:
            if self._poison is not None:
                info("guard_poison_cleared", path=self.backend.path, cause=self._poison)
            self._poison = None

    def shutdown(self) -> None:
        """Close the connection. Test teardown only; hosts keep it until exit."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
