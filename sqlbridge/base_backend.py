"""Backend abstraction layer.

Defines the minimal interface the connection guard needs from a storage
engine so another embedded engine could be plugged in without touching the
command surface.

KISS: only the operations the bridge actually performs are abstracted.
"""
from __future__ import annotations
from typing import Protocol, Any, Dict

class CursorLike(Protocol):  # pragma: no cover - structural typing helper
    description: Any
    rowcount: int
    def fetchall(self): ...

class ConnectionLike(Protocol):  # pragma: no cover - structural typing helper
    def execute(self, *args, **kwargs) -> CursorLike: ...
    def close(self): ...

class Backend(Protocol):
    path: str

    def open(self) -> ConnectionLike:
        """Open the single process-wide connection.

        Called exactly once by the guard; the returned connection must be
        usable from any thread, since the guard serializes access itself.
        """
        ...

    def health_check(self, conn: ConnectionLike) -> Dict[str, Any]:
        ...
