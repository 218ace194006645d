"""Error taxonomy for bridge operations.

Operations raise these; only the outermost transport edge collapses them to a
plain message string.
"""
from __future__ import annotations
from typing import Any, Dict


class BridgeError(Exception):
    kind = "bridge_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class LockFailure(BridgeError):
    """The connection guard could not hand out the connection cleanly."""
    kind = "lock_failure"


class SqlFailure(BridgeError):
    """The engine rejected a statement; message is the engine text verbatim."""
    kind = "sql_failure"


class InvalidIdentifier(SqlFailure):
    kind = "invalid_identifier"
