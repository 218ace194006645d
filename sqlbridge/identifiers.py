"""Identifier validation for statements that cannot bind identifiers.

Schema reflection (PRAGMA table_info) takes the table name as part of the
statement text, so the name is checked against a strict allow-list and then
quoted before interpolation.
"""
from __future__ import annotations
import re

from .errors import InvalidIdentifier
from .logging_util import warn

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_valid_identifier(name: str) -> bool:
    return isinstance(name, str) and bool(IDENTIFIER_RE.match(name))


def quote_identifier(name: str) -> str:
    """Return name double-quoted for interpolation; raise InvalidIdentifier otherwise."""
    if not is_valid_identifier(name):
        warn("invalid_identifier", name=repr(name)[:80])
        raise InvalidIdentifier(f"Invalid table name: {name!r}")
    return f'"{name}"'
