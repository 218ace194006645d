"""Cell conversion: engine-native values to generic values.

A generic value is one of None, int, float, str or bool. The mapping depends
only on the native kind of the cell, never on the declared column type:

    NULL   -> None
    INTEGER-> int
    REAL   -> float, or None when not finite
    TEXT   -> str, unchanged
    BLOB   -> "BLOB[<length>]"

A cell that cannot be mapped produces a CellConversionFailure instead of a
value. Callers drop that cell from the row and keep going.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from .logging_util import debug

GenericValue = Union[None, int, float, str, bool]
Row = Dict[str, GenericValue]


@dataclass(frozen=True)
class UndecodableText:
    """TEXT cell whose stored bytes are not valid UTF-8."""
    raw: bytes


@dataclass(frozen=True)
class CellConversionFailure:
    reason: str


def decode_text(raw: bytes) -> Union[str, UndecodableText]:
    """sqlite3 text_factory: decode TEXT cells without failing the whole fetch."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return UndecodableText(raw)


def blob_placeholder(data: Union[bytes, bytearray, memoryview]) -> str:
    return f"BLOB[{len(data)}]"


def convert_cell(value: Any) -> Union[GenericValue, CellConversionFailure]:
    if value is None:
        return None
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return blob_placeholder(value)
    if isinstance(value, UndecodableText):
        return CellConversionFailure("undecodable text")
    return CellConversionFailure(f"unsupported type {type(value).__name__}")


def build_row(columns: Sequence[str], cells: Sequence[Any]) -> Row:
    """Build one result row in statement column order.

    Cells that fail conversion are omitted; every other column (nulls
    included) is present.
    """
    row: Row = {}
    for name, cell in zip(columns, cells):
        converted = convert_cell(cell)
        if isinstance(converted, CellConversionFailure):
            debug("cell_skipped", column=name, reason=converted.reason)
            continue
        row[name] = converted
    return row


def column_names(description: Optional[Sequence[Sequence[Any]]]) -> List[str]:
    """Column names from a DB-API cursor description (empty for non-queries)."""
    if not description:
        return []
    return [d[0] for d in description]
