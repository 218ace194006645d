"""
SQL command bridge tools
Five ad-hoc operations against the one shared SQLite connection: DDL,
parameterized reads and writes, table listing and table description.
"""

import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlbridge.errors import SqlFailure
from sqlbridge.guard import ConnectionGuard
from sqlbridge.identifiers import quote_identifier
from sqlbridge.logging_util import debug, warn
from sqlbridge.sqlite_backend import SQLiteBackend, BackendConfig
from sqlbridge.values import Row, build_row, column_names

LIST_TABLES_SQL = (
    "SELECT name FROM sqlite_master "
    "WHERE type='table' AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\' "
    "ORDER BY name"
)


@dataclass
class QueryResult:
    """Outcome of a mutating statement. rows is always empty."""
    last_insert_rowid: Optional[int]
    rows_affected: Optional[int]
    rows: List[Row] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": list(self.rows),
            "lastInsertRowid": self.last_insert_rowid,
            "rowsAffected": self.rows_affected,
        }


@dataclass
class TableColumn:
    cid: int
    name: str
    type: str
    notnull: bool
    dflt_value: Optional[str]
    pk: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cid": self.cid,
            "name": self.name,
            "type": self.type,
            "notnull": self.notnull,
            "dflt_value": self.dflt_value,
            "pk": self.pk,
        }


def statement_kind(query: str) -> str:
    """Leading keyword of a statement, for log lines (handles WITH and comments)."""
    stripped = query.strip().lstrip(';')
    while stripped.startswith('--'):
        stripped = '\n'.join([l for l in stripped.splitlines() if not l.strip().startswith('--')]).strip()
    tokens = stripped.split()
    kind = tokens[0].upper() if tokens else 'UNKNOWN'
    if kind == 'WITH':
        for tok in tokens[1:]:
            if tok.rstrip(',').upper() in {"SELECT", "INSERT", "UPDATE", "DELETE", "REPLACE"}:
                kind = tok.rstrip(',').upper()
                break
    return kind


def _params(parameters: Optional[Sequence[str]]) -> tuple:
    if isinstance(parameters, (str, bytes, bytearray)):
        raise TypeError(f"parameters must be a sequence of strings, not {type(parameters).__name__}")
    # Bound as text exactly as given; SQLite applies column affinity on its own.
    return tuple(parameters) if parameters else ()


class SQLiteBridgeTools:
    """Command bridge over a single guarded SQLite connection.

    Every method takes the guard's lock for the whole statement, including
    result materialization, and raises SqlFailure with the engine's message on
    rejection. Nothing is retried here.
    """

    def __init__(self, guard: ConnectionGuard, slow_query_ms: Optional[int] = None):
        self.guard = guard
        if slow_query_ms is None:
            slow_query_ms = guard.backend.config.slow_query_ms
        self.slow_query_ms = slow_query_ms

    @classmethod
    def from_env(cls, db_path: Optional[str] = None) -> "SQLiteBridgeTools":
        backend = SQLiteBackend(db_path, BackendConfig.from_env())
        return cls(ConnectionGuard(backend))

    # --- commands ---------------------------------------------------------------------
    def create_table(self, query: str) -> None:
        """Run one parameterless statement (usually CREATE TABLE)."""
        with self.guard.acquire() as conn:
            with self._statement(conn, "create_table", query, ()):
                pass

    def read_query(self, query: str, parameters: Optional[Sequence[str]] = None) -> List[Row]:
        """Run a query and return every row, fully materialized."""
        params = _params(parameters)
        with self.guard.acquire() as conn:
            with self._statement(conn, "read_query", query, params) as cur:
                columns = column_names(cur.description)
                records = cur.fetchall() if columns else []
            rows = [build_row(columns, record) for record in records]
        debug("read_query_done", rows=len(rows), columns=len(columns))
        return rows

    def write_query(self, query: str, parameters: Optional[Sequence[str]] = None) -> QueryResult:
        """Run a mutating statement.

        last_insert_rowid is the connection's most recent insert id, read in the
        same lock scope; after a statement that inserted nothing it still names
        an earlier insert on this connection.
        """
        params = _params(parameters)
        with self.guard.acquire() as conn:
            with self._statement(conn, "write_query", query, params) as cur:
                affected = cur.rowcount if cur.rowcount >= 0 else None
            last_id = conn.execute("SELECT last_insert_rowid()").fetchone()[0]
        return QueryResult(last_insert_rowid=last_id, rows_affected=affected)

    def list_tables(self) -> List[str]:
        """User table names, ascending."""
        with self.guard.acquire() as conn:
            with self._statement(conn, "list_tables", LIST_TABLES_SQL, ()) as cur:
                return [r[0] for r in cur.fetchall()]

    def describe_table(self, table_name: str) -> List[TableColumn]:
        """Column metadata via PRAGMA table_info. Unknown tables give []."""
        quoted = quote_identifier(table_name)
        with self.guard.acquire() as conn:
            with self._statement(conn, "describe_table", f"PRAGMA table_info({quoted})", ()) as cur:
                info_rows = cur.fetchall()
        pk_count = sum(1 for r in info_rows if r[5])
        columns = []
        for cid, name, decl_type, notnull, dflt, pk in info_rows:
            decl_type = decl_type or ""
            # A sole INTEGER PRIMARY KEY aliases the rowid and can never be NULL.
            rowid_alias = bool(pk) and pk_count == 1 and decl_type.upper() == "INTEGER"
            columns.append(TableColumn(
                cid=int(cid),
                name=name,
                type=decl_type,
                notnull=bool(notnull) or rowid_alias,
                dflt_value=None if dflt is None else str(dflt),
                pk=bool(pk),
            ))
        return columns

    def health(self) -> Dict[str, Any]:
        with self.guard.acquire() as conn:
            return self.guard.backend.health_check(conn)

    # --- internal ---------------------------------------------------------------------
    @contextmanager
    def _statement(self, conn: sqlite3.Connection, op: str, query: str, params: tuple) -> Iterator[sqlite3.Cursor]:
        """Execute one statement; the block consumes the cursor.

        Engine errors and values the driver cannot bind (text that is not
        encodable as UTF-8, integers beyond 64 bits) become SqlFailure. Timing
        covers execution and fetching together.
        """
        start = time.time()
        try:
            cur = conn.execute(query, params)
            try:
                yield cur
            finally:
                cur.close()
        except sqlite3.Error as e:
            warn("statement_failed", op=op, error=str(e), param_count=len(params))
            raise SqlFailure(str(e)) from e
        except (ValueError, OverflowError) as e:
            # UnicodeEncodeError is a ValueError
            warn("statement_unbindable", op=op, error=str(e), param_count=len(params))
            raise SqlFailure(str(e)) from e
        elapsed_ms = int((time.time() - start) * 1000)
        if elapsed_ms >= self.slow_query_ms:
            warn("slow_query", op=op, ms=elapsed_ms, qtype=statement_kind(query))
