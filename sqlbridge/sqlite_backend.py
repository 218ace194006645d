"""SQLite backend for the command bridge.

Opens the single process-wide connection the guard owns:
    - Environment driven tuning with clamping + sanity logging
    - Autocommit mode so every bridge call is its own implicit transaction
    - Cross-thread use allowed (the guard serializes access, not the driver)
    - Lenient text decoding so one undecodable TEXT cell cannot fail a fetch
    - Health check helper + optional integrity_check (VERIFY_ON_CONNECT=1)
"""
from __future__ import annotations
import sqlite3, os
from dataclasses import dataclass, replace
from typing import Any, Optional, Dict

from .logging_util import warn, info
from .values import decode_text

DEFAULT_DB_PATH = os.path.join("data", "bridge.db")
MEMORY_PATH = ":memory:"
MAX_CACHE_KIB = 512 * 1024        # 512 MiB upper clamp
MIN_CACHE_KIB = 16                # SQLite minimum practical
DEFAULT_CACHE_KIB = 64 * 1024     # 64 MiB
MAX_BUSY_TIMEOUT_MS = 600_000
DEFAULT_BUSY_TIMEOUT_MS = 30_000
DEFAULT_SLOW_QUERY_MS = 250
JOURNAL_MODES = ("WAL", "DELETE", "TRUNCATE", "PERSIST", "MEMORY", "OFF")
DEFAULT_JOURNAL_MODE = "WAL"

@dataclass
class BackendConfig:
    path: str = DEFAULT_DB_PATH
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    cache_kib: int = DEFAULT_CACHE_KIB
    journal_mode: str = DEFAULT_JOURNAL_MODE
    foreign_keys: bool = True
    slow_query_ms: int = DEFAULT_SLOW_QUERY_MS
    verify_on_connect: bool = False

    @classmethod
    def from_env(cls) -> "BackendConfig":
        def _int(name: str, default: int) -> int:
            raw = os.environ.get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                warn("invalid_env_int", key=name, value=raw, default=default)
                return default
        path = os.environ.get("SQL_BRIDGE_DB") or DEFAULT_DB_PATH
        busy = _int("BUSY_TIMEOUT_MS", DEFAULT_BUSY_TIMEOUT_MS)
        cache_kib = _int("CACHE_SIZE_KIB", DEFAULT_CACHE_KIB)
        slow_ms = _int("SLOW_QUERY_THRESHOLD_MS", DEFAULT_SLOW_QUERY_MS)
        journal = os.environ.get("JOURNAL_MODE", DEFAULT_JOURNAL_MODE).upper()
        if journal not in JOURNAL_MODES:
            warn("invalid_env_choice", key="JOURNAL_MODE", value=journal, default=DEFAULT_JOURNAL_MODE)
            journal = DEFAULT_JOURNAL_MODE
        foreign_keys = os.environ.get("FOREIGN_KEYS", "1") == "1"
        verify = os.environ.get("VERIFY_ON_CONNECT", "0") == "1"
        # Clamp
        adjusted = {}
        if busy < 0 or busy > MAX_BUSY_TIMEOUT_MS:
            adjusted["busy_timeout_ms"] = busy
            busy = min(MAX_BUSY_TIMEOUT_MS, max(0, busy))
        if cache_kib < MIN_CACHE_KIB or cache_kib > MAX_CACHE_KIB:
            adjusted["cache_kib"] = cache_kib
            cache_kib = min(MAX_CACHE_KIB, max(MIN_CACHE_KIB, cache_kib))
        if slow_ms < 0:
            adjusted["slow_query_ms"] = slow_ms
            slow_ms = 0
        if adjusted:
            final_values = {"busy_timeout_ms": busy, "cache_kib": cache_kib, "slow_query_ms": slow_ms}
            warn("backend_config_clamped", original=adjusted, clamped=final_values)
        return cls(path=path, busy_timeout_ms=busy, cache_kib=cache_kib, journal_mode=journal,
                   foreign_keys=foreign_keys, slow_query_ms=slow_ms, verify_on_connect=verify)


class SQLiteBackend:
    """SQLite backend.

    Responsibilities:
      - Open the one connection in autocommit, thread-shareable mode
      - Apply tuned pragmas with safe clamping
      - Health check utility
    """
    def __init__(self, path: Optional[str] = None, config: Optional[BackendConfig] = None):
        config = config or BackendConfig.from_env()
        self.config = config if path is None else replace(config, path=path)
        self.path = self.config.path
        if self.path != MEMORY_PATH and os.path.isdir(self.path):  # directory misuse
            raise ValueError(f"Path points to a directory, expected file: {self.path}")

    # --- Public API -----------------------------------------------------------------
    def open(self) -> sqlite3.Connection:
        """Return the configured sqlite3.Connection for the process lifetime.

        isolation_level=None puts the driver in autocommit mode: the bridge never
        spans a transaction across calls. check_same_thread=False because the
        connection is shared by every caller thread behind the guard's lock.
        """
        if self.path != MEMORY_PATH:
            parent = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(parent, exist_ok=True)
        conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        conn.text_factory = decode_text
        self._apply_pragmas(conn)
        if self.config.verify_on_connect:
            try:
                res = conn.execute("PRAGMA integrity_check").fetchone()[0]
                if res != "ok":
                    warn("integrity_check_failed", path=self.path, result=res)
            except sqlite3.Error as e:  # pragma: no cover - unexpected
                warn("integrity_check_error", path=self.path, error=str(e))
        info("connection_opened", path=self.path, journal_mode=self._pragma(conn, "journal_mode"))
        return conn

    def health_check(self, conn: sqlite3.Connection) -> Dict[str, Any]:
        """Return current core pragma values and basic status."""
        try:
            rows = {
                "foreign_keys": self._pragma(conn, "foreign_keys"),
                "journal_mode": self._pragma(conn, "journal_mode"),
                "busy_timeout": self._pragma(conn, "busy_timeout"),
                "cache_size": self._pragma(conn, "cache_size"),
            }
        except sqlite3.Error as e:
            return {"ok": False, "path": self.path, "error": str(e)}
        return {"ok": True, "path": self.path, **rows}

    # --- Internal -------------------------------------------------------------------
    @staticmethod
    def _pragma(conn: sqlite3.Connection, name: str) -> Any:
        return conn.execute(f"PRAGMA {name}").fetchone()[0]

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        cfg = self.config
        pragmas = [
            (f"foreign_keys={'ON' if cfg.foreign_keys else 'OFF'}", "foreign_keys"),
            (f"busy_timeout={cfg.busy_timeout_ms}", "busy_timeout"),
            (f"cache_size=-{cfg.cache_kib}", "cache_size"),  # negative => KiB
        ]
        for p, tag in pragmas:
            try:
                conn.execute(f"PRAGMA {p}")
            except sqlite3.Error as e:
                warn("pragma_failed", pragma=p, tag=tag, path=self.path, error=str(e))
        if self.path == MEMORY_PATH:
            return  # in-memory databases only support MEMORY/OFF journals
        try:
            jm = conn.execute(f"PRAGMA journal_mode={cfg.journal_mode}").fetchone()[0]
            if str(jm).upper() != cfg.journal_mode:
                warn("journal_mode_unexpected", wanted=cfg.journal_mode, got=jm, path=self.path)
        except sqlite3.Error as e:
            warn("pragma_failed", pragma=f"journal_mode={cfg.journal_mode}", path=self.path, error=str(e))


def cli_dump_config(argv=None):  # pragma: no cover - thin CLI wrapper
    """CLI helper: print resolved BackendConfig + health_check JSON."""
    import argparse, json
    ap = argparse.ArgumentParser(description='Dump bridge backend config and health info')
    ap.add_argument('db', nargs='?', default=None, help='Path to SQLite database (default: $SQL_BRIDGE_DB)')
    args = ap.parse_args(argv)
    be = SQLiteBackend(args.db)
    conn = be.open()
    try:
        hc = be.health_check(conn)
    finally:
        conn.close()
    out = {'config': be.config.__dict__.copy(), 'health_check': hc}
    print(json.dumps(out, indent=2))
    return 0

if __name__ == '__main__':  # pragma: no cover
    raise SystemExit(cli_dump_config())
