import sqlite3
import pytest
from sqlbridge.sqlite_backend import (
    SQLiteBackend, BackendConfig, MAX_CACHE_KIB, MAX_BUSY_TIMEOUT_MS, DEFAULT_DB_PATH,
)


def test_defaults_without_env(monkeypatch):
    for key in ['SQL_BRIDGE_DB', 'BUSY_TIMEOUT_MS', 'CACHE_SIZE_KIB', 'JOURNAL_MODE',
                'FOREIGN_KEYS', 'SLOW_QUERY_THRESHOLD_MS', 'VERIFY_ON_CONNECT']:
        monkeypatch.delenv(key, raising=False)
    cfg = BackendConfig.from_env()
    assert cfg.path == DEFAULT_DB_PATH
    assert cfg.journal_mode == 'WAL'
    assert cfg.foreign_keys is True
    assert cfg.verify_on_connect is False


def test_db_path_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv('SQL_BRIDGE_DB', str(tmp_path / 'env.db'))
    be = SQLiteBackend()
    assert be.path.endswith('env.db')


def test_env_clamping(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv('CACHE_SIZE_KIB', str(MAX_CACHE_KIB * 10))
    monkeypatch.setenv('BUSY_TIMEOUT_MS', '-5')
    monkeypatch.setenv('SLOW_QUERY_THRESHOLD_MS', '-1')
    be = SQLiteBackend(str(tmp_path / 'x.db'))
    assert be.config.cache_kib == MAX_CACHE_KIB
    assert be.config.busy_timeout_ms == 0
    assert be.config.slow_query_ms == 0
    assert 'backend_config_clamped' in capsys.readouterr().err
    conn = be.open()
    try:
        cache_size = conn.execute('PRAGMA cache_size').fetchone()[0]
        assert abs(cache_size) <= MAX_CACHE_KIB  # negative value indicates kib pages
    finally:
        conn.close()


def test_invalid_env_values_warning(monkeypatch, tmp_path, capsys):
    """Invalid env values produce warnings and fall back to defaults"""
    monkeypatch.setenv('CACHE_SIZE_KIB', 'not-a-number')
    monkeypatch.setenv('JOURNAL_MODE', 'sideways')
    be = SQLiteBackend(str(tmp_path / 'x.db'))
    captured = capsys.readouterr()
    assert 'invalid_env_int' in captured.err
    assert 'CACHE_SIZE_KIB' in captured.err
    assert 'not-a-number' in captured.err
    assert 'invalid_env_choice' in captured.err
    assert be.config.journal_mode == 'WAL'


def test_directory_path_rejected(tmp_path):
    with pytest.raises(ValueError):
        SQLiteBackend(str(tmp_path))


def test_open_creates_parent_dirs(tmp_path):
    db_path = tmp_path / 'nested' / 'dir' / 'b.db'
    conn = SQLiteBackend(str(db_path)).open()
    conn.close()
    assert db_path.exists()


def test_connection_is_autocommit(tmp_path):
    db_path = tmp_path / 'auto.db'
    conn = SQLiteBackend(str(db_path)).open()
    try:
        assert conn.isolation_level is None
        conn.execute("CREATE TABLE t (v TEXT)")
        conn.execute("INSERT INTO t VALUES ('x')")
        # No commit: another connection must already see the row
        with sqlite3.connect(db_path) as other:
            assert other.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 1
    finally:
        conn.close()


def test_pragmas_applied(monkeypatch, tmp_path):
    monkeypatch.setenv('BUSY_TIMEOUT_MS', '1234')
    be = SQLiteBackend(str(tmp_path / 'p.db'))
    conn = be.open()
    try:
        assert conn.execute('PRAGMA foreign_keys').fetchone()[0] == 1
        assert conn.execute('PRAGMA busy_timeout').fetchone()[0] == 1234
        assert conn.execute('PRAGMA journal_mode').fetchone()[0].lower() == 'wal'
    finally:
        conn.close()


def test_foreign_keys_can_be_disabled(monkeypatch, tmp_path):
    monkeypatch.setenv('FOREIGN_KEYS', '0')
    conn = SQLiteBackend(str(tmp_path / 'fk.db')).open()
    try:
        assert conn.execute('PRAGMA foreign_keys').fetchone()[0] == 0
    finally:
        conn.close()


def test_memory_database(monkeypatch):
    monkeypatch.delenv('JOURNAL_MODE', raising=False)
    be = SQLiteBackend(':memory:')
    conn = be.open()
    try:
        conn.execute("CREATE TABLE t (id INTEGER)")
        assert be.health_check(conn)['ok'] is True
    finally:
        conn.close()


def test_health_check_keys(tmp_path):
    be = SQLiteBackend(str(tmp_path / 'health_keys.db'))
    conn = be.open()
    try:
        hc = be.health_check(conn)
    finally:
        conn.close()
    assert hc['ok'] is True
    assert hc['path'].endswith('health_keys.db')
    for k in ['ok', 'foreign_keys', 'journal_mode', 'busy_timeout', 'cache_size']:
        assert k in hc


def test_health_check_on_closed_connection(tmp_path):
    be = SQLiteBackend(str(tmp_path / 'closed.db'))
    conn = be.open()
    conn.close()
    hc = be.health_check(conn)
    assert hc['ok'] is False
    assert 'error' in hc


def test_verify_on_connect_integrity(monkeypatch, tmp_path, capsys):
    db_path = tmp_path / 'verify.db'
    with sqlite3.connect(db_path) as conn:
        conn.execute("CREATE TABLE test (id INTEGER)")
        conn.execute("INSERT INTO test VALUES (1)")
    conn.close()
    monkeypatch.setenv('VERIFY_ON_CONNECT', '1')
    conn = SQLiteBackend(str(db_path)).open()
    try:
        assert conn.execute("SELECT COUNT(*) FROM test").fetchone()[0] == 1
    finally:
        conn.close()
    assert 'integrity_check_failed' not in capsys.readouterr().err


def test_undecodable_text_does_not_break_fetch(tmp_path):
    conn = SQLiteBackend(str(tmp_path / 'txt.db')).open()
    try:
        conn.execute("CREATE TABLE t (v TEXT)")
        conn.execute("INSERT INTO t VALUES (CAST(X'FF41' AS TEXT))")
        conn.execute("INSERT INTO t VALUES ('fine')")
        values = [r[0] for r in conn.execute("SELECT v FROM t ORDER BY rowid")]
        assert values[1] == 'fine'
        assert values[0].raw == b'\xffA'
    finally:
        conn.close()


def test_explicit_path_does_not_mutate_shared_config(tmp_path):
    shared = BackendConfig(path=str(tmp_path / 'shared.db'))
    be = SQLiteBackend(str(tmp_path / 'other.db'), shared)
    assert be.path.endswith('other.db')
    assert be.config.path.endswith('other.db')
    assert shared.path.endswith('shared.db')
    assert SQLiteBackend(None, shared).path.endswith('shared.db')
