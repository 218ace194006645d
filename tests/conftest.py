import sqlite3, pytest
from pathlib import Path
from sqlbridge.sqlite_backend import SQLiteBackend, BackendConfig
from sqlbridge.guard import ConnectionGuard
from commands.bridge_tools import SQLiteBridgeTools

@pytest.fixture()
def temp_db(tmp_path):
    db_path = tmp_path / 'bridge.db'
    # Create the file so tests can also inspect it with a plain sqlite3 connection
    sqlite3.connect(db_path).close()
    return str(db_path)

@pytest.fixture()
def guard(temp_db, monkeypatch):
    monkeypatch.delenv('SQL_BRIDGE_DB', raising=False)
    g = ConnectionGuard(SQLiteBackend(temp_db, BackendConfig.from_env()))
    yield g
    g.shutdown()

@pytest.fixture()
def tools(guard):
    return SQLiteBridgeTools(guard)

@pytest.fixture()
def people(tools):
    tools.create_table("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT NOT NULL, age INTEGER, score REAL, avatar BLOB)")
    return tools
