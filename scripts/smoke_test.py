#!/usr/bin/env python3
"""Smoke test for core bridge invariants.

Runs against the database named by SQL_BRIDGE_DB inside a throwaway table:
  * create_table succeeds and list_tables shows the table
  * write_query INSERT reports rowsAffected=1 and the new row id
  * read_query returns the row with columns in statement order
  * describe_table reports the primary key
  * blob and null cells convert to their generic forms
  * an unsafe table name is rejected by describe_table
The throwaway table is dropped afterwards.
"""
import os, sys, json
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from commands.bridge_tools import SQLiteBridgeTools
from sqlbridge.errors import BridgeError, InvalidIdentifier

DB_PATH = os.environ.get('SQL_BRIDGE_DB', str(Path('data') / 'bridge.db'))
TABLE = '__smoke_test'

failures = []

def check(cond, msg):
    if not cond:
        failures.append(msg)

tools = SQLiteBridgeTools.from_env(DB_PATH)
try:
    tools.write_query(f"DROP TABLE IF EXISTS {TABLE}")
    tools.create_table(f"CREATE TABLE {TABLE} (id INTEGER PRIMARY KEY, name TEXT, data BLOB)")
    check(TABLE in tools.list_tables(), 'table missing from list_tables')

    res = tools.write_query(f"INSERT INTO {TABLE} (name, data) VALUES (?, X'000102')", ['Alice'])
    check(res.rows_affected == 1, f"rowsAffected={res.rows_affected}")

    rows = tools.read_query(f"SELECT id, name, data FROM {TABLE}")
    check(rows == [{'id': res.last_insert_rowid, 'name': 'Alice', 'data': 'BLOB[3]'}], f"unexpected rows: {rows}")

    tools.write_query(f"INSERT INTO {TABLE} (name) VALUES (NULL)")
    nulls = tools.read_query(f"SELECT name FROM {TABLE} WHERE name IS NULL")
    check(nulls == [{'name': None}], f"null not preserved: {nulls}")

    cols = {c.name: c for c in tools.describe_table(TABLE)}
    check(cols.get('id') is not None and cols['id'].pk, 'id not reported as primary key')

    try:
        tools.describe_table(f"{TABLE}; DROP TABLE {TABLE}")
        check(False, 'unsafe table name accepted')
    except InvalidIdentifier:
        pass
except BridgeError as e:
    check(False, f"{e.kind}: {e.message}")
finally:
    try:
        tools.write_query(f"DROP TABLE IF EXISTS {TABLE}")
    except BridgeError:
        pass

if failures:
    print(json.dumps({'success': False, 'failures': failures}))
    sys.exit(2)
print(json.dumps({'success': True}))
