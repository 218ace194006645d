#!/usr/bin/env python3
"""Line-delimited JSON command server for a host process.

Each stdin line is one request:
    {"id": 1, "command": "read_query", "args": {"query": "...", "parameters": ["x"]}}
and each stdout line is the matching response:
    {"id": 1, "ok": true, "result": [...]}
    {"id": 1, "ok": false, "kind": "sql_failure", "error": "no such table: t"}

This is the only place structured bridge errors become plain strings.

Usage:
  python -m commands.stdio_server [--db PATH]
"""
from __future__ import annotations
import argparse, json, sys
from typing import Any, Callable, Dict, IO, Optional

from commands.bridge_tools import SQLiteBridgeTools
from sqlbridge.errors import BridgeError
from sqlbridge.logging_util import error, info, warn


class BadRequest(ValueError):
    pass


def _require_str(args: Dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str):
        raise BadRequest(f"'{key}' must be a string")
    return value


def _optional_params(args: Dict[str, Any]):
    params = args.get("parameters")
    if params is None:
        return None
    if not isinstance(params, list) or not all(isinstance(p, str) for p in params):
        raise BadRequest("'parameters' must be a list of strings")
    return params


def _create_table(tools: SQLiteBridgeTools, args: Dict[str, Any]):
    tools.create_table(_require_str(args, "query"))
    return None

def _read_query(tools: SQLiteBridgeTools, args: Dict[str, Any]):
    return tools.read_query(_require_str(args, "query"), _optional_params(args))

def _write_query(tools: SQLiteBridgeTools, args: Dict[str, Any]):
    return tools.write_query(_require_str(args, "query"), _optional_params(args)).to_dict()

def _list_tables(tools: SQLiteBridgeTools, args: Dict[str, Any]):
    return tools.list_tables()

def _describe_table(tools: SQLiteBridgeTools, args: Dict[str, Any]):
    return [c.to_dict() for c in tools.describe_table(_require_str(args, "table_name"))]


COMMANDS: Dict[str, Callable[[SQLiteBridgeTools, Dict[str, Any]], Any]] = {
    "create_table": _create_table,
    "read_query": _read_query,
    "write_query": _write_query,
    "list_tables": _list_tables,
    "describe_table": _describe_table,
}


def _bad_request(req_id: Any, message: str) -> Dict[str, Any]:
    return {"id": req_id, "ok": False, "kind": "bad_request", "error": message}


def _internal_error(req_id: Any, exc: BaseException) -> Dict[str, Any]:
    return {"id": req_id, "ok": False, "kind": "internal_error", "error": str(exc) or type(exc).__name__}


def _encode(response: Dict[str, Any]) -> str:
    try:
        return json.dumps(response, separators=(',', ':'), allow_nan=False)
    except (TypeError, ValueError) as e:
        error("response_unencodable", id=response.get("id"), error=str(e))
        return json.dumps(_internal_error(response.get("id"), e), separators=(',', ':'), default=str)


def dispatch(tools: SQLiteBridgeTools, request: Any) -> Dict[str, Any]:
    """Run one decoded request and return its response object."""
    if not isinstance(request, dict):
        return _bad_request(None, "request must be a JSON object")
    req_id = request.get("id")
    command = request.get("command")
    handler = COMMANDS.get(command) if isinstance(command, str) else None
    if handler is None:
        return _bad_request(req_id, f"unknown command: {command!r}")
    args = request.get("args") or {}
    if not isinstance(args, dict):
        return _bad_request(req_id, "'args' must be a JSON object")
    try:
        result = handler(tools, args)
    except BadRequest as e:
        return _bad_request(req_id, str(e))
    except BridgeError as e:
        return {"id": req_id, "ok": False, "kind": e.kind, "error": e.message}
    except Exception as e:
        error("command_crashed", id=req_id, command=command, cause=type(e).__name__, error=str(e))
        return _internal_error(req_id, e)
    return {"id": req_id, "ok": True, "result": result}


def handle_line(tools: SQLiteBridgeTools, line: str) -> Dict[str, Any]:
    try:
        request = json.loads(line)
    except json.JSONDecodeError as e:
        return _bad_request(None, f"invalid JSON: {e}")
    return dispatch(tools, request)


def serve(tools: SQLiteBridgeTools, stdin: Optional[IO[str]] = None, stdout: Optional[IO[str]] = None) -> int:
    """Answer requests until stdin closes. Returns the number handled."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    handled = 0
    for line in stdin:
        if not line.strip():
            continue
        response = handle_line(tools, line)
        if not response["ok"]:
            warn("command_failed", id=response.get("id"), kind=response["kind"], error=response["error"])
        stdout.write(_encode(response) + "\n")
        stdout.flush()
        handled += 1
    info("server_stopped", handled=handled)
    return handled


def parse_args(argv: list[str]):
    ap = argparse.ArgumentParser(description="Serve the SQL command bridge over stdin/stdout")
    ap.add_argument("--db", default=None, help="Database path (default: $SQL_BRIDGE_DB or data/bridge.db)")
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    tools = SQLiteBridgeTools.from_env(args.db)
    info("server_started", path=tools.guard.backend.path)
    serve(tools)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
