"""Schema introspection through SQLAlchemy's inspector.

All functions are blocking and are called from background jobs. Each
inspector call runs under `_call_with_timeout` so an unresponsive server
cannot hang a job forever.
"""
from typing import Iterable, List
import logging
import threading

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from db.drivers import ColumnInfo, Schema, Table

logger = logging.getLogger(__name__)

# Timeout for short metadata/inspection operations (seconds)
_INTROSPECTION_TIMEOUT = 10
# Schema name prefixes that are always system schemas (postgres temp/toast schemas).
_HIDDEN_PREFIXES = ("pg_toast", "pg_temp")


def _call_with_timeout(func, timeout: float = _INTROSPECTION_TIMEOUT):
    """Run func() in a background thread and return its result or raise on error/timeout."""
    result = {"ok": False, "value": None, "error": None}

    def _target():
        try:
            result["value"] = func()
            result["ok"] = True
        except Exception as e:
            result["error"] = e

    thr = threading.Thread(target=_target, daemon=True)
    thr.start()
    thr.join(timeout)
    if result["ok"]:
        return result["value"]
    if result["error"]:
        raise result["error"]
    raise TimeoutError(f"Operation timed out after {timeout} seconds")


def quote_ident(name: str) -> str:
    """Quote an identifier with double quotes unless it is a plain lower-case word."""
    if name and (name[0].isalpha() or name[0] == "_") and all(c.isalnum() or c == "_" for c in name) and name == name.lower():
        return name
    return '"' + name.replace('"', '""') + '"'


def default_select_sql(schema: str, table: str, limit: int = 100) -> str:
    target = f"{quote_ident(schema)}.{quote_ident(table)}" if schema else quote_ident(table)
    return f"SELECT * FROM {target} LIMIT {limit}"


def _visible(names: Iterable[str], hidden: Iterable[str]) -> List[str]:
    hidden = set(hidden)
    return [n for n in names if n not in hidden and not n.startswith(_HIDDEN_PREFIXES)]


def list_tables(engine: Engine, schema: str, timeout: float = _INTROSPECTION_TIMEOUT) -> List[Table]:
    def _load():
        insp = inspect(engine)
        names = list(insp.get_table_names(schema=schema))
        try:
            names.extend(insp.get_view_names(schema=schema))
        except NotImplementedError:
            pass
        return names

    names = _call_with_timeout(_load, timeout)
    return [Table(n) for n in sorted(set(names))]


def list_schemas(engine: Engine, hidden_schemas: Iterable[str] = (), timeout: float = _INTROSPECTION_TIMEOUT) -> List[Schema]:
    """Return visible schemas with their tables and views, both sorted by name."""
    names = _call_with_timeout(lambda: inspect(engine).get_schema_names(), timeout)
    schemas = []
    for name in sorted(_visible(names, hidden_schemas)):
        schemas.append(Schema(name, list_tables(engine, name, timeout)))
    logger.debug("Loaded %d schemas", len(schemas))
    return schemas


def describe_table(engine: Engine, schema: str, table: str, timeout: float = _INTROSPECTION_TIMEOUT) -> List[ColumnInfo]:
    def _load():
        insp = inspect(engine)
        cols = insp.get_columns(table, schema=schema)
        try:
            pk = set(insp.get_pk_constraint(table, schema=schema).get("constrained_columns") or [])
        except NotImplementedError:
            pk = set()
        return cols, pk

    cols, pk = _call_with_timeout(_load, timeout)
    return [
        ColumnInfo(
            name=c["name"],
            type=str(c.get("type")),
            nullable=bool(c.get("nullable", True)),
            primary_key=c["name"] in pk,
            default=None if c.get("default") is None else str(c.get("default")),
        )
        for c in cols
    ]
