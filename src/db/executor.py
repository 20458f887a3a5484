from typing import List, Optional
from sqlalchemy.engine import Connection, Engine
import logging
import threading
import time

import sqlparse

from models.table_model import ResultSet

logger = logging.getLogger(__name__)

# Per-statement execution timeout (seconds) used when the session has none configured.
DEFAULT_TIMEOUT = 30
# Polling interval while waiting for a statement thread.
_POLL_INTERVAL = 0.05
# Rows skipped per fetchmany() call when paging past an offset.
_SKIP_CHUNK = 500
# Seconds to wait for an aborted statement thread to finish.
_ABORT_GRACE = 2.0
# DBAPI connection methods that interrupt a statement running on another thread.
_INTERRUPT_METHODS = ("interrupt", "cancel")


class QueryCancelled(RuntimeError):
    """Raised when a cancel token fires while a statement is pending or running."""


class QueryTimeout(RuntimeError):
    pass


def split_statements(sql: str) -> List[str]:
    """Split a script into individual statements with sqlparse, dropping empty ones."""
    out = []
    for stmt in sqlparse.split(sql or ""):
        stmt = stmt.strip()
        if stmt.endswith(";"):
            stmt = stmt[:-1].rstrip()
        if stmt and sqlparse.format(stmt, strip_comments=True).strip():
            out.append(stmt)
    return out


def _abort_connection(conn: Connection) -> None:
    try:
        dbapi_conn = conn.connection.dbapi_connection
    except Exception:
        dbapi_conn = None
    # sqlite3 interrupt() and psycopg2 cancel() stop the running statement and keep the connection
    for name in _INTERRUPT_METHODS:
        interrupt = getattr(dbapi_conn, name, None)
        if callable(interrupt):
            try:
                interrupt()
                return
            except Exception:
                logger.debug("DBAPI %s() failed, invalidating connection", name, exc_info=True)
            break
    # closing the connection is the only portable way to interrupt other drivers
    try:
        conn.invalidate()
    except Exception:
        try:
            conn.close()
        except Exception:
            logger.debug("Failed to close connection after abort", exc_info=True)


def _run_statement(conn: Connection, stmt: str, limit: int, offset: int, cancel_token) -> ResultSet:
    res = conn.exec_driver_sql(stmt)
    if not res.returns_rows:
        rowcount = res.rowcount if res.rowcount is not None else -1
        return ResultSet(
            columns=["Message"],
            rows=[(f"Affected rows: {rowcount}",)],
            statement=stmt,
            offset=0,
            has_more=False,
            is_message=True,
        )

    cols = list(res.keys())
    skipped = 0
    while skipped < offset:
        if cancel_token is not None and cancel_token.cancelled:
            raise QueryCancelled("Execution canceled")
        chunk = res.fetchmany(min(_SKIP_CHUNK, offset - skipped))
        if not chunk:
            break
        skipped += len(chunk)

    # fetch one extra row to learn whether more rows exist server-side
    fetched = res.fetchmany(limit + 1)
    has_more = len(fetched) > limit
    if has_more:
        fetched = fetched[:limit]
    res.close()
    return ResultSet(
        columns=cols,
        rows=[tuple(r) for r in fetched],
        statement=stmt,
        offset=offset,
        has_more=has_more,
    )


def execute_sql(engine: Engine, sql: str, cancel_token=None, limit: int = 1000, offset: int = 0, timeout: Optional[float] = None) -> ResultSet:
    """Execute SQL (possibly several statements) and return the last statement's ResultSet.

    Statements are split with sqlparse and executed in order on one connection,
    which is committed once all of them succeed. Row-returning statements fetch
    at most `limit` rows after skipping `offset`; `has_more` reports whether
    another row was available. Statements without rows produce a one-cell
    "Affected rows" message.

    cancel_token: optional CancelToken checked before each statement, while
    waiting for a running statement (the DBAPI interrupt hook stops the
    statement, or the connection is invalidated when the driver has none)
    and between fetch chunks. Raises QueryCancelled.
    timeout: per-statement limit in seconds; raises QueryTimeout.
    """
    statements = split_statements(sql)
    if not statements:
        raise ValueError("No SQL statement to execute")
    timeout = timeout or DEFAULT_TIMEOUT

    result: Optional[ResultSet] = None
    with engine.connect() as conn:
        for stmt in statements:
            if cancel_token is not None and cancel_token.cancelled:
                raise QueryCancelled("Execution canceled")

            # Holder to receive the execution outcome from the statement thread
            outcome = {"value": None, "error": None}

            def _target(stmt=stmt):
                try:
                    outcome["value"] = _run_statement(conn, stmt, limit, offset, cancel_token)
                except Exception as e:
                    outcome["error"] = e

            thr = threading.Thread(target=_target, daemon=True)
            thr.start()

            started = time.perf_counter()
            while thr.is_alive():
                thr.join(_POLL_INTERVAL)
                if cancel_token is not None and cancel_token.cancelled:
                    _abort_connection(conn)
                    thr.join(_ABORT_GRACE)
                    raise QueryCancelled("Execution canceled")
                if time.perf_counter() - started >= timeout:
                    _abort_connection(conn)
                    thr.join(_ABORT_GRACE)
                    raise QueryTimeout(f"Execution timed out after {timeout:g} seconds for statement: {stmt}")

            if isinstance(outcome["error"], QueryCancelled):
                raise outcome["error"]
            if outcome["error"] is not None:
                raise RuntimeError(f"Error executing statement: {stmt}\n{outcome['error']}") from outcome["error"]
            if outcome["value"] is None:
                raise RuntimeError(f"Unknown execution failure for statement: {stmt}")
            result = outcome["value"]

        conn.commit()

    result.statement_count = len(statements)
    return result
