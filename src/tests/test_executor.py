import sys
from pathlib import Path
import pytest

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
import threading
import time

from db.executor import QueryCancelled, QueryTimeout, execute_sql, split_statements
from utils.worker import CancelToken


@pytest.fixture
def engine():
    eng = create_engine('sqlite:///:memory:', poolclass=StaticPool,
                        connect_args={'check_same_thread': False})
    yield eng
    eng.dispose()


def test_execute_sql_create_insert_select(engine):
    sql = """
    CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT);
    INSERT INTO t (name) VALUES ('alice'), ('bob');
    SELECT id, name FROM t ORDER BY id;
    """
    result = execute_sql(engine, sql)
    assert result.columns == ['id', 'name']
    assert result.rows == [(1, 'alice'), (2, 'bob')]
    assert result.row_count == 2
    assert not result.has_more
    assert result.statement_count == 3
    assert result.statement.startswith('SELECT id, name')


def test_non_row_statement_reports_affected_rows(engine):
    execute_sql(engine, "CREATE TABLE t (id INTEGER)")
    result = execute_sql(engine, "INSERT INTO t VALUES (1), (2), (3)")
    assert result.is_message
    assert result.columns == ['Message']
    assert result.rows == [('Affected rows: 3',)]
    # committed: visible from a new statement
    assert execute_sql(engine, "SELECT count(*) FROM t").rows == [(3,)]


def test_limit_offset_and_has_more(engine):
    execute_sql(engine, "CREATE TABLE n (v INTEGER); " + " ".join(
        f"INSERT INTO n VALUES ({i});" for i in range(25)))
    first = execute_sql(engine, "SELECT v FROM n ORDER BY v", limit=10)
    assert [r[0] for r in first.rows] == list(range(10))
    assert first.has_more

    last = execute_sql(engine, first.statement, limit=10, offset=20)
    assert [r[0] for r in last.rows] == list(range(20, 25))
    assert not last.has_more


def test_cancelled_token_stops_before_running(engine):
    token = CancelToken()
    token.cancel()
    with pytest.raises(QueryCancelled):
        execute_sql(engine, "SELECT 1", cancel_token=token)


SLOW_SQL = (
    "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c WHERE x < 100000000) "
    "SELECT count(*) FROM c"
)


def test_cancel_interrupts_running_statement_and_keeps_database(engine):
    execute_sql(engine, "CREATE TABLE kept (id INTEGER); INSERT INTO kept VALUES (1)")
    token = CancelToken()
    timer = threading.Timer(0.2, token.cancel)
    timer.start()
    started = time.perf_counter()
    try:
        with pytest.raises(QueryCancelled):
            execute_sql(engine, SLOW_SQL, cancel_token=token, timeout=60)
    finally:
        timer.cancel()
    assert time.perf_counter() - started < 2.0

    # the shared in-memory connection survives the interrupt
    assert execute_sql(engine, "SELECT id FROM kept").rows == [(1,)]


def test_timeout_interrupts_running_statement(engine):
    execute_sql(engine, "CREATE TABLE kept (id INTEGER); INSERT INTO kept VALUES (1)")
    started = time.perf_counter()
    with pytest.raises(QueryTimeout, match="timed out"):
        execute_sql(engine, SLOW_SQL, timeout=0.2)
    assert time.perf_counter() - started < 2.0
    assert execute_sql(engine, "SELECT id FROM kept").rows == [(1,)]


def test_errors_are_wrapped_with_statement(engine):
    with pytest.raises(RuntimeError) as exc:
        execute_sql(engine, "SELECT * FROM missing_table")
    assert "missing_table" in str(exc.value)


def test_split_statements_drops_empty():
    assert split_statements("select 1;\nselect 2;") == ["select 1", "select 2"]
    assert split_statements("  ") == []
    with pytest.raises(ValueError):
        execute_sql(None, "   ")
