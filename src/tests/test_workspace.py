import sys
from pathlib import Path
import pytest

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.drivers import DriverError, DriverRegistry, Schema, Table, default_registry
from events import EventType, key_event, resize_event
from models.table_model import ResultSet
from ui.panes import Pane
from ui.status_bar import StatusKind
from utils.config_store import ConfigStore, SavedConnection
from utils.settings import DEFAULT_SETTINGS
from workspace import View, WorkspaceController


class FakeSession:
    def __init__(self, schemas=None):
        self.schemas = schemas if schemas is not None else [
            Schema("public", [Table("users"), Table("orders")]),
        ]
        self.queries = []
        self.closed = False
        self.fail_schemas = False
        self.timeout = None

    def set_timeout(self, seconds):
        self.timeout = seconds

    def query(self, sql, limit=1000, offset=0, token=None):
        # ignores the token: the controller must discard late results itself
        self.queries.append((sql, limit, offset))
        return ResultSet(columns=["x"], rows=[(1,), (2,)], statement=sql, offset=offset, has_more=offset == 0)

    def list_schemas(self):
        if self.fail_schemas:
            raise RuntimeError("server went away")
        return self.schemas

    def describe_table(self, schema, table):
        return []

    def close(self):
        self.closed = True


class FakeDriver:
    name = "fake"
    default_port = 1
    hidden_schemas = ()

    def __init__(self, fail=False):
        self.fail = fail
        self.sessions = []

    def connect(self, cfg):
        if self.fail:
            raise DriverError("Failed to connect: refused")
        session = FakeSession()
        self.sessions.append(session)
        return session


def press(ctrl, *keys):
    for key in keys:
        ctrl.handle_event(key_event(key))


def type_text(ctrl, text):
    press(ctrl, *list(text))


@pytest.fixture
def store(tmp_path):
    s = ConfigStore("pw", tmp_path / "config.encrypted")
    s.load()
    return s


def _controller(store, dispatcher, driver=None):
    drivers = DriverRegistry()
    if driver is not None:
        drivers.register(driver)
    return WorkspaceController(store, drivers, dispatcher, settings=dict(DEFAULT_SETTINGS), state={})


def _connected(store, dispatcher, driver=None):
    driver = driver or FakeDriver()
    store.add_connection(SavedConnection(name="fake db", driver="fake", database="x"))
    ctrl = _controller(store, dispatcher, driver)
    press(ctrl, "enter")
    dispatcher.run_pending(ctrl)
    return ctrl, driver


def test_end_to_end_select_one_on_sqlite(store, dispatcher):
    ctrl = WorkspaceController(store, default_registry(), dispatcher,
                               settings=dict(DEFAULT_SETTINGS), state={})
    ctrl.handle_event(resize_event(100, 30))
    assert ctrl.view is View.EXPLORER

    press(ctrl, "n")
    assert ctrl.modals.is_open
    type_text(ctrl, "memory")
    press(ctrl, "tab", "left")  # postgres -> sqlite
    press(ctrl, *["tab"] * 5)  # Host, Port, Username, Password, Database
    type_text(ctrl, ":memory:")
    press(ctrl, "enter")
    assert not ctrl.modals.is_open
    assert len(ctrl.explorer.connections) == 1
    assert len(store.list_connections()) == 1

    press(ctrl, "enter")
    dispatcher.run_pending(ctrl)
    assert ctrl.view is View.CONNECTED
    assert len(ctrl.tabs) == 1
    tab = ctrl.current_tab()
    assert tab.panes.focused is Pane.EDITOR
    assert [s.label for s in tab.panes.schema.tree.root.children] == ["main"]

    type_text(ctrl, "SELECT 1")
    press(ctrl, "alt+enter")
    assert tab.panes.running
    events = dispatcher.run_pending()
    assert events[0].event_type is EventType.QUERY_FINISHED
    assert events[0].get("elapsed") > 0
    for event in dispatcher.drain():
        ctrl.handle_event(event)

    assert tab.panes.status.kind is StatusKind.SUCCESS
    assert tab.panes.status.message.startswith("1 row in")
    assert tab.panes.results.model.rows == [(1,)]
    assert any("SELECT 1" in line for line in ctrl.render(100, 30))
    ctrl.shutdown()


def test_cancel_discards_late_completion(store, dispatcher):
    ctrl, _ = _connected(store, dispatcher)
    tab = ctrl.current_tab()
    type_text(ctrl, "select x")
    press(ctrl, "alt+enter")
    assert tab.panes.status.kind is StatusKind.RUNNING

    press(ctrl, "ctrl+c")
    assert tab.panes.status.message == "Query cancelled"
    assert not tab.panes.running

    dispatcher.run_pending(ctrl)
    assert tab.panes.status.message == "Query cancelled"
    assert tab.panes.status.kind is StatusKind.CANCELLED
    assert tab.panes.results.model.rows == []
    # cancel with nothing running is a no-op and ctrl+c never quits here
    press(ctrl, "ctrl+c")
    assert not ctrl.quit_requested


def test_new_query_cancels_running_one(store, dispatcher):
    ctrl, _ = _connected(store, dispatcher)
    tab = ctrl.current_tab()
    type_text(ctrl, "select 1")
    first = ctrl.execute_query()
    second = ctrl.execute_query()
    assert first.token.cancelled
    assert not second.token.cancelled
    assert tab.panes.query_job is second
    dispatcher.run_pending(ctrl)
    assert tab.panes.status.message.startswith("2 rows")
    assert not tab.panes.running


def test_load_more_appends(store, dispatcher):
    ctrl, driver = _connected(store, dispatcher)
    tab = ctrl.current_tab()
    type_text(ctrl, "select x")
    press(ctrl, "f9")
    dispatcher.run_pending(ctrl)
    assert tab.panes.results.has_more
    press(ctrl, "ctrl+l")
    dispatcher.run_pending(ctrl)
    assert tab.panes.results.model.row_count() == 4
    assert driver.sessions[0].queries[-1] == ("select x", DEFAULT_SETTINGS["page_size"], 2)
    assert not tab.panes.results.has_more


def test_connect_failure_stays_in_explorer(store, dispatcher):
    ctrl, _ = _connected(store, dispatcher, FakeDriver(fail=True))
    assert ctrl.view is View.EXPLORER
    assert ctrl.tabs == []
    assert ctrl.current_tab_index == -1
    assert "Connection failed" in ctrl.explorer.message


def test_unknown_driver_is_connect_error(store, dispatcher):
    store.add_connection(SavedConnection(name="odd", driver="nope", database="x"))
    ctrl = _controller(store, dispatcher)
    press(ctrl, "enter")
    dispatcher.run_pending(ctrl)
    assert ctrl.view is View.EXPLORER
    assert "driver not found" in ctrl.explorer.message


def test_connect_to_open_connection_reuses_tab(store, dispatcher):
    ctrl, driver = _connected(store, dispatcher)
    press(ctrl, "ctrl+t")
    assert ctrl.view is View.EXPLORER
    press(ctrl, "enter")
    assert dispatcher.jobs == []
    assert ctrl.view is View.CONNECTED
    assert len(ctrl.tabs) == 1
    assert len(driver.sessions) == 1


def test_duplicate_pending_connect_is_ignored(store, dispatcher):
    store.add_connection(SavedConnection(name="fake db", driver="fake", database="x"))
    ctrl = _controller(store, dispatcher, FakeDriver())
    press(ctrl, "enter", "enter")
    assert len(dispatcher.jobs) == 1


def test_close_tab_closes_session_and_returns_to_explorer(store, dispatcher):
    ctrl, driver = _connected(store, dispatcher)
    type_text(ctrl, "select draft")
    conn_id = ctrl.current_tab().connection_id
    press(ctrl, "ctrl+w")
    assert ctrl.tabs == []
    assert ctrl.current_tab_index == -1
    assert ctrl.view is View.EXPLORER
    assert driver.sessions[0].closed
    assert ctrl.registry.get(conn_id) is None
    assert ctrl.state["drafts"][conn_id] == "select draft"

    # reopening restores the draft
    press(ctrl, "enter")
    dispatcher.run_pending(ctrl)
    assert ctrl.current_tab().panes.editor.get_sql() == "select draft"


def test_schema_table_activation_synthesizes_query(store, dispatcher):
    ctrl, _ = _connected(store, dispatcher)
    tab = ctrl.current_tab()
    press(ctrl, "shift+tab")
    assert tab.panes.focused is Pane.SCHEMA
    press(ctrl, "right", "down", "enter")
    assert tab.panes.editor.get_sql() == "SELECT * FROM public.users LIMIT 100"
    assert tab.panes.focused is Pane.EDITOR


def test_focus_cycles_through_panes(store, dispatcher):
    ctrl, _ = _connected(store, dispatcher)
    panes = ctrl.current_tab().panes
    seen = []
    for _ in range(3):
        press(ctrl, "tab")
        seen.append(panes.focused)
    assert seen == [Pane.RESULTS, Pane.SCHEMA, Pane.EDITOR]


def test_schema_refresh_error_keeps_tree(store, dispatcher):
    ctrl, driver = _connected(store, dispatcher)
    tab = ctrl.current_tab()
    assert len(tab.panes.schema.tree) == 1
    driver.sessions[0].fail_schemas = True
    press(ctrl, "f5")
    dispatcher.run_pending(ctrl)
    assert len(tab.panes.schema.tree) == 1
    assert tab.panes.schema.error == "server went away"
    assert ctrl.view is View.CONNECTED


def test_modal_intercepts_global_keys(store, dispatcher):
    ctrl = _controller(store, dispatcher, FakeDriver())
    press(ctrl, "n", "q")
    assert not ctrl.quit_requested
    assert ctrl.modals.current.value("name") == "q"
    press(ctrl, "esc")
    assert not ctrl.modals.is_open
    assert store.list_connections() == []
    press(ctrl, "q")
    assert ctrl.quit_requested


def test_edit_updates_store_and_explorer(store, dispatcher):
    store.add_connection(SavedConnection(name="old", driver="fake", host="h", database="x"))
    ctrl = _controller(store, dispatcher, FakeDriver())
    press(ctrl, "e", "ctrl+u")
    type_text(ctrl, "new")
    press(ctrl, "enter")
    assert [c.name for c in store.list_connections()] == ["new"]
    assert [c.name for c in ctrl.explorer.connections] == ["new"]
    press(ctrl, "d")
    assert store.list_connections() == []
    assert ctrl.explorer.connections == []


def test_stale_completion_for_closed_tab_is_ignored(store, dispatcher):
    ctrl, _ = _connected(store, dispatcher)
    type_text(ctrl, "select 1")
    press(ctrl, "alt+enter", "ctrl+w")
    dispatcher.run_pending(ctrl)
    assert ctrl.tabs == []
    assert ctrl.view is View.EXPLORER


def test_session_timeout_comes_from_connection_or_settings(store, dispatcher):
    store.add_connection(SavedConnection(name="own", driver="fake", database="x", timeout=7))
    store.add_connection(SavedConnection(name="default", driver="fake", database="y"))
    driver = FakeDriver()
    ctrl = _controller(store, dispatcher, driver)
    ctrl.settings["query_timeout"] = 2

    press(ctrl, "enter")
    dispatcher.run_pending(ctrl)
    press(ctrl, "ctrl+t", "down", "enter")
    dispatcher.run_pending(ctrl)
    assert [s.timeout for s in driver.sessions] == [7, 2]


def test_query_timeout_setting_reaches_sqlite_session(store, dispatcher):
    store.add_connection(SavedConnection(name="mem", driver="sqlite", database=":memory:"))
    settings = dict(DEFAULT_SETTINGS, query_timeout=2)
    ctrl = WorkspaceController(store, default_registry(), dispatcher, settings=settings, state={})
    press(ctrl, "enter")
    dispatcher.run_pending(ctrl)
    assert ctrl.registry.get(ctrl.current_tab().connection_id).timeout == 2
    ctrl.shutdown()


def test_delete_refused_while_tab_is_open(store, dispatcher):
    ctrl, driver = _connected(store, dispatcher)
    press(ctrl, "ctrl+t", "d")
    assert len(store.list_connections()) == 1
    assert "Close the tab" in ctrl.explorer.message
    assert not driver.sessions[0].closed

    press(ctrl, "esc", "ctrl+w", "d")
    assert store.list_connections() == []
