"""Workspace controller: the state machine behind the terminal UI.

Every key, resize and background completion arrives through handle_event()
on the UI thread. Work that blocks (connecting, running SQL, loading schemas,
reading the clipboard, writing CSV) is handed to the JobDispatcher as a plain
function of its inputs; its result comes back later as another Event.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Set
import logging
import time

from db.connection import ConnectionRegistry
from db.drivers import ConnConfig, DriverError, DriverRegistry
from db.executor import DEFAULT_TIMEOUT, QueryCancelled
from db.metadata import default_select_sql
from events import Event, EventType
from models.table_model import ResultSet
from ui.connection_dialog import ConnectionFormModal
from ui.explorer import ExplorerView
from ui.modal import Modal, ModalKind, ModalStack
from ui.panes import JobKind, Pane, PaneCollection, QueryJob
from ui.password_prompt import PasswordPromptModal
from utils.clipboard import ClipboardError, read_clipboard
from utils.config_store import SavedConnection
from utils.csv_export import default_export_path, export_to_csv
from utils.settings import load_app_settings, load_app_state, save_app_state
from utils.worker import JobDispatcher

logger = logging.getLogger(__name__)

EXECUTE_KEYS = ("alt+enter", "ctrl+enter", "f9")
REFRESH_KEYS = ("f5", "ctrl+r")
DESCRIBE_COLUMNS = ["Column", "Type", "Nullable", "Key", "Default"]


class View(Enum):
    EXPLORER = "explorer"
    CONNECTED = "connected"


@dataclass
class Tab:
    id: int
    connection_id: str
    title: str
    panes: PaneCollection
    schema_job_id: int = 0


# -- background jobs -------------------------------------------------------
# Each job only uses its arguments and returns one Event.

def _connect_job(drivers: DriverRegistry, conn: SavedConnection) -> Event:
    cfg = ConnConfig(
        driver=conn.driver,
        host=conn.host,
        port=conn.port,
        username=conn.username,
        password=conn.password,
        database=conn.database,
        timeout=conn.timeout,
    )
    try:
        session = drivers.connect(cfg)
    except DriverError as e:
        logger.warning("Connect to %s failed: %s", conn.name, e)
        return Event(EventType.CONNECT_ERROR, {"conn_id": conn.id, "error": str(e)}, source="connect")
    return Event(EventType.CONNECT_SUCCESS, {"conn_id": conn.id, "name": conn.name, "timeout": conn.timeout, "session": session}, source="connect")


def _schema_job(session, tab_id: int, job_id: int) -> Event:
    data = {"tab_id": tab_id, "job_id": job_id}
    try:
        data["schemas"] = session.list_schemas()
    except Exception as e:
        logger.warning("Schema load failed: %s", e)
        data["error"] = str(e)
    return Event(EventType.SCHEMAS_LOADED, data, source="schema")


def _query_job(session, job: QueryJob, limit: int, offset: int) -> Event:
    data = {"tab_id": job.tab_id, "job_id": job.job_id, "kind": job.kind}
    started = time.perf_counter()
    try:
        data["result"] = session.query(job.sql, limit=limit, offset=offset, token=job.token)
    except QueryCancelled:
        data["cancelled"] = True
    except Exception as e:
        logger.info("Query failed: %s", e)
        data["error"] = str(e.__cause__ or e)
    data["elapsed"] = time.perf_counter() - started
    return Event(EventType.QUERY_FINISHED, data, source="query")


def _describe_job(session, job: QueryJob, schema: str, table: str) -> Event:
    data = {"tab_id": job.tab_id, "job_id": job.job_id, "kind": job.kind}
    started = time.perf_counter()
    try:
        columns = session.describe_table(schema, table)
        rows = [
            (c.name, c.type, "YES" if c.nullable else "NO", "PRI" if c.primary_key else "", c.default)
            for c in columns
        ]
        data["result"] = ResultSet(columns=list(DESCRIBE_COLUMNS), rows=rows, statement="")
    except Exception as e:
        logger.info("Describe %s.%s failed: %s", schema, table, e)
        data["error"] = str(e)
    data["elapsed"] = time.perf_counter() - started
    return Event(EventType.QUERY_FINISHED, data, source="describe")


def _clipboard_job(tab_id: int) -> Event:
    try:
        return Event(EventType.CLIPBOARD_READ, {"tab_id": tab_id, "text": read_clipboard()}, source="clipboard")
    except ClipboardError as e:
        return Event(EventType.CLIPBOARD_READ, {"tab_id": tab_id, "error": str(e)}, source="clipboard")


def _export_job(tab_id: int, columns: List[str], rows: list, path) -> Event:
    data = {"tab_id": tab_id, "rows": len(rows)}
    try:
        data["path"] = str(export_to_csv(columns, rows, path))
    except OSError as e:
        logger.warning("CSV export to %s failed: %s", path, e)
        data["error"] = str(e)
    return Event(EventType.EXPORT_FINISHED, data, source="export")


class WorkspaceController:
    def __init__(self, store, drivers: DriverRegistry, dispatcher: JobDispatcher,
                 settings: Optional[dict] = None, state: Optional[dict] = None):
        self.store = store
        self.drivers = drivers
        self.dispatcher = dispatcher
        self.settings = settings if settings is not None else load_app_settings()
        self.state = state if state is not None else load_app_state()
        self.registry = ConnectionRegistry()
        self.modals = ModalStack()
        self.explorer = ExplorerView()
        self.explorer.set_connections(store.list_connections())

        self.view = View.EXPLORER
        self.tabs: List[Tab] = []
        self.current_tab_index = -1
        self.width = 80
        self.height = 24
        self.quit_requested = False

        self._next_tab_id = 1
        self._next_job_id = 1
        self._pending_connects: Set[str] = set()
        self._handlers: Dict[EventType, Callable[[Event], None]] = {
            EventType.KEY: self._on_key,
            EventType.RESIZE: self._on_resize,
            EventType.CONNECT_SUCCESS: self._on_connect_success,
            EventType.CONNECT_ERROR: self._on_connect_error,
            EventType.SCHEMAS_LOADED: self._on_schemas_loaded,
            EventType.QUERY_FINISHED: self._on_query_finished,
            EventType.CLIPBOARD_READ: self._on_clipboard_read,
            EventType.EXPORT_FINISHED: self._on_export_finished,
        }

    # -- accessors -------------------------------------------------------

    def current_tab(self) -> Optional[Tab]:
        if 0 <= self.current_tab_index < len(self.tabs):
            return self.tabs[self.current_tab_index]
        return None

    def tab_by_id(self, tab_id: int) -> Optional[Tab]:
        for tab in self.tabs:
            if tab.id == tab_id:
                return tab
        return None

    def tab_for_connection(self, conn_id: str) -> Optional[Tab]:
        for tab in self.tabs:
            if tab.connection_id == conn_id:
                return tab
        return None

    def _new_job_id(self) -> int:
        job_id = self._next_job_id
        self._next_job_id += 1
        return job_id

    # -- event entry -----------------------------------------------------

    def handle_event(self, event: Event) -> None:
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.debug("Unhandled event %s", event.event_type)
            return
        handler(event)

    def _on_resize(self, event: Event) -> None:
        self.width = max(1, int(event.get("width", self.width)))
        self.height = max(1, int(event.get("height", self.height)))

    def _on_key(self, event: Event) -> None:
        key = event.get("key", "")
        if self.modals.is_open:
            closed = self.modals.handle_key(key)
            if closed is not None:
                self._apply_modal(closed)
            return
        if self.view is View.EXPLORER:
            self._explorer_key(key)
        else:
            self._connected_key(key)

    # -- modals ----------------------------------------------------------

    def open_modal(self, modal: Modal) -> bool:
        return self.modals.open(modal)

    def open_new_connection_form(self) -> bool:
        return self.open_modal(self._connection_form())

    def _connection_form(self, existing: Optional[SavedConnection] = None) -> ConnectionFormModal:
        names = self.drivers.names()
        ports = {name: self.drivers.default_port(name) for name in names}
        return ConnectionFormModal(names, ports, existing=replace(existing) if existing else None)

    def _apply_modal(self, modal: Modal) -> None:
        if not modal.is_submitted:
            return
        if modal.kind is ModalKind.CONNECTION_FORM:
            self._save_connection(modal.payload)
        elif modal.kind is ModalKind.PASSWORD_PROMPT:
            self._change_password(modal.payload)

    def _save_connection(self, conn: SavedConnection) -> None:
        try:
            added = self.store.upsert_connection(conn)
        except OSError as e:
            logger.exception("Failed to save connection %s", conn.name)
            self.explorer.message = f"Failed to save connection: {e}"
            return
        self.explorer.set_connections(self.store.list_connections())
        self.explorer.select_id(conn.id)
        self.explorer.message = f"{'Added' if added else 'Updated'} connection {conn.name}"
        tab = self.tab_for_connection(conn.id)
        if tab is not None:
            tab.title = conn.name

    def _change_password(self, password: str) -> None:
        try:
            self.store.change_password(password)
        except (OSError, ValueError) as e:
            logger.exception("Failed to change master password")
            self.explorer.message = f"Failed to change password: {e}"
            return
        self.explorer.message = "Master password changed"

    # -- explorer --------------------------------------------------------

    def _explorer_key(self, key: str) -> None:
        if key in ("q", "ctrl+c"):
            self.quit_requested = True
        elif key == "enter":
            self.connect_selected()
        elif key == "n":
            self.open_new_connection_form()
        elif key == "e":
            selected = self.explorer.selected()
            if selected is not None:
                self.open_modal(self._connection_form(selected))
        elif key == "d":
            self.delete_selected()
        elif key == "p":
            self.open_modal(PasswordPromptModal(setup=True, title="Change Master Password"))
        elif key == "esc":
            if self.current_tab() is not None:
                self.view = View.CONNECTED
        else:
            self.explorer.handle_key(key)

    def delete_selected(self) -> None:
        conn = self.explorer.selected()
        if conn is None:
            return
        if self.tab_for_connection(conn.id) is not None or conn.id in self._pending_connects:
            self.explorer.message = f"Close the tab for {conn.name} before deleting it"
            return
        try:
            self.store.delete_connection(conn.id)
        except OSError as e:
            logger.exception("Failed to delete connection %s", conn.name)
            self.explorer.message = f"Failed to delete connection: {e}"
            return
        self.explorer.set_connections(self.store.list_connections())
        self.explorer.message = f"Deleted connection {conn.name}"

    def connect_selected(self) -> None:
        conn = self.explorer.selected()
        if conn is None:
            return
        self.connect(conn)

    def connect(self, conn: SavedConnection) -> None:
        tab = self.tab_for_connection(conn.id)
        if tab is not None:
            self.current_tab_index = self.tabs.index(tab)
            self.view = View.CONNECTED
            return
        if conn.id in self._pending_connects:
            return
        self._pending_connects.add(conn.id)
        self.explorer.connecting = conn.id
        self.explorer.message = f"Connecting to {conn.name}..."
        logger.info("Connecting to %s (%s)", conn.name, conn.describe())
        self.dispatcher.submit(_connect_job, self.drivers, replace(conn))

    def _on_connect_success(self, event: Event) -> None:
        conn_id = event.get("conn_id")
        session = event.get("session")
        self._pending_connects.discard(conn_id)
        if self.explorer.connecting == conn_id:
            self.explorer.connecting = None
        if self.tab_for_connection(conn_id) is not None:
            session.close()
            return

        session.set_timeout(event.get("timeout") or self.settings.get("query_timeout", DEFAULT_TIMEOUT))
        self.registry.add(conn_id, session)
        panes = PaneCollection(
            left_width_pct=self.settings.get("left_width", 25),
            sample_rows=self.settings.get("sample_rows", 200),
        )
        draft = (self.state.get("drafts") or {}).get(conn_id)
        if draft:
            panes.editor.set_sql(draft)
        tab = Tab(self._next_tab_id, conn_id, event.get("name") or conn_id, panes)
        self._next_tab_id += 1
        self.tabs.append(tab)
        self.current_tab_index = len(self.tabs) - 1
        self.view = View.CONNECTED
        self.explorer.message = ""
        panes.status.set_notice(f"Connected to {tab.title}")
        logger.info("Connected to %s", tab.title)
        self.refresh_schema(tab)

    def _on_connect_error(self, event: Event) -> None:
        conn_id = event.get("conn_id")
        self._pending_connects.discard(conn_id)
        if self.explorer.connecting == conn_id:
            self.explorer.connecting = None
        self.view = View.EXPLORER
        self.explorer.message = f"Connection failed: {event.get('error')}"

    # -- connected -------------------------------------------------------

    def _connected_key(self, key: str) -> None:
        tab = self.current_tab()
        if tab is None:
            self.view = View.EXPLORER
            return
        panes = tab.panes

        if key == "ctrl+w":
            self.close_tab()
        elif key == "ctrl+t":
            self.view = View.EXPLORER
        elif key in EXECUTE_KEYS:
            self.execute_query()
        elif key == "ctrl+c":
            self.cancel_query()
        elif key in REFRESH_KEYS:
            self.refresh_schema(tab)
        elif key == "ctrl+l":
            self.load_more()
        elif key == "ctrl+s":
            self.export_results()
        elif key == "alt+right":
            self.switch_tab(1)
        elif key == "alt+left":
            self.switch_tab(-1)
        elif key == "ctrl+v" and panes.focused is Pane.EDITOR:
            self.dispatcher.submit(_clipboard_job, tab.id)
        elif panes.focused is Pane.SCHEMA and key == "enter" and panes.schema.selected_table():
            payload = panes.schema.selected_table()
            panes.editor.set_sql(default_select_sql(payload.schema, payload.table))
            panes.focus(Pane.EDITOR)
        elif panes.focused is Pane.SCHEMA and key == "i" and panes.schema.selected_table():
            payload = panes.schema.selected_table()
            self.describe_table(payload.schema, payload.table)
        else:
            panes.handle_key(key)

    def switch_tab(self, step: int) -> None:
        if not self.tabs:
            return
        self.current_tab_index = (self.current_tab_index + step) % len(self.tabs)

    def close_tab(self) -> None:
        tab = self.current_tab()
        if tab is None:
            return
        if tab.panes.query_job is not None:
            tab.panes.query_job.token.cancel()
            tab.panes.query_job = None
        self._store_draft(tab)
        self._save_state()
        self.registry.remove(tab.connection_id)
        self.tabs.pop(self.current_tab_index)
        logger.info("Closed tab %s", tab.title)
        if not self.tabs:
            self.current_tab_index = -1
            self.view = View.EXPLORER
        else:
            self.current_tab_index = min(self.current_tab_index, len(self.tabs) - 1)

    def refresh_schema(self, tab: Optional[Tab] = None) -> None:
        tab = tab or self.current_tab()
        if tab is None:
            return
        session = self.registry.get(tab.connection_id)
        if session is None:
            tab.panes.status.set_error("Not connected")
            return
        tab.schema_job_id = self._new_job_id()
        tab.panes.schema.set_loading()
        self.dispatcher.submit(_schema_job, session, tab.id, tab.schema_job_id)

    def _on_schemas_loaded(self, event: Event) -> None:
        tab = self.tab_by_id(event.get("tab_id"))
        if tab is None or event.get("job_id") != tab.schema_job_id:
            return
        if event.get("error"):
            tab.panes.schema.set_load_error(event.get("error"))
            tab.panes.status.set_notice(f"Schema load failed: {event.get('error')}")
            return
        tab.panes.schema.set_schemas(event.get("schemas") or [])

    def _start_job(self, tab: Tab, kind: JobKind, sql: str, func, *args) -> Optional[QueryJob]:
        session = self.registry.get(tab.connection_id)
        if session is None:
            tab.panes.status.set_error("Not connected")
            return None
        previous = tab.panes.query_job
        if previous is not None:
            logger.debug("Cancelling job %d before starting a new one", previous.job_id)
            previous.token.cancel()
        job = QueryJob(self._new_job_id(), tab.id, sql, kind)
        tab.panes.query_job = job
        tab.panes.status.set_query_running()
        self.dispatcher.submit(func, session, job, *args)
        return job

    def execute_query(self) -> Optional[QueryJob]:
        tab = self.current_tab()
        if tab is None:
            return None
        sql = tab.panes.editor.get_sql()
        if not sql.strip():
            tab.panes.status.set_notice("Nothing to execute")
            return None
        return self._start_job(tab, JobKind.QUERY, sql, _query_job, self.settings.get("page_size", 1000), 0)

    def load_more(self) -> Optional[QueryJob]:
        tab = self.current_tab()
        if tab is None:
            return None
        model = tab.panes.results.model
        if not model.has_more or not model.statement:
            tab.panes.status.set_notice("No more rows")
            return None
        if tab.panes.running:
            return None
        return self._start_job(tab, JobKind.LOAD_MORE, model.statement, _query_job,
                               self.settings.get("page_size", 1000), model.next_offset())

    def describe_table(self, schema: str, table: str) -> Optional[QueryJob]:
        tab = self.current_tab()
        if tab is None:
            return None
        return self._start_job(tab, JobKind.DESCRIBE, f"{schema}.{table}", _describe_job, schema, table)

    def cancel_query(self) -> None:
        tab = self.current_tab()
        if tab is None or tab.panes.query_job is None:
            return
        job = tab.panes.query_job
        job.token.cancel()
        tab.panes.query_job = None
        tab.panes.status.set_cancelled()
        logger.info("Cancelled job %d on tab %s", job.job_id, tab.title)

    def _on_query_finished(self, event: Event) -> None:
        tab = self.tab_by_id(event.get("tab_id"))
        if tab is None:
            return
        job = tab.panes.query_job
        if job is None or job.job_id != event.get("job_id"):
            logger.debug("Discarding stale completion for job %s", event.get("job_id"))
            return
        tab.panes.query_job = None
        panes = tab.panes

        if event.get("cancelled"):
            panes.status.set_cancelled()
            return
        if event.get("error"):
            panes.status.set_error(event.get("error"))
            return

        result: ResultSet = event.get("result")
        elapsed = event.get("elapsed", 0.0)
        if job.kind is JobKind.LOAD_MORE:
            panes.results.append_result(result)
            panes.status.set_query_result(panes.results.model.row_count(), elapsed, result.has_more)
        elif result.is_message:
            panes.results.set_result(result)
            panes.status.set_message_result(result.rows[0][0] if result.rows else "Done", elapsed)
        else:
            panes.results.set_result(result)
            panes.status.set_query_result(result.row_count, elapsed, result.has_more)

    def export_results(self) -> None:
        tab = self.current_tab()
        if tab is None:
            return
        model = tab.panes.results.model
        if not model.columns or model.is_message:
            tab.panes.status.set_notice("No results to export")
            return
        path = default_export_path(tab.title)
        self.dispatcher.submit(_export_job, tab.id, list(model.columns), list(model.rows), path)
        tab.panes.status.set_notice(f"Exporting to {path}...")

    def _on_export_finished(self, event: Event) -> None:
        tab = self.tab_by_id(event.get("tab_id"))
        if tab is None:
            return
        if event.get("error"):
            tab.panes.status.set_notice(f"Export failed: {event.get('error')}")
        else:
            tab.panes.status.set_notice(f"Exported {event.get('rows')} rows to {event.get('path')}")

    def _on_clipboard_read(self, event: Event) -> None:
        tab = self.tab_by_id(event.get("tab_id"))
        if tab is None:
            return
        if event.get("error"):
            tab.panes.status.set_notice(f"Paste failed: {event.get('error')}")
            return
        tab.panes.editor.paste(event.get("text") or "")

    # -- persistence of drafts ---------------------------------------------

    def _store_draft(self, tab: Tab) -> None:
        drafts = self.state.setdefault("drafts", {})
        sql = tab.panes.editor.get_sql()
        if sql.strip():
            drafts[tab.connection_id] = sql
        else:
            drafts.pop(tab.connection_id, None)

    def _save_state(self) -> None:
        try:
            save_app_state(self.state)
        except OSError:
            logger.exception("Failed to save application state")

    def shutdown(self) -> None:
        for tab in self.tabs:
            if tab.panes.query_job is not None:
                tab.panes.query_job.token.cancel()
                tab.panes.query_job = None
            self._store_draft(tab)
        self._save_state()
        self.registry.close_all()
        self.dispatcher.shutdown(wait=False)
        logger.info("Workspace shut down")

    # -- rendering -------------------------------------------------------

    def _tab_strip(self) -> str:
        parts = []
        for i, tab in enumerate(self.tabs):
            label = f" {tab.title}{' *' if tab.panes.running else ''} "
            parts.append(f"[{label}]" if i == self.current_tab_index else label)
        return "|".join(parts) + "   Ctrl+T explorer · Ctrl+W close · Tab focus"

    def render(self, width: Optional[int] = None, height: Optional[int] = None) -> List[str]:
        width = width or self.width
        height = height or self.height
        if self.modals.is_open:
            return self.modals.render(width, height)
        tab = self.current_tab()
        if self.view is View.EXPLORER or tab is None:
            return self.explorer.render(width, height, [t.connection_id for t in self.tabs])
        return [self._tab_strip()[:width]] + tab.panes.render(width, max(1, height - 1))
