from typing import Dict, List, Optional
import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine

from db import metadata
from db.drivers import ColumnInfo, Schema, Table
from db.executor import DEFAULT_TIMEOUT, execute_sql
from models.table_model import ResultSet

logger = logging.getLogger(__name__)


class Session:
    """A live database session: one SQLAlchemy engine plus its driver's rules.

    Methods block and are meant to be called from background jobs. The engine
    is disposed by close().
    """

    def __init__(self, engine: Engine, driver, timeout: Optional[float] = None):
        self.engine = engine
        self.driver = driver
        self.timeout = timeout or DEFAULT_TIMEOUT
        self.closed = False

    @property
    def driver_name(self) -> str:
        return self.driver.name

    def set_timeout(self, seconds: float) -> None:
        self.timeout = seconds if seconds and seconds > 0 else DEFAULT_TIMEOUT

    def query(self, sql: str, limit: int = 1000, offset: int = 0, token=None) -> ResultSet:
        return execute_sql(self.engine, sql, cancel_token=token, limit=limit, offset=offset, timeout=self.timeout)

    def list_schemas(self) -> List[Schema]:
        return metadata.list_schemas(self.engine, self.driver.hidden_schemas, timeout=self.timeout)

    def list_tables(self, schema: str) -> List[Table]:
        return metadata.list_tables(self.engine, schema, timeout=self.timeout)

    def describe_table(self, schema: str, table: str) -> List[ColumnInfo]:
        return metadata.describe_table(self.engine, schema, table, timeout=self.timeout)

    def ping(self) -> None:
        def _ping():
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

        metadata._call_with_timeout(_ping, self.timeout)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.engine.dispose()


def _log_engine_url(conn_id: str, engine: Optional[Engine]) -> None:
    """Log the engine's connection URL with password hidden for diagnostics."""
    url_obj = getattr(engine, "url", None)
    safe = url_obj.render_as_string(hide_password=True) if url_obj is not None else "<engine-without-url>"
    logger.debug("Session for %s registered: %s", conn_id, safe)


class ConnectionRegistry:
    """Owns every open Session, keyed by saved connection id."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def add(self, conn_id: str, session: Session) -> None:
        old = self._sessions.get(conn_id)
        if old is not None and old is not session:
            old.close()
        self._sessions[conn_id] = session
        _log_engine_url(conn_id, getattr(session, "engine", None))

    def get(self, conn_id: str) -> Optional[Session]:
        return self._sessions.get(conn_id)

    def __contains__(self, conn_id: str) -> bool:
        return conn_id in self._sessions

    def ids(self) -> List[str]:
        return list(self._sessions)

    def remove(self, conn_id: str) -> None:
        """Close and forget a session. Unknown ids are ignored."""
        session = self._sessions.pop(conn_id, None)
        if session is None:
            return
        try:
            session.close()
        except Exception:
            logger.exception("Failed to close session %s", conn_id)
        logger.debug("Session %s closed", conn_id)

    def close_all(self) -> None:
        for conn_id in list(self._sessions):
            self.remove(conn_id)
