"""Database drivers selectable by name.

A driver turns a ConnConfig into a live Session (see db.connection). Drivers
are plain SQLAlchemy dialect descriptions; the DriverRegistry is an explicit
object handed to the workspace rather than module-level state.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging
import threading

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Timeout (seconds) for the initial connection test when the config has none.
DEFAULT_CONNECT_TIMEOUT = 5


class DriverError(RuntimeError):
    """Connecting through a driver failed (network, auth, missing DBAPI module)."""


class DriverNotFound(DriverError):
    pass


@dataclass
class ConnConfig:
    driver: str = "postgres"
    host: str = "localhost"
    port: int = 0
    username: str = ""
    password: str = ""
    database: str = ""
    timeout: int = 0


@dataclass
class Table:
    name: str


@dataclass
class Schema:
    name: str
    tables: List[Table] = field(default_factory=list)


@dataclass
class ColumnInfo:
    name: str
    type: str
    nullable: bool = True
    primary_key: bool = False
    default: Optional[str] = None


class SqlAlchemyDriver:
    """A server database reached through a SQLAlchemy dialect+DBAPI pair."""

    def __init__(self, name: str, drivername: str, default_port: int, hidden_schemas: Tuple[str, ...] = ()):
        self.name = name
        self.drivername = drivername
        self.default_port = default_port
        self.hidden_schemas = tuple(hidden_schemas)

    def build_url(self, cfg: ConnConfig) -> URL:
        return URL.create(
            drivername=self.drivername,
            username=cfg.username or None,
            password=cfg.password or None,
            host=cfg.host or None,
            port=int(cfg.port) if cfg.port else self.default_port,
            database=cfg.database or None,
        )

    def engine_kwargs(self, cfg: ConnConfig) -> dict:
        timeout = cfg.timeout or DEFAULT_CONNECT_TIMEOUT
        return {"connect_args": {"connect_timeout": int(timeout)}}

    def create_engine(self, cfg: ConnConfig) -> Engine:
        try:
            return create_engine(self.build_url(cfg), future=True, **self.engine_kwargs(cfg))
        except Exception as e:
            # missing DBAPI modules (psycopg2/pymysql) surface here
            raise DriverError(f"Cannot create {self.name} engine: {e}") from e

    def connect(self, cfg: ConnConfig):
        """Create an engine and test it with SELECT 1. Returns a db.connection.Session."""
        from db.connection import Session

        engine = self.create_engine(cfg)
        timeout = cfg.timeout or DEFAULT_CONNECT_TIMEOUT
        result = {"ok": False, "error": None}

        def _try_connect():
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                result["ok"] = True
            except Exception as e:
                result["error"] = e

        thr = threading.Thread(target=_try_connect, daemon=True)
        thr.start()
        thr.join(timeout)
        if not result["ok"]:
            engine.dispose()
            if result["error"] is not None:
                raise DriverError(f"Failed to connect: {result['error']}") from result["error"]
            raise DriverError(f"Connection test timed out after {timeout} seconds")

        logger.debug("Connected via %s: %s", self.name, engine.url.render_as_string(hide_password=True))
        return Session(engine, self, timeout=cfg.timeout or None)


class SqliteDriver(SqlAlchemyDriver):
    """SQLite file (or ':memory:') addressed by the config's database field."""

    def __init__(self):
        super().__init__("sqlite", "sqlite", 0)

    def build_url(self, cfg: ConnConfig) -> URL:
        return URL.create(drivername="sqlite", database=cfg.database or ":memory:")

    def engine_kwargs(self, cfg: ConnConfig) -> dict:
        kwargs = {"connect_args": {"check_same_thread": False}}
        if not cfg.database or cfg.database == ":memory:":
            # one shared connection so every statement sees the same in-memory database
            kwargs["poolclass"] = StaticPool
        return kwargs


class DriverRegistry:
    def __init__(self):
        self._drivers: Dict[str, SqlAlchemyDriver] = {}

    def register(self, driver: SqlAlchemyDriver) -> None:
        self._drivers[driver.name] = driver

    def get(self, name: str) -> SqlAlchemyDriver:
        try:
            return self._drivers[name]
        except KeyError:
            raise DriverNotFound(f"driver not found: {name}") from None

    def names(self) -> List[str]:
        return list(self._drivers)

    def default_port(self, name: str) -> int:
        driver = self._drivers.get(name)
        return driver.default_port if driver else 0

    def connect(self, cfg: ConnConfig):
        return self.get(cfg.driver).connect(cfg)


def default_registry() -> DriverRegistry:
    registry = DriverRegistry()
    registry.register(SqlAlchemyDriver(
        "postgres", "postgresql+psycopg2", 5432,
        hidden_schemas=("pg_catalog", "information_schema", "pg_toast"),
    ))
    registry.register(SqlAlchemyDriver(
        "mysql", "mysql+pymysql", 3306,
        hidden_schemas=("information_schema", "mysql", "performance_schema", "sys"),
    ))
    registry.register(SqliteDriver())
    return registry
