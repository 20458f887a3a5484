"""Encrypted on-disk store of saved connections.

The file is a small JSON envelope::

    {"version": 1, "salt": "<b64>", "iterations": 390000, "data": "<fernet token>"}

The Fernet key is derived from the master password with PBKDF2-HMAC-SHA256
and a fresh random salt on every save. The decrypted payload is the JSON form
of AppConfig. Passwords and decrypted contents are never logged.
"""
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional
import base64
import json
import logging
import os
import secrets
import uuid

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .settings import STORE_PATH

logger = logging.getLogger(__name__)

CURRENT_VERSION = 1
KDF_ITERATIONS = 390000
SALT_BYTES = 16


class PersistenceError(RuntimeError):
    """The store cannot produce a usable configuration (wrong password, corrupt file)."""


@dataclass
class SavedConnection:
    id: str = ""
    name: str = ""
    driver: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    username: str = ""
    password: str = ""
    database: str = ""
    timeout: int = 0  # seconds, 0 = driver default

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())

    @classmethod
    def from_dict(cls, data: dict) -> "SavedConnection":
        def _int(v, default):
            try:
                return int(v)
            except (TypeError, ValueError):
                return default

        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            driver=str(data.get("driver") or "postgres"),
            host=str(data.get("host") or ""),
            port=_int(data.get("port"), 0),
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
            database=str(data.get("database") or ""),
            timeout=_int(data.get("timeout"), 0),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def describe(self) -> str:
        """Short one-line target description (never includes the password)."""
        if self.driver == "sqlite":
            return f"sqlite @ {self.database}"
        return f"{self.driver} @ {self.host}:{self.port}/{self.database}"


@dataclass
class AppConfig:
    version: int = CURRENT_VERSION
    connections: List[SavedConnection] = field(default_factory=list)


def derive_key(password: str, salt: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))


class ConfigStore:
    """Load/save the encrypted connection list protected by a master password."""

    def __init__(self, password: str, path: Path | None = None):
        self.path = Path(path) if path else STORE_PATH
        self._password = password
        self._config: Optional[AppConfig] = None

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> AppConfig:
        """Read and decrypt the store. A missing file loads as an empty config."""
        if not self.exists():
            self._config = AppConfig()
            return self._config

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                envelope = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"failed to read config: {e}") from e

        if not isinstance(envelope, dict):
            raise PersistenceError("failed to parse config: unexpected file layout")

        try:
            salt = base64.b64decode(envelope["salt"])
            iterations = int(envelope.get("iterations") or KDF_ITERATIONS)
            token = str(envelope["data"]).encode("ascii")
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"failed to parse config: {e}") from e

        try:
            plaintext = Fernet(derive_key(self._password, salt, iterations)).decrypt(token)
        except InvalidToken as e:
            raise PersistenceError("failed to decrypt (wrong password?)") from e

        try:
            raw = json.loads(plaintext.decode("utf-8"))
            conns = [SavedConnection.from_dict(c) for c in raw.get("connections") or [] if isinstance(c, dict)]
        except (UnicodeDecodeError, json.JSONDecodeError, AttributeError) as e:
            raise PersistenceError(f"failed to parse config data: {e}") from e

        self._config = AppConfig(version=int(raw.get("version") or CURRENT_VERSION), connections=conns)
        logger.debug("Loaded %d saved connections from %s", len(conns), self.path)
        return self._config

    def save(self, config: AppConfig | None = None) -> None:
        """Encrypt and write the config atomically. Raises OSError on write failures."""
        config = config or self._require_config()
        config.version = CURRENT_VERSION
        payload = json.dumps({
            "version": config.version,
            "connections": [c.to_dict() for c in config.connections],
        }).encode("utf-8")

        salt = secrets.token_bytes(SALT_BYTES)
        token = Fernet(derive_key(self._password, salt)).encrypt(payload)
        envelope = {
            "version": CURRENT_VERSION,
            "salt": base64.b64encode(salt).decode("ascii"),
            "iterations": KDF_ITERATIONS,
            "data": token.decode("ascii"),
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(str(tmp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(envelope, f, indent=2)
        os.replace(tmp_path, self.path)
        self._config = config

    def _require_config(self) -> AppConfig:
        if self._config is None:
            raise PersistenceError("config not loaded")
        return self._config

    def list_connections(self) -> List[SavedConnection]:
        if self._config is None:
            return []
        return list(self._config.connections)

    def get_connection(self, conn_id: str) -> Optional[SavedConnection]:
        for conn in self.list_connections():
            if conn.id == conn_id:
                return conn
        return None

    def _replace_connections(self, connections: List[SavedConnection]) -> None:
        # self._config changes only once save() has written the new list
        config = self._require_config()
        self.save(AppConfig(version=config.version, connections=connections))

    def add_connection(self, conn: SavedConnection) -> None:
        self._replace_connections(self.list_connections() + [conn])

    def update_connection(self, conn: SavedConnection) -> None:
        connections = self.list_connections()
        for i, existing in enumerate(connections):
            if existing.id == conn.id:
                connections[i] = conn
                self._replace_connections(connections)
                return
        raise KeyError(f"connection not found: {conn.id}")

    def upsert_connection(self, conn: SavedConnection) -> bool:
        """Update the connection with the same id or append it. Returns True when added."""
        if self.get_connection(conn.id) is not None:
            self.update_connection(conn)
            return False
        self.add_connection(conn)
        return True

    def delete_connection(self, conn_id: str) -> None:
        self._replace_connections([c for c in self.list_connections() if c.id != conn_id])

    def change_password(self, new_password: str) -> None:
        """Re-encrypt the current config with a new master password."""
        if not new_password:
            raise ValueError("Password cannot be empty")
        config = self._require_config()
        old = self._password
        self._password = new_password
        try:
            self.save(config)
        except OSError:
            self._password = old
            raise
