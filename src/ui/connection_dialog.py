from dataclasses import dataclass
from typing import List, Optional, Sequence

from ui.modal import Modal, ModalKind
from utils.config_store import SavedConnection


@dataclass
class FormField:
    label: str
    key: str
    value: str = ""
    secret: bool = False
    choices: Optional[List[str]] = None


class ConnectionFormModal(Modal):
    """New/edit connection form. The payload is a SavedConnection.

    Keys: tab/down next field, shift+tab/up previous, left/right cycle the
    driver, ctrl+u clears the field, enter submits, esc cancels.
    """

    kind = ModalKind.CONNECTION_FORM
    min_width = 56

    def __init__(self, drivers: Sequence[str], default_ports: Optional[dict] = None,
                 existing: Optional[SavedConnection] = None):
        super().__init__()
        self.drivers = list(drivers) or ["postgres"]
        self.default_ports = dict(default_ports or {})
        self.existing = existing
        self.title = "Edit Connection" if existing else "New Connection"

        src = existing or SavedConnection(
            id="new",
            driver=self.drivers[0],
            port=self.default_ports.get(self.drivers[0], 0),
        )
        self.fields = [
            FormField("Name", "name", src.name),
            FormField("Driver", "driver", src.driver if src.driver in self.drivers else self.drivers[0], choices=self.drivers),
            FormField("Host", "host", src.host),
            FormField("Port", "port", str(src.port) if src.port else ""),
            FormField("Username", "username", src.username),
            FormField("Password", "password", src.password, secret=True),
            FormField("Database", "database", src.database),
            FormField("Timeout", "timeout", str(src.timeout) if src.timeout else ""),
        ]
        self.focus = 0

    def field(self, key: str) -> FormField:
        for f in self.fields:
            if f.key == key:
                return f
        raise KeyError(key)

    def value(self, key: str) -> str:
        return self.field(key).value

    def _on_key(self, key: str) -> None:
        current = self.fields[self.focus]
        if key in ("esc", "ctrl+c"):
            self.cancel()
        elif key in ("tab", "down"):
            self.focus = (self.focus + 1) % len(self.fields)
        elif key in ("shift+tab", "up"):
            self.focus = (self.focus - 1) % len(self.fields)
        elif key == "enter":
            try:
                self.submit(self.get_data())
            except ValueError as e:
                self.error = str(e)
        elif current.choices:
            if key in ("left", "right", " "):
                self._cycle_driver(-1 if key == "left" else 1)
        elif key == "ctrl+u":
            current.value = ""
        elif key == "backspace":
            current.value = current.value[:-1]
        elif len(key) == 1 and key.isprintable():
            current.value += key

    def _cycle_driver(self, step: int) -> None:
        driver = self.field("driver")
        old = driver.value
        idx = self.drivers.index(old) if old in self.drivers else 0
        driver.value = self.drivers[(idx + step) % len(self.drivers)]
        port = self.field("port")
        old_default = self.default_ports.get(old, 0)
        if port.value in ("", str(old_default)):
            new_default = self.default_ports.get(driver.value, 0)
            port.value = str(new_default) if new_default else ""

    def get_data(self) -> SavedConnection:
        """Validate the fields and build a SavedConnection. Raises ValueError."""
        name = self.value("name").strip()
        driver = self.value("driver")
        host = self.value("host").strip()
        database = self.value("database").strip()

        port_txt = self.value("port").strip()
        port = 0
        if port_txt:
            try:
                port = int(port_txt)
            except ValueError:
                raise ValueError(f"Port must be an integer, got: {port_txt}")
            if port <= 0 or port > 65535:
                raise ValueError(f"Port out of valid range: {port}")

        timeout_txt = self.value("timeout").strip()
        timeout = 0
        if timeout_txt:
            try:
                timeout = int(timeout_txt)
            except ValueError:
                raise ValueError(f"Timeout must be an integer, got: {timeout_txt}")
            if timeout < 0:
                raise ValueError("Timeout cannot be negative")

        if not name:
            raise ValueError("Connection name is required")
        if driver == "sqlite":
            if not database:
                raise ValueError("For sqlite, a database file path is required")
            host = ""
        else:
            if not host:
                raise ValueError("Host is required for non-sqlite connections")
            if not database:
                raise ValueError("Database name is required for this connection type")
            if not port:
                port = self.default_ports.get(driver, 0)

        return SavedConnection(
            id=self.existing.id if self.existing else "",
            name=name,
            driver=driver,
            host=host,
            port=port,
            username=self.value("username").strip(),
            password=self.value("password"),
            database=database,
            timeout=timeout,
        )

    def body_lines(self) -> List[str]:
        lines = []
        for i, f in enumerate(self.fields):
            marker = ">" if i == self.focus else " "
            if f.choices:
                shown = f"< {f.value} >"
            elif f.secret:
                shown = "*" * len(f.value)
            else:
                shown = f.value
            cursor = "_" if i == self.focus and not f.choices else ""
            lines.append(f"{marker} {f.label:<9} {shown}{cursor}")
        lines.append("")
        lines.append(f"! {self.error}" if self.error else "")
        lines.append("Enter save · Esc cancel · Tab next field")
        return lines
