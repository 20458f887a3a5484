from typing import List, Optional, Sequence

from ui.layout import box
from utils.config_store import SavedConnection

HELP_TEXT = "Enter connect · n new · e edit · d delete · p password · q quit"


class ExplorerView:
    """List of saved connections with a cursor and a one-line message."""

    def __init__(self):
        self.connections: List[SavedConnection] = []
        self.cursor = 0
        self.scroll = 0
        self.message = ""
        self.connecting: Optional[str] = None
        self._page = 10

    def set_connections(self, connections: Sequence[SavedConnection]) -> None:
        self.connections = list(connections)
        if not self.connections:
            self.cursor = 0
        else:
            self.cursor = max(0, min(self.cursor, len(self.connections) - 1))

    def selected(self) -> Optional[SavedConnection]:
        if 0 <= self.cursor < len(self.connections):
            return self.connections[self.cursor]
        return None

    def select_id(self, conn_id: str) -> None:
        for i, conn in enumerate(self.connections):
            if conn.id == conn_id:
                self.cursor = i
                return

    def handle_key(self, key: str) -> bool:
        n = len(self.connections)
        if key in ("up", "k"):
            self.cursor = max(0, self.cursor - 1)
        elif key in ("down", "j"):
            self.cursor = max(0, min(n - 1, self.cursor + 1))
        elif key == "pageup":
            self.cursor = max(0, self.cursor - self._page)
        elif key == "pagedown":
            self.cursor = max(0, min(n - 1, self.cursor + self._page))
        elif key == "home":
            self.cursor = 0
        elif key == "end":
            self.cursor = max(0, n - 1)
        else:
            return False
        return True

    def render(self, width: int, height: int, open_ids: Sequence[str] = ()) -> List[str]:
        inner_h = max(0, height - 4)
        self._page = max(1, inner_h)
        if self.cursor < self.scroll:
            self.scroll = self.cursor
        elif self.cursor >= self.scroll + inner_h:
            self.scroll = self.cursor - inner_h + 1

        lines = []
        if not self.connections:
            lines.append("No saved connections. Press n to add one.")
        for i in range(self.scroll, min(len(self.connections), self.scroll + inner_h)):
            conn = self.connections[i]
            marker = "> " if i == self.cursor else "  "
            flag = " [open]" if conn.id in open_ids else ""
            if conn.id == self.connecting:
                flag = " [connecting...]"
            lines.append(f"{marker}{conn.name}  ({conn.describe()}){flag}")

        framed = box(lines, width, max(2, height - 2), "Connections", focused=True)
        return framed + [self.message[:width], HELP_TEXT[:width]]
