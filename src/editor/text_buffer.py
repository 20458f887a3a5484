"""Editable multi-line text with a cursor and a vertical viewport.

Invariant kept by every operation::

    0 <= cursor_row < len(lines)
    0 <= cursor_col <= len(lines[cursor_row])
"""
from typing import List

TAB_WIDTH = 4


class TextBuffer:
    def __init__(self, content: str = ""):
        self.lines: List[str] = [""]
        self.cursor_row = 0
        self.cursor_col = 0
        self.scroll_top = 0
        if content:
            self.set_content(content)

    # -- content ---------------------------------------------------------

    def set_content(self, text: str) -> None:
        self.lines = text.split("\n")
        self.cursor_row = 0
        self.cursor_col = 0
        self.scroll_top = 0

    def get_content(self) -> str:
        return "\n".join(self.lines)

    def is_empty(self) -> bool:
        return self.lines == [""]

    def current_line(self) -> str:
        return self.lines[self.cursor_row]

    def move_to_end(self) -> None:
        self.cursor_row = len(self.lines) - 1
        self.cursor_col = len(self.lines[self.cursor_row])

    def _clamp_col(self) -> None:
        self.cursor_col = min(self.cursor_col, len(self.lines[self.cursor_row]))

    # -- movement --------------------------------------------------------

    def move_up(self) -> None:
        if self.cursor_row > 0:
            self.cursor_row -= 1
            self._clamp_col()

    def move_down(self) -> None:
        if self.cursor_row < len(self.lines) - 1:
            self.cursor_row += 1
            self._clamp_col()

    def move_left(self) -> None:
        if self.cursor_col > 0:
            self.cursor_col -= 1
        elif self.cursor_row > 0:
            self.cursor_row -= 1
            self.cursor_col = len(self.lines[self.cursor_row])

    def move_right(self) -> None:
        if self.cursor_col < len(self.lines[self.cursor_row]):
            self.cursor_col += 1
        elif self.cursor_row < len(self.lines) - 1:
            self.cursor_row += 1
            self.cursor_col = 0

    def home(self) -> None:
        self.cursor_col = 0

    def end(self) -> None:
        self.cursor_col = len(self.lines[self.cursor_row])

    # -- editing ---------------------------------------------------------

    def insert_char(self, ch: str) -> None:
        line = self.lines[self.cursor_row]
        self.lines[self.cursor_row] = line[:self.cursor_col] + ch + line[self.cursor_col:]
        self.cursor_col += len(ch)

    def newline(self) -> None:
        line = self.lines[self.cursor_row]
        self.lines[self.cursor_row] = line[:self.cursor_col]
        self.lines.insert(self.cursor_row + 1, line[self.cursor_col:])
        self.cursor_row += 1
        self.cursor_col = 0

    def backspace(self) -> None:
        if self.cursor_col > 0:
            line = self.lines[self.cursor_row]
            self.lines[self.cursor_row] = line[:self.cursor_col - 1] + line[self.cursor_col:]
            self.cursor_col -= 1
        elif self.cursor_row > 0:
            current = self.lines.pop(self.cursor_row)
            self.cursor_row -= 1
            self.cursor_col = len(self.lines[self.cursor_row])
            self.lines[self.cursor_row] += current

    def delete(self) -> None:
        line = self.lines[self.cursor_row]
        if self.cursor_col < len(line):
            self.lines[self.cursor_row] = line[:self.cursor_col] + line[self.cursor_col + 1:]
        elif self.cursor_row < len(self.lines) - 1:
            self.lines[self.cursor_row] = line + self.lines.pop(self.cursor_row + 1)

    def kill_to_start(self) -> None:
        self.lines[self.cursor_row] = self.lines[self.cursor_row][self.cursor_col:]
        self.cursor_col = 0

    def kill_to_end(self) -> None:
        self.lines[self.cursor_row] = self.lines[self.cursor_row][:self.cursor_col]

    def insert_text(self, text: str) -> None:
        """Insert pasted text at the cursor.

        Line endings are normalised to LF and tabs expanded. The cursor ends
        after the last inserted fragment; whatever followed the cursor is kept
        after it.
        """
        if not text:
            return
        text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", " " * TAB_WIDTH)
        fragments = text.split("\n")
        line = self.lines[self.cursor_row]
        head, tail = line[:self.cursor_col], line[self.cursor_col:]

        if len(fragments) == 1:
            self.lines[self.cursor_row] = head + fragments[0] + tail
            self.cursor_col += len(fragments[0])
            return

        new_lines = [head + fragments[0]] + fragments[1:-1] + [fragments[-1] + tail]
        self.lines[self.cursor_row:self.cursor_row + 1] = new_lines
        self.cursor_row += len(fragments) - 1
        self.cursor_col = len(fragments[-1])

    # -- viewport --------------------------------------------------------

    def adjust_scroll(self, height: int, reserved: int = 0) -> None:
        """Keep the cursor row inside a window of `height - reserved` rows."""
        visible = max(1, height - reserved)
        if self.cursor_row < self.scroll_top:
            self.scroll_top = self.cursor_row
        elif self.cursor_row >= self.scroll_top + visible:
            self.scroll_top = self.cursor_row - visible + 1

    def handle_key(self, key: str) -> bool:
        """Apply an editing key. Returns True when the key was consumed."""
        action = _KEY_ACTIONS.get(key)
        if action is not None:
            action(self)
            return True
        if len(key) == 1 and key.isprintable():
            self.insert_char(key)
            return True
        return False


_KEY_ACTIONS = {
    "up": TextBuffer.move_up,
    "down": TextBuffer.move_down,
    "left": TextBuffer.move_left,
    "right": TextBuffer.move_right,
    "home": TextBuffer.home,
    "ctrl+a": TextBuffer.home,
    "end": TextBuffer.end,
    "ctrl+e": TextBuffer.end,
    "enter": TextBuffer.newline,
    "backspace": TextBuffer.backspace,
    "delete": TextBuffer.delete,
    "ctrl+d": TextBuffer.delete,
    "ctrl+u": TextBuffer.kill_to_start,
    "alt+backspace": TextBuffer.kill_to_start,
    "ctrl+k": TextBuffer.kill_to_end,
}
