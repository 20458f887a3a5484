import logging
from typing import List

import sqlparse

from editor.text_buffer import TextBuffer

logger = logging.getLogger(__name__)

HELP_TEXT = "Alt+Enter run · Ctrl+F format · Ctrl+V paste · Ctrl+U/Ctrl+K kill"
CURSOR_GLYPH = "█"
# title line + help line
RESERVED_ROWS = 2


class SqlEditor:
    """SQL editor pane: a TextBuffer rendered with line numbers and a block cursor."""

    def __init__(self, content: str = ""):
        self.buffer = TextBuffer(content)

    def get_sql(self) -> str:
        return self.buffer.get_content()

    def set_sql(self, sql: str) -> None:
        self.buffer.set_content(sql)
        self.buffer.move_to_end()

    def clear(self) -> None:
        self.buffer.set_content("")

    def paste(self, text: str) -> None:
        self.buffer.insert_text(text)

    def beautify(self) -> bool:
        """Reformat the buffer with sqlparse. Returns False when there was nothing to format."""
        sql = self.get_sql()
        if not sql.strip():
            return False
        formatted = sqlparse.format(sql, reindent=True, keyword_case='upper')
        self.set_sql(formatted.strip())
        logger.debug("Formatted SQL (%d -> %d chars)", len(sql), len(formatted))
        return True

    def handle_key(self, key: str) -> bool:
        if key == "ctrl+f":
            self.beautify()
            return True
        return self.buffer.handle_key(key)

    def render(self, width: int, height: int, focused: bool = False) -> List[str]:
        buf = self.buffer
        buf.adjust_scroll(height, RESERVED_ROWS)
        visible = max(0, height - RESERVED_ROWS)
        gutter = len(str(len(buf.lines))) + 1

        title = f"SQL  Ln {buf.cursor_row + 1}, Col {buf.cursor_col + 1}"
        out = [title[:width]]
        for row in range(buf.scroll_top, min(len(buf.lines), buf.scroll_top + visible)):
            line = buf.lines[row]
            if focused and row == buf.cursor_row:
                col = buf.cursor_col
                line = line[:col] + CURSOR_GLYPH + line[col:]
            # keep the cursor column on screen for long lines
            start = 0
            text_w = max(1, width - gutter - 1)
            if row == buf.cursor_row and buf.cursor_col >= text_w:
                start = buf.cursor_col - text_w + 1
            out.append((str(row + 1).rjust(gutter) + " " + line[start:start + text_w])[:width])
        while len(out) < height - 1:
            out.append("~".rjust(gutter))
        if height >= 2:
            out.append(HELP_TEXT[:width])
        return out[:height]
