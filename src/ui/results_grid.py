from typing import List, Optional

from models.table_model import (
    COLUMN_SEPARATOR,
    MAX_COLUMN_WIDTH,
    MIN_COLUMN_WIDTH,
    SAMPLE_ROWS,
    ResultSet,
    TableModel,
    fit_cell,
    solve_column_widths,
)


class ResultsGrid:
    """Scrollable grid over a TableModel.

    Vertical: a selected row kept in view with the clamp-and-shift rule.
    Horizontal: `first_col` is the leftmost displayed column; the width solver
    decides how many columns from there fit.
    """

    def __init__(self, sample_rows: int = SAMPLE_ROWS):
        self.model = TableModel()
        self.sample_rows = sample_rows
        self.cursor = 0
        self.scroll = 0
        self.first_col = 0
        self._page = 10

    def set_result(self, result: ResultSet) -> None:
        self.model.set_result(result)
        self.cursor = 0
        self.scroll = 0
        self.first_col = 0

    def append_result(self, result: ResultSet) -> None:
        self.model.append_result(result)

    def clear(self) -> None:
        self.set_result(ResultSet())

    @property
    def has_more(self) -> bool:
        return self.model.has_more

    def selected_row(self) -> Optional[tuple]:
        if 0 <= self.cursor < self.model.row_count():
            return self.model.rows[self.cursor]
        return None

    def move(self, delta: int) -> None:
        n = self.model.row_count()
        if n == 0:
            self.cursor = 0
            return
        self.cursor = max(0, min(n - 1, self.cursor + delta))

    def handle_key(self, key: str) -> bool:
        n = self.model.row_count()
        if key in ("up", "k"):
            self.move(-1)
        elif key in ("down", "j"):
            self.move(1)
        elif key == "pageup":
            self.move(-self._page)
        elif key == "pagedown":
            self.move(self._page)
        elif key in ("home", "g"):
            self.cursor = 0
        elif key in ("end", "G"):
            self.cursor = max(0, n - 1)
        elif key in ("left", "h"):
            self.first_col = max(0, self.first_col - 1)
        elif key in ("right", "l"):
            self.first_col = min(max(0, self.model.column_count() - 1), self.first_col + 1)
        else:
            return False
        return True

    def ensure_visible(self, height: int) -> None:
        if height <= 0:
            self.scroll = 0
            return
        if self.cursor < self.scroll:
            self.scroll = self.cursor
        elif self.cursor >= self.scroll + height:
            self.scroll = self.cursor - height + 1
        self.scroll = max(0, min(self.scroll, max(0, self.model.row_count() - height)))

    def column_widths(self, width: int) -> List[int]:
        cols = self.model.columns[self.first_col:]
        rows = [r[self.first_col:] for r in self.model.rows[:self.sample_rows]]
        return solve_column_widths(cols, rows, width, sample=self.sample_rows,
                                   max_width=MAX_COLUMN_WIDTH, floor=MIN_COLUMN_WIDTH)

    def render(self, width: int, height: int, focused: bool = False) -> List[str]:
        model = self.model
        if not model.columns:
            return ["No results"[:width]]

        # header + rule + footer
        body_h = max(0, height - 3)
        self._page = max(1, body_h)
        self.ensure_visible(body_h)
        # two characters for the selection marker
        widths = self.column_widths(max(0, width - 2))
        cols = range(self.first_col, self.first_col + len(widths))

        header = "  " + COLUMN_SEPARATOR.join(
            fit_cell(model.header_text(c), w) for c, w in zip(cols, widths))
        rule = "  " + "─┼─".join("─" * w for w in widths)
        out = [header[:width], rule[:width]]
        for r in range(self.scroll, min(model.row_count(), self.scroll + body_h)):
            marker = "> " if focused and r == self.cursor else "  "
            line = marker + COLUMN_SEPARATOR.join(
                fit_cell(model.cell_text(r, c), w) for c, w in zip(cols, widths))
            out.append(line[:width])
        while len(out) < height - 1:
            out.append("")
        out.append(self._footer(len(widths))[:width])
        return out[:height]

    def _footer(self, shown_cols: int) -> str:
        model = self.model
        if model.is_message:
            return ""
        parts = [f"row {min(self.cursor + 1, model.row_count())}/{model.row_count()}"]
        if model.has_more:
            parts.append("more available (Ctrl+L)")
        total = model.column_count()
        if shown_cols < total:
            parts.append(f"cols {self.first_col + 1}-{self.first_col + shown_cols} of {total}")
        return " · ".join(parts)
