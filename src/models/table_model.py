from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

# Fixed layout constants for the results grid.
MAX_COLUMN_WIDTH = 30
MIN_COLUMN_WIDTH = 4
COLUMN_SEPARATOR = " │ "
SAMPLE_ROWS = 200

_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\\": "\\\\",
}


@dataclass
class ResultSet:
    """One fetch window of a query result.

    statement: the single SQL statement that produced the rows; load-more re-runs
    it from `offset + len(rows)`.
    is_message: rows hold a driver message ("Affected rows: N") rather than data.
    """
    columns: List[str] = field(default_factory=list)
    rows: List[Tuple[Any, ...]] = field(default_factory=list)
    statement: str = ""
    offset: int = 0
    has_more: bool = False
    is_message: bool = False
    statement_count: int = 1

    @property
    def row_count(self) -> int:
        return len(self.rows)


def sanitize_cell(value: Any) -> str:
    """Render a cell as a single printable line.

    None shows as NULL, bytes as hex. Newlines, tabs, backslashes and other
    control characters are escaped so a cell can never break the grid layout.
    """
    if value is None:
        return "NULL"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "0x" + bytes(value).hex()
    text = str(value)
    out = []
    for ch in text:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif not ch.isprintable():
            code = ord(ch)
            out.append(f"\\x{code:02x}" if code < 0x100 else f"\\u{code:04x}")
        else:
            out.append(ch)
    return "".join(out)


def natural_widths(columns: Sequence[str], rows: Sequence[Sequence[Any]], sample: int = SAMPLE_ROWS,
                   max_width: int = MAX_COLUMN_WIDTH, floor: int = MIN_COLUMN_WIDTH) -> List[int]:
    widths = [len(sanitize_cell(c)) for c in columns]
    for row in rows[:sample]:
        for i, value in enumerate(row[:len(widths)]):
            n = len(sanitize_cell(value))
            if n > widths[i]:
                widths[i] = n
    return [max(floor, min(max_width, w)) for w in widths]


def solve_column_widths(columns: Sequence[str], rows: Sequence[Sequence[Any]], available: int,
                        sample: int = SAMPLE_ROWS, max_width: int = MAX_COLUMN_WIDTH,
                        floor: int = MIN_COLUMN_WIDTH, sep: int = len(COLUMN_SEPARATOR)) -> List[int]:
    """Fit column widths into `available` characters.

    Returns one width per displayed column. The result always satisfies
    ``sum(widths) + sep * (len(widths) - 1) <= available`` with every width at
    least `floor`. When not even the floor fits for every column, only the
    leading columns that fit are returned (possibly none).
    """
    if not columns or available <= 0:
        return []
    natural = natural_widths(columns, rows, sample, max_width, floor)

    # how many columns can exist at all with floor widths
    count = len(natural)
    while count > 0 and count * floor + sep * (count - 1) > available:
        count -= 1
    if count == 0:
        return []
    natural = natural[:count]
    budget = available - sep * (count - 1)

    total = sum(natural)
    if total <= budget:
        return natural

    widths = [max(floor, (w * budget) // total) for w in natural]
    # floors can push the proportional result over budget; take from the widest
    while sum(widths) > budget:
        i = max(range(count), key=lambda k: widths[k])
        if widths[i] <= floor:
            break
        widths[i] -= 1

    leftover = budget - sum(widths)
    while leftover > 0:
        grew = False
        for i in range(count):
            if leftover == 0:
                break
            if widths[i] < natural[i]:
                widths[i] += 1
                leftover -= 1
                grew = True
        if not grew:
            break
    return widths


def fit_cell(text: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(text) <= width:
        return text.ljust(width)
    if width == 1:
        return "…"
    return text[:width - 1] + "…"


class TableModel:
    """Rows of the current result plus the paging state used by load-more."""

    def __init__(self, result: Optional[ResultSet] = None):
        self.columns: List[str] = []
        self.rows: List[Tuple[Any, ...]] = []
        self.statement = ""
        self.has_more = False
        self.is_message = False
        self._cells: List[List[str]] = []
        if result is not None:
            self.set_result(result)

    def set_result(self, result: ResultSet) -> None:
        self.columns = list(result.columns)
        self.rows = list(result.rows)
        self.statement = result.statement
        self.has_more = result.has_more
        self.is_message = result.is_message
        self._cells = [[sanitize_cell(v) for v in row] for row in self.rows]

    def append_result(self, result: ResultSet) -> None:
        """Append the rows of a follow-up fetch of the same statement."""
        if result.columns and list(result.columns) != self.columns:
            raise ValueError("Appended result has different columns")
        self.rows.extend(result.rows)
        self._cells.extend([sanitize_cell(v) for v in row] for row in result.rows)
        self.has_more = result.has_more

    def clear(self) -> None:
        self.set_result(ResultSet())

    def next_offset(self) -> int:
        return len(self.rows)

    def row_count(self) -> int:
        return len(self.rows)

    def column_count(self) -> int:
        return len(self.columns)

    def cell_text(self, row: int, col: int) -> str:
        try:
            return self._cells[row][col]
        except IndexError:
            return ""

    def header_text(self, col: int) -> str:
        return sanitize_cell(self.columns[col])
