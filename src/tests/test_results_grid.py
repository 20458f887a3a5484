import sys
from pathlib import Path
import random

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from models.table_model import (
    MAX_COLUMN_WIDTH,
    MIN_COLUMN_WIDTH,
    ResultSet,
    TableModel,
    sanitize_cell,
    solve_column_widths,
)
from ui.results_grid import ResultsGrid

SEP = 3


def test_sanitize_escapes_control_characters():
    assert sanitize_cell("a\nb\tc\rd\\e") == "a\\nb\\tc\\rd\\\\e"
    assert sanitize_cell("bell\x07") == "bell\\x07"
    assert sanitize_cell(None) == "NULL"
    assert sanitize_cell(b"\x01\xff") == "0x01ff"
    assert "\n" not in sanitize_cell("x\ny")


def test_natural_widths_used_when_they_fit():
    widths = solve_column_widths(["id", "name"], [(1, "alice"), (22, "bob")], 80)
    assert widths == [MIN_COLUMN_WIDTH, 5]


def test_wide_columns_capped():
    widths = solve_column_widths(["c"], [("x" * 100,)], 200)
    assert widths == [MAX_COLUMN_WIDTH]


def test_shrink_fits_budget_and_respects_floor():
    cols = ["a" * 20, "b" * 30, "c" * 10]
    widths = solve_column_widths(cols, [], 40)
    assert sum(widths) + SEP * (len(widths) - 1) <= 40
    assert all(w >= MIN_COLUMN_WIDTH for w in widths)
    # leftover is handed out, nothing is wasted
    assert sum(widths) + SEP * (len(widths) - 1) == 40


def test_random_widths_always_fit():
    rng = random.Random(7)
    for _ in range(300):
        ncols = rng.randint(1, 12)
        cols = ["c" * rng.randint(1, 40) for _ in range(ncols)]
        rows = [tuple("v" * rng.randint(0, 60) for _ in range(ncols)) for _ in range(5)]
        available = rng.randint(0, 200)
        widths = solve_column_widths(cols, rows, available)
        if widths:
            assert sum(widths) + SEP * (len(widths) - 1) <= available
        assert all(w >= MIN_COLUMN_WIDTH for w in widths)
        assert len(widths) <= ncols


def test_too_narrow_shows_leading_columns_only():
    widths = solve_column_widths(["a", "b", "c"], [], 11)
    assert widths == [MIN_COLUMN_WIDTH, MIN_COLUMN_WIDTH]
    assert solve_column_widths(["a"], [], 3) == []


def test_append_result_extends_rows():
    model = TableModel(ResultSet(["n"], [(1,), (2,)], statement="select n", has_more=True))
    assert model.next_offset() == 2
    model.append_result(ResultSet(["n"], [(3,)], statement="select n", offset=2, has_more=False))
    assert model.row_count() == 3
    assert not model.has_more


def test_grid_scroll_and_render():
    grid = ResultsGrid()
    grid.set_result(ResultSet(["id", "note"], [(i, f"line\n{i}") for i in range(100)]))
    grid.handle_key("end")
    lines = grid.render(60, 13, focused=True)
    assert len(lines) == 13
    assert grid.scroll <= grid.cursor < grid.scroll + 10
    assert any(line.startswith("> 99") for line in lines)
    assert all("\n" not in line for line in lines)
    assert "row 100/100" in lines[-1]


def test_horizontal_scroll_moves_first_column():
    grid = ResultsGrid()
    grid.set_result(ResultSet([f"col{i}" for i in range(10)], [tuple(range(10))]))
    grid.handle_key("right")
    assert grid.first_col == 1
    assert "col1" in grid.render(40, 6)[0]
    grid.handle_key("left")
    grid.handle_key("left")
    assert grid.first_col == 0
