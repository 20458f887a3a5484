from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import time

from editor.sql_editor import SqlEditor
from ui.layout import box, fit_block, hjoin
from ui.results_grid import ResultsGrid
from ui.schema_viewer import SchemaBrowser
from ui.status_bar import StatusLine
from utils.worker import CancelToken


class Pane(Enum):
    SCHEMA = "schema"
    EDITOR = "editor"
    RESULTS = "results"


_FOCUS_ORDER = [Pane.SCHEMA, Pane.EDITOR, Pane.RESULTS]


class JobKind(Enum):
    QUERY = "query"
    LOAD_MORE = "load_more"
    DESCRIBE = "describe"


@dataclass
class QueryJob:
    job_id: int
    tab_id: int
    sql: str
    kind: JobKind = JobKind.QUERY
    token: CancelToken = field(default_factory=CancelToken)
    started_at: float = field(default_factory=time.perf_counter)


class PaneCollection:
    """Schema tree, editor, results grid and status line of one tab."""

    def __init__(self, left_width_pct: int = 25, sample_rows: int = 200):
        self.schema = SchemaBrowser()
        self.editor = SqlEditor()
        self.results = ResultsGrid(sample_rows=sample_rows)
        self.status = StatusLine()
        self.focused = Pane.EDITOR
        self.query_job: Optional[QueryJob] = None
        self.left_width_pct = left_width_pct

    @property
    def running(self) -> bool:
        return self.query_job is not None

    def focus(self, pane: Pane) -> None:
        self.focused = pane

    def cycle_focus(self, step: int = 1) -> None:
        idx = _FOCUS_ORDER.index(self.focused)
        self.focused = _FOCUS_ORDER[(idx + step) % len(_FOCUS_ORDER)]

    def handle_key(self, key: str) -> bool:
        if key == "tab":
            self.cycle_focus(1)
            return True
        if key == "shift+tab":
            self.cycle_focus(-1)
            return True
        if self.focused is Pane.SCHEMA:
            return self.schema.handle_key(key)
        if self.focused is Pane.EDITOR:
            return self.editor.handle_key(key)
        return self.results.handle_key(key)

    def render(self, width: int, height: int) -> List[str]:
        body_h = max(2, height - 1)
        left_w = max(12, width * self.left_width_pct // 100)
        right_w = max(10, width - left_w)
        editor_h = max(3, body_h * 2 // 5)
        results_h = max(3, body_h - editor_h)

        def pane_box(pane: Pane, title: str, w: int, h: int) -> List[str]:
            focused = self.focused is pane
            inner_w, inner_h = max(0, w - 2), max(0, h - 2)
            if pane is Pane.SCHEMA:
                content = self.schema.render(inner_w, inner_h, focused)
            elif pane is Pane.EDITOR:
                content = self.editor.render(inner_w, inner_h, focused)
            else:
                content = self.results.render(inner_w, inner_h, focused)
            return box(content, w, h, title, focused)

        left = pane_box(Pane.SCHEMA, "Schema", left_w, body_h)
        right = pane_box(Pane.EDITOR, "Editor", right_w, editor_h) + \
            pane_box(Pane.RESULTS, "Results", right_w, results_h)
        body = fit_block(hjoin(left, right), width, body_h)
        return body + [self.status.render(width)]
