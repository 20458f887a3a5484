from enum import Enum


class StatusKind(Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"
    NOTICE = "notice"


_PREFIX = {
    StatusKind.IDLE: "",
    StatusKind.RUNNING: "… ",
    StatusKind.SUCCESS: "✓ ",
    StatusKind.ERROR: "✗ ",
    StatusKind.CANCELLED: "⊘ ",
    StatusKind.NOTICE: "",
}


def format_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    return f"{seconds:.2f}s"


class StatusLine:
    """One-line status of a tab. Cancellation is its own kind, never an error."""

    def __init__(self):
        self.kind = StatusKind.IDLE
        self.text = "Ready"

    @property
    def message(self) -> str:
        return self.text

    @property
    def running(self) -> bool:
        return self.kind is StatusKind.RUNNING

    def set_query_running(self) -> None:
        self.kind = StatusKind.RUNNING
        self.text = "Running... (Ctrl+C to cancel)"

    def set_query_result(self, row_count: int, elapsed: float, has_more: bool = False) -> None:
        self.kind = StatusKind.SUCCESS
        noun = "row" if row_count == 1 else "rows"
        more = " (more available)" if has_more else ""
        self.text = f"{row_count} {noun} in {format_elapsed(elapsed)}{more}"

    def set_message_result(self, message: str, elapsed: float) -> None:
        self.kind = StatusKind.SUCCESS
        self.text = f"{message} in {format_elapsed(elapsed)}"

    def set_error(self, message: str) -> None:
        self.kind = StatusKind.ERROR
        # single line only
        lines = str(message).strip().splitlines()
        self.text = "Error: " + (lines[0] if lines else "unknown error")

    def set_cancelled(self) -> None:
        self.kind = StatusKind.CANCELLED
        self.text = "Query cancelled"

    def set_notice(self, message: str) -> None:
        self.kind = StatusKind.NOTICE
        self.text = message

    def render(self, width: int) -> str:
        return (_PREFIX[self.kind] + self.text)[:width].ljust(max(0, width))
