from enum import Enum
from typing import Any, List, Optional
import logging

from ui.layout import box, center

logger = logging.getLogger(__name__)


class ModalKind(Enum):
    CONNECTION_FORM = "connection_form"
    PASSWORD_PROMPT = "password_prompt"


class Modal:
    """Base overlay. Subclasses implement `_on_key` and `body_lines`.

    A modal starts open. `submit()` closes it with a payload; `cancel()`
    closes it and drops the payload.
    """

    kind: ModalKind
    title = ""
    min_width = 50

    def __init__(self):
        self.is_open = True
        self.is_submitted = False
        self.error = ""
        self._payload: Any = None

    @property
    def payload(self) -> Any:
        return self._payload if self.is_submitted else None

    def submit(self, payload: Any) -> None:
        self._payload = payload
        self.is_submitted = True
        self.is_open = False

    def cancel(self) -> None:
        self._payload = None
        self.is_submitted = False
        self.is_open = False

    def handle_key(self, key: str) -> "Modal":
        if self.is_open:
            self._on_key(key)
        return self

    def _on_key(self, key: str) -> None:
        raise NotImplementedError

    def body_lines(self) -> List[str]:
        raise NotImplementedError

    def render(self, width: int, height: int) -> List[str]:
        body = self.body_lines()
        inner = max([self.min_width] + [len(line) for line in body])
        w = min(width, inner + 4)
        framed = box(["  " + line for line in body], w, min(height, len(body) + 2), self.title, focused=True)
        return center(framed, width, height)


class ModalStack:
    """Holds at most one open modal."""

    def __init__(self):
        self.current: Optional[Modal] = None

    @property
    def is_open(self) -> bool:
        return self.current is not None and self.current.is_open

    def open(self, modal: Modal) -> bool:
        if self.is_open:
            logger.debug("Refusing to open %s while %s is open", modal.kind, self.current.kind)
            return False
        self.current = modal
        return True

    def handle_key(self, key: str) -> Optional[Modal]:
        """Deliver a key to the open modal. Returns it once, on the key that closes it."""
        if not self.is_open:
            return None
        modal = self.current.handle_key(key)
        if not modal.is_open:
            self.current = None
            return modal
        return None

    def render(self, width: int, height: int) -> List[str]:
        if not self.is_open:
            return []
        return self.current.render(width, height)
