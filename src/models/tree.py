"""Expandable tree with a flattened, cursor-addressable view.

The tree keeps a cached list of visible nodes (pre-order, descending only
into expanded nodes). Every expansion change rebuilds that list and clamps
the cursor back into range, so `selected()` always points at a visible node.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class PayloadKind(Enum):
    NONE = "none"
    SCHEMA = "schema"
    TABLE = "table"


@dataclass(frozen=True)
class NodePayload:
    kind: PayloadKind = PayloadKind.NONE
    schema: str = ""
    table: str = ""

    @classmethod
    def none(cls) -> "NodePayload":
        return cls()

    @classmethod
    def for_schema(cls, schema: str) -> "NodePayload":
        return cls(PayloadKind.SCHEMA, schema)

    @classmethod
    def for_table(cls, schema: str, table: str) -> "NodePayload":
        return cls(PayloadKind.TABLE, schema, table)


@dataclass
class TreeNode:
    id: str
    label: str
    children: List["TreeNode"] = field(default_factory=list)
    expanded: bool = False
    payload: NodePayload = field(default_factory=NodePayload)

    def has_children(self) -> bool:
        return bool(self.children)


class Tree:
    def __init__(self, root: Optional[TreeNode] = None, show_root: bool = False):
        self.root = root or TreeNode("root", "root", expanded=True)
        self.show_root = show_root
        self.cursor = -1
        self.scroll = 0
        self._flat: List[TreeNode] = []
        self.rebuild()

    # -- structure -------------------------------------------------------

    def set_root(self, root: TreeNode) -> None:
        self.root = root
        self.rebuild()

    def rebuild(self) -> None:
        flat: List[TreeNode] = []

        def visit(node: TreeNode) -> None:
            flat.append(node)
            if node.expanded:
                for child in node.children:
                    visit(child)

        if self.show_root:
            visit(self.root)
        else:
            for child in self.root.children:
                visit(child)
        self._flat = flat

        if not flat:
            self.cursor = -1
            self.scroll = 0
        elif self.cursor < 0:
            self.cursor = 0
        elif self.cursor >= len(flat):
            self.cursor = len(flat) - 1

    def visible(self) -> List[TreeNode]:
        return list(self._flat)

    def __len__(self) -> int:
        return len(self._flat)

    def selected(self) -> Optional[TreeNode]:
        if 0 <= self.cursor < len(self._flat):
            return self._flat[self.cursor]
        return None

    def find(self, node_id: str) -> Optional[TreeNode]:
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.id == node_id:
                return node
            stack.extend(node.children)
        return None

    def select(self, node_id: str) -> bool:
        for i, node in enumerate(self._flat):
            if node.id == node_id:
                self.cursor = i
                return True
        return False

    def depth(self, target: TreeNode) -> int:
        """Depth of `target` below the first listed level (0 for top-level rows)."""

        def search(node: TreeNode, level: int) -> int:
            if node is target:
                return level
            for child in node.children:
                found = search(child, level + 1)
                if found >= 0:
                    return found
            return -1

        found = search(self.root, 0)
        if found < 0:
            return 0
        return found if self.show_root else max(0, found - 1)

    # -- cursor ----------------------------------------------------------

    def move(self, delta: int) -> None:
        if not self._flat:
            return
        self.cursor = max(0, min(len(self._flat) - 1, self.cursor + delta))

    def home(self) -> None:
        if self._flat:
            self.cursor = 0

    def end(self) -> None:
        if self._flat:
            self.cursor = len(self._flat) - 1

    # -- expansion -------------------------------------------------------

    def expand(self) -> bool:
        node = self.selected()
        if node is None or not node.has_children() or node.expanded:
            return False
        node.expanded = True
        self.rebuild()
        return True

    def collapse(self) -> bool:
        node = self.selected()
        if node is None or not node.has_children() or not node.expanded:
            return False
        node.expanded = False
        self.rebuild()
        return True

    def toggle(self) -> bool:
        node = self.selected()
        if node is None or not node.has_children():
            return False
        node.expanded = not node.expanded
        self.rebuild()
        return True

    # -- viewport --------------------------------------------------------

    def ensure_visible(self, height: int) -> None:
        if height <= 0 or self.cursor < 0:
            self.scroll = 0
            return
        if self.cursor < self.scroll:
            self.scroll = self.cursor
        elif self.cursor >= self.scroll + height:
            self.scroll = self.cursor - height + 1
        self.scroll = max(0, min(self.scroll, max(0, len(self._flat) - height)))

    def handle_key(self, key: str, page: int = 10) -> bool:
        """Apply a navigation key. Returns True when the key was consumed."""
        if key in ("up", "k"):
            self.move(-1)
        elif key in ("down", "j"):
            self.move(1)
        elif key == "pageup":
            self.move(-page)
        elif key == "pagedown":
            self.move(page)
        elif key == "home":
            self.home()
        elif key == "end":
            self.end()
        elif key in ("right", "l"):
            self.expand()
        elif key in ("left", "h"):
            if not self.collapse():
                self._select_parent()
        elif key in ("enter", " "):
            self.toggle()
        else:
            return False
        return True

    def _select_parent(self) -> None:
        node = self.selected()
        if node is None:
            return
        for i in range(self.cursor - 1, -1, -1):
            if node in self._flat[i].children:
                self.cursor = i
                return

    def render(self, width: int, height: int) -> List[str]:
        self.ensure_visible(height)
        lines = []
        for node in self._flat[self.scroll:self.scroll + height]:
            marker = "  "
            if node.has_children():
                marker = "▾ " if node.expanded else "▸ "
            prefix = "> " if node is self.selected() else "  "
            text = prefix + "  " * self.depth(node) + marker + node.label
            lines.append(text[:width])
        return lines
