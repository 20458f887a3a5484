from typing import List, Optional, Sequence

from db.drivers import Schema
from models.tree import NodePayload, PayloadKind, Tree, TreeNode


def schema_node_id(schema: str) -> str:
    return f"schema:{schema}"


def table_node_id(schema: str, table: str) -> str:
    return f"table:{schema}.{table}"


class SchemaBrowser:
    """Schema pane: schemas and their tables in a Tree with a hidden root.

    While the first load is pending a "Loading..." placeholder is shown. A failed
    refresh keeps whatever was shown before.
    """

    def __init__(self):
        self.tree = Tree(TreeNode("root", "root", expanded=True), show_root=False)
        self.loading = True
        self.error: Optional[str] = None

    def set_loading(self) -> None:
        self.loading = True
        self.error = None

    def set_schemas(self, schemas: Sequence[Schema]) -> None:
        """Replace the tree content, keeping expanded schemas and the selection."""
        previously_expanded = {n.id for n in self.tree.root.children if n.expanded}
        selected = self.tree.selected()
        selected_id = selected.id if selected else None

        root = TreeNode("root", "root", expanded=True)
        for schema in schemas:
            sid = schema_node_id(schema.name)
            node = TreeNode(
                sid,
                schema.name,
                expanded=sid in previously_expanded,
                payload=NodePayload.for_schema(schema.name),
            )
            for table in schema.tables:
                node.children.append(TreeNode(
                    table_node_id(schema.name, table.name),
                    table.name,
                    payload=NodePayload.for_table(schema.name, table.name),
                ))
            root.children.append(node)

        self.tree.set_root(root)
        if selected_id:
            self.tree.select(selected_id)
        self.loading = False
        self.error = None

    def set_load_error(self, message: str) -> None:
        self.loading = False
        self.error = message

    def selected_table(self) -> Optional[NodePayload]:
        node = self.tree.selected()
        if node is not None and node.payload.kind is PayloadKind.TABLE:
            return node.payload
        return None

    def handle_key(self, key: str) -> bool:
        return self.tree.handle_key(key)

    def render(self, width: int, height: int, focused: bool = False) -> List[str]:
        if self.loading and not len(self.tree):
            return ["Loading..."[:width]]
        lines: List[str] = []
        if self.error:
            lines.append(f"! {self.error}"[:width])
        if not len(self.tree):
            lines.append("(no schemas)"[:width])
            return lines
        lines.extend(self.tree.render(width, max(0, height - len(lines))))
        return lines
