"""Terminal UI package: panes, modals, layout helpers and the curses runner."""

__all__ = [
    "connection_dialog",
    "explorer",
    "layout",
    "modal",
    "panes",
    "password_prompt",
    "results_grid",
    "schema_viewer",
    "status_bar",
    "terminal",
]
