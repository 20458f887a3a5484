"""Database package: drivers, sessions, statement execution and introspection."""

__all__ = [
    "connection",
    "drivers",
    "executor",
    "metadata",
]
