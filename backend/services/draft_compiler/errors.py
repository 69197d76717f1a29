from __future__ import annotations


class DraftCompilerError(Exception):
    """Internal failure of the draft compiler (never caused by user input)."""


class SchemaError(DraftCompilerError):
    """Rejected AI candidate. ``path`` points at the offending field."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Schema inválido: {path} {detail}")


class LayoutInvariantError(DraftCompilerError):
    pass
