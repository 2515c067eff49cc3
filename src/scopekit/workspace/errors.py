"""Errors raised by the workspace model."""

from __future__ import annotations


class WorkspaceError(Exception):
    """A workspace lookup failed (missing file, missing directory, bad module)."""

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        super().__init__(message)


class PatternSyntaxError(WorkspaceError):
    """Pattern text could not be parsed."""

    def __init__(self, detail: str, column: int, text: str):
        self.detail = detail
        self.column = column
        self.text = text
        super().__init__(f"Invalid scope pattern: {detail} at column {column}.")


class ManifestError(WorkspaceError):
    """Workspace manifest is missing, unreadable or has an invalid schema."""
    pass
