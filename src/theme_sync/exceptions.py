"""Exceptions raised by the theme synchronization engine."""

from typing import Optional, Sequence


class ThemeSyncError(Exception):
    """Base exception for theme sync operations."""
    pass


class TokenTreeError(ThemeSyncError, ValueError):
    """A token tree contains a key or leaf the collector cannot flatten."""

    def __init__(self, message: str, path: Sequence[str] = ()):
        self.path = tuple(path)
        location = ".".join(self.path) if self.path else "<root>"
        super().__init__(f"{message} (at {location})")


class StylesheetParseError(ThemeSyncError, ValueError):
    """A stylesheet could not be parsed into a document."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} (line {line}, column {column})"
        super().__init__(message)
