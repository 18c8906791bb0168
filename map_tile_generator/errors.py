"""
Error types raised while building a tile pyramid.

Anything deriving from MapTileError is fatal for the run; the CLI turns it
into a one-line message and exit status 1.
"""

from typing import Optional


class MapTileError(Exception):
    """Base class for map tile generation failures."""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error

    def __str__(self) -> str:
        message = super().__str__()
        if self.original_error is not None:
            return f"{message} ({self.original_error})"
        return message


class ConfigurationError(MapTileError):
    """Missing source directory, no usable source files, bad options."""


class PlannerError(MapTileError):
    """The canvas geometry cannot be computed or is inconsistent."""


class TileIOError(MapTileError):
    """A source cell or an output tile could not be read or written."""
