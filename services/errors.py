"""Error taxonomy of the roster sync engine."""
from __future__ import annotations

from typing import Optional


class RosterError(RuntimeError):
    """Base class for roster engine errors."""


class LoadError(RosterError):
    """A cache slice could not be read."""

    def __init__(self, slice_name: str, message: str) -> None:
        super().__init__(f"{slice_name}: {message}")
        self.slice_name = slice_name
        self.message = message


class SchemaDriftError(RosterError):
    """The remote resource lacks a requested column."""


class MissingResourceError(RosterError):
    """The remote resource does not exist in this deployment."""


class FlushError(RosterError):
    """A batched write failed; the session is paused."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class PausedError(RosterError):
    """A mutation was refused because saving is paused."""
