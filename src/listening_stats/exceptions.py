# listening_stats/exceptions.py

"""Errors raised while loading, enriching and persisting listening history."""

from __future__ import annotations


class ListeningStatsError(Exception):
    """Base exception for listening_stats."""


class FormatError(ListeningStatsError):
    """Raised when CSV input is malformed (missing columns, bad rows, bad counts)."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.message = message
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class EmptyInputError(ListeningStatsError):
    """Raised when a CSV file has a valid header but no data rows."""


class PersistenceError(ListeningStatsError):
    """Raised when the metadata overlay could not be written to storage."""
