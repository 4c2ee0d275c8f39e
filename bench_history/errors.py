"""
Exception hierarchy for the benchmark history store.

Backends translate their native failures (OSError, JSON decoding errors,
psycopg errors) into `StorageFailure` so the store only has to reason about
one failure type at the persistence boundary.
"""

from __future__ import annotations

from typing import Optional


class HistoryError(Exception):
    """Base class for all benchmark history errors."""


class StorageFailure(HistoryError):
    """
    The backend could not complete an operation durably.

    Attributes
    ----------
    operation : str
        Backend operation that failed (e.g. ``insert``, ``flush``).
    """

    def __init__(self, operation: str, message: Optional[str] = None) -> None:
        self.operation = operation
        detail = message or "storage operation failed"
        super().__init__(f"{operation}: {detail}")


class MalformedDocument(HistoryError):
    """The import payload is not a parseable JSON list of records."""


__all__ = ["HistoryError", "StorageFailure", "MalformedDocument"]
