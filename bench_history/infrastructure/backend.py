"""
Persistence backend contract for the benchmark history store.

Concrete backends (JSON file, Postgres, in-memory) implement the
PersistenceBackend protocol. Writes are buffered until `flush`; `rollback`
discards whatever was buffered since the last successful flush. The history
store is the only component expected to hold a live backend handle.
"""

from __future__ import annotations

import abc
from typing import List, Protocol, runtime_checkable
from uuid import UUID

from bench_history.domain.models import Record


@runtime_checkable
class PersistenceBackend(Protocol):
    """
    Durable storage for records, keyed by record id.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier used in logs.
    """

    name: str

    def insert(self, record: Record) -> None:
        """
        Append a new record.

        Raises
        ------
        StorageFailure
            On I/O or constraint error (including a duplicate id).
        """
        ...

    def fetch_all(self) -> List[Record]:
        """Return every record, newest first."""
        ...

    def delete_by_id(self, record_id: UUID) -> None:
        """Remove zero or one record; a missing id is a no-op."""
        ...

    def delete_all(self) -> None:
        """Remove every record, all or nothing."""
        ...

    def flush(self) -> None:
        """Durably commit buffered writes."""
        ...

    def rollback(self) -> None:
        """Discard writes buffered since the last successful flush."""
        ...

    def close(self) -> None:
        """Release the underlying handle."""
        ...


class AbstractBackend(abc.ABC):
    """
    Optional ABC helper for class-based backends.

    Subclasses set `name` and implement the storage operations. `close` and
    `rollback` default to no-ops for backends without a session.
    """

    name: str

    @abc.abstractmethod
    def insert(self, record: Record) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def fetch_all(self) -> List[Record]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def delete_by_id(self, record_id: UUID) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def delete_all(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def flush(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def rollback(self) -> None:
        return None

    def close(self) -> None:
        return None


__all__ = ["PersistenceBackend", "AbstractBackend"]
