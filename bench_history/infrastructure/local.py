"""
Embedded backends: a durable JSON file and a non-durable in-memory store.

Both keep a durable view and a working view of the records. Mutations touch
only the working view; `flush` promotes it to durable (writing it to disk for
the file backend) and `rollback` throws it away. `fetch_all` reads the
working view so a handle always sees its own writes.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List
from uuid import UUID

from bench_history.domain.models import Record, newest_first
from bench_history.errors import StorageFailure
from bench_history.infrastructure.backend import AbstractBackend
from bench_history.utils.logging import get_logger

log = get_logger(__name__)


class BufferedBackend(AbstractBackend):
    """
    Shared working/durable bookkeeping for the embedded backends.

    Subclasses implement `_commit` to make the working view durable.
    """

    name: str = "buffered"

    def __init__(self) -> None:
        self._durable: Dict[UUID, Record] = {}
        self._working: Dict[UUID, Record] = {}
        self._dirty = False

    def insert(self, record: Record) -> None:
        if record.id in self._working:
            raise StorageFailure("insert", f"duplicate record id {record.id}")
        self._working[record.id] = record
        self._dirty = True

    def fetch_all(self) -> List[Record]:
        return newest_first(self._working.values())

    def delete_by_id(self, record_id: UUID) -> None:
        if self._working.pop(record_id, None) is not None:
            self._dirty = True

    def delete_all(self) -> None:
        if self._working:
            self._working = {}
            self._dirty = True

    def flush(self) -> None:
        if not self._dirty:
            return
        self._commit(list(self._working.values()))
        self._durable = dict(self._working)
        self._dirty = False

    def rollback(self) -> None:
        self._working = dict(self._durable)
        self._dirty = False

    def _commit(self, records: List[Record]) -> None:  # pragma: no cover - interface only
        raise NotImplementedError


class MemoryBackend(BufferedBackend):
    """In-process backend; flushed data lives as long as the handle."""

    name: str = "memory"

    def _commit(self, records: List[Record]) -> None:
        return None


class JsonFileBackend(BufferedBackend):
    """
    Store the full history as one JSON file.

    `flush` writes a temporary file next to the target and atomically
    replaces it, so readers and restarted processes observe either the
    previous or the new contents, never a partial file.

    Parameters
    ----------
    path : Path | str
        Location of the history file. A missing file is an empty history.
    """

    name: str = "file"

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)
        self._durable = self._load()
        self._working = dict(self._durable)

    def _load(self) -> Dict[UUID, Record]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
            records = [Record.model_validate(item) for item in payload]
        except (OSError, ValueError, TypeError) as exc:
            # ValidationError subclasses ValueError
            raise StorageFailure("open", f"cannot read history file {self.path}: {exc}") from exc

        log.debug("History file loaded", extra={"path": str(self.path), "records": len(records)})
        return {record.id: record for record in records}

    def _commit(self, records: List[Record]) -> None:
        payload = [record.model_dump(mode="json", by_alias=True) for record in records]
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageFailure("flush", f"cannot write history file {self.path}: {exc}") from exc

        log.debug("History file written", extra={"path": str(self.path), "records": len(records)})


__all__ = ["BufferedBackend", "MemoryBackend", "JsonFileBackend"]
