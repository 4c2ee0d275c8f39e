"""
History store: the single write path for benchmark results.

Owns the backend handle and the in-memory cache of records. Every mutating
operation runs "mutate, flush, reload" as one unit under the store lock, and
the cache is always rebuilt from the backend (never patched by hand), so
after any operation completes, successfully or not, the cache mirrors what
the backend actually holds.

Usage:
    from bench_history.infrastructure import JsonFileBackend
    from bench_history.store import HistoryStore

    with HistoryStore(JsonFileBackend("history.json")) as store:
        store.save_result(900, 800, 700, 600, 3000, "A", "full", 42.0)
        print(store.best_scores(), store.average_scores())

Background dispatch:
    future = store.submit("save_result", 900, 800, 700, 600, 3000, "A", "full", 42.0)
    record = future.result()
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union
from uuid import UUID, uuid4

from bench_history.config import Settings
from bench_history.device import DeviceIdentity, DeviceIdentityResolver, default_device_identity
from bench_history.domain.document import encode_document, parse_document, render_csv, validate_entries
from bench_history.domain.models import (
    AverageScores,
    BestScores,
    Record,
    compute_average_scores,
    compute_best_scores,
    newest_first,
)
from bench_history.errors import HistoryError, MalformedDocument, StorageFailure
from bench_history.infrastructure import PersistenceBackend, build_backend
from bench_history.observable import SnapshotFeed
from bench_history.utils.logging import get_logger

log = get_logger(__name__)

Snapshot = Tuple[Record, ...]

_SUBMITTABLE = frozenset(
    {
        "save_result",
        "reload",
        "delete_result",
        "clear_history",
        "import_from_document",
        "import_from_file",
    }
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HistoryStore:
    """
    Observable, backend-derived cache of benchmark records.

    Parameters
    ----------
    backend : PersistenceBackend
        Storage handle owned by this store from now on.
    resolver : callable
        Returns ``(device_model, device_name)``; called once per saved result.
    clock : callable | None
        Source of record timestamps (aware datetimes). Defaults to UTC now.
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        resolver: DeviceIdentityResolver = default_device_identity,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._backend = backend
        self._resolver = resolver
        self._clock = clock or _utc_now
        self._lock = threading.RLock()
        self._feed: SnapshotFeed[Snapshot] = SnapshotFeed(())
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        resolver: DeviceIdentityResolver = default_device_identity,
        load: bool = True,
    ) -> "HistoryStore":
        """Build a store on the configured backend, optionally loading the cache."""
        store = cls(build_backend(settings), resolver=resolver)
        if load:
            store.reload()
        return store

    # ------------------------------------------------------------------ reads

    @property
    def history(self) -> Snapshot:
        """Current cache snapshot, newest first."""
        return self._feed.current

    def subscribe(
        self, callback: Callable[[Snapshot], None], replay: bool = False
    ) -> Callable[[], None]:
        """
        Receive every new cache snapshot; returns an unsubscribe function.

        Callbacks run on the publishing thread while the store lock is held.
        They must not block on store work (e.g. `submit(...).result()`).
        """
        return self._feed.subscribe(callback, replay=replay)

    def best_scores(self) -> BestScores:
        return compute_best_scores(self.history)

    def average_scores(self) -> AverageScores:
        return compute_average_scores(self.history)

    def filter_history(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        """
        Records within ``[since, until]`` (either bound optional), newest first.

        `limit` keeps only the newest N matching records.
        """
        selected = [
            record
            for record in self.history
            if (since is None or record.date >= since) and (until is None or record.date <= until)
        ]
        if limit is not None:
            selected = selected[: max(limit, 0)]
        return selected

    # -------------------------------------------------------------- mutations

    def reload(self) -> Snapshot:
        """
        Replace the cache with the backend's current contents.

        Raises
        ------
        StorageFailure
            If the backend cannot be read; the previous snapshot is kept.
        """
        with self._lock:
            snapshot: Snapshot = tuple(newest_first(self._backend.fetch_all()))
            self._feed.publish(snapshot)
        log.debug("[HISTORY] Cache reloaded", extra={"records": len(snapshot)})
        return snapshot

    def save_result(
        self,
        cpu_score: int,
        gpu_score: int,
        memory_score: int,
        storage_score: int,
        total_score: int,
        grade: str,
        test_type: str,
        test_duration: float,
        details: Optional[str] = None,
    ) -> Record:
        """
        Persist one completed benchmark run and refresh the cache.

        `total_score` is stored exactly as given.

        Raises
        ------
        pydantic.ValidationError
            If a score or the duration is negative; nothing is written.
        StorageFailure
            If the record could not be made durable. The cache is reloaded
            before the error propagates, so it never shows the record.
        """
        identity = DeviceIdentity(*self._resolver())
        record = Record(
            id=uuid4(),
            date=self._clock(),
            device_model=identity.model,
            device_name=identity.name,
            cpu_score=cpu_score,
            gpu_score=gpu_score,
            memory_score=memory_score,
            storage_score=storage_score,
            total_score=total_score,
            grade=grade,
            test_type=test_type,
            test_duration=test_duration,
            details=details,
        )
        self._write("save_result", lambda: self._backend.insert(record))
        log.info(
            "[HISTORY] Result saved",
            extra={
                "record_id": str(record.id),
                "test_type": test_type,
                "total_score": total_score,
                "grade": grade,
            },
        )
        return record

    def delete_result(self, record_id: Union[UUID, str]) -> None:
        """Delete one record; an unknown id leaves the history unchanged."""
        key = record_id if isinstance(record_id, UUID) else UUID(str(record_id))
        self._write("delete_result", lambda: self._backend.delete_by_id(key))
        log.info("[HISTORY] Result deleted", extra={"record_id": str(key)})

    def clear_history(self) -> None:
        """Delete every record."""
        self._write("clear_history", self._backend.delete_all)
        log.info("[HISTORY] History cleared")

    def import_from_document(self, document: Union[str, bytes]) -> bool:
        """
        Insert every well-formed entry of an export document.

        Returns False, without touching the history, when the document is not
        a JSON list. Otherwise returns True, even if no entry was valid.
        Entries that fail validation, or that the backend rejects (e.g. an id
        already present), are skipped and logged.

        Raises
        ------
        StorageFailure
            If the imported entries could not be made durable.
        """
        try:
            items = parse_document(document)
        except MalformedDocument as exc:
            log.warning("[HISTORY] Import rejected", extra={"reason": str(exc)})
            return False

        records, skipped = validate_entries(items)
        rejected = 0

        def insert_all() -> None:
            nonlocal rejected
            for record in records:
                try:
                    self._backend.insert(record)
                except StorageFailure as exc:
                    rejected += 1
                    log.warning(
                        "[HISTORY] Import entry rejected by backend",
                        extra={"record_id": str(record.id), "reason": str(exc)},
                    )

        self._write("import_from_document", insert_all)
        log.info(
            "[HISTORY] Import completed",
            extra={
                "entries": len(items),
                "imported": len(records) - rejected,
                "skipped": skipped + rejected,
            },
        )
        return True

    def import_from_file(self, path: Union[Path, str]) -> bool:
        """Read a document from disk and import it."""
        return self.import_from_document(Path(path).read_text(encoding="utf-8"))

    # ---------------------------------------------------------------- exports

    def export_to_document(self) -> Optional[str]:
        """
        Serialize the whole cache as the portable JSON document.

        Returns None if serialization fails; a partial document is never
        returned.
        """
        records = self.history
        try:
            return encode_document(records)
        except (TypeError, ValueError, OverflowError):
            log.exception("[HISTORY] Export failed", extra={"records": len(records)})
            return None

    def export_to_csv(self, include_details: bool = False) -> str:
        return render_csv(self.history, include_details=include_details)

    def write_export(
        self,
        directory: Union[Path, str],
        fmt: str = "json",
        include_details: bool = False,
    ) -> Path:
        """
        Write the export to ``latest.<fmt>`` and a timestamped archive copy.

        An existing archive is never overwritten: a second export within the
        same second gets a numeric suffix. Returns the archive path.
        """
        if fmt == "json":
            content = self.export_to_document()
            if content is None:
                raise HistoryError("history could not be serialized")
        elif fmt == "csv":
            content = self.export_to_csv(include_details=include_details)
        else:
            raise ValueError(f"Unknown export format '{fmt}'. Available: json, csv")

        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        timestamp = _utc_now().strftime("%Y%m%dT%H%M%SZ")
        latest_path = target_dir / f"latest.{fmt}"
        archive_path = target_dir / f"history-{timestamp}.{fmt}"
        counter = 1
        while archive_path.exists():
            archive_path = target_dir / f"history-{timestamp}-{counter}.{fmt}"
            counter += 1

        for path in (latest_path, archive_path):
            with path.open("w", encoding="utf-8", newline="") as f:
                f.write(content)

        log.info(
            "[HISTORY] Export written",
            extra={"latest": str(latest_path), "archive": str(archive_path)},
        )
        return archive_path

    # ------------------------------------------------------ background work

    def submit(self, operation: str, *args: Any, **kwargs: Any) -> "Future[Any]":
        """
        Run a mutating operation (or `reload`) on the store's worker thread.

        Submitted and direct calls share the store lock, so they never
        interleave. The cache update reaches subscribers through the feed.
        """
        if operation not in _SUBMITTABLE:
            raise ValueError(
                f"Unknown operation '{operation}'. Available: {', '.join(sorted(_SUBMITTABLE))}"
            )
        with self._lock:
            if self._closed:
                raise RuntimeError("history store is closed")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="history-store"
                )
            executor = self._executor
        return executor.submit(getattr(self, operation), *args, **kwargs)

    def close(self) -> None:
        """Drain background work and release the backend handle."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=True)
        with self._lock:
            self._backend.close()

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------------------------------------------- internals

    def _write(self, operation: str, mutate: Callable[[], None]) -> None:
        """
        Run ``mutate`` then flush as one unit, then reload the cache.

        On StorageFailure the buffered writes are rolled back and the cache is
        reloaded before the failure propagates.
        """
        with self._lock:
            try:
                mutate()
                self._backend.flush()
            except StorageFailure:
                log.exception(
                    f"[HISTORY] {operation} failed",
                    extra={"operation": operation, "backend": self._backend.name},
                )
                self._compensate(operation)
                raise
            self.reload()

    def _compensate(self, operation: str) -> None:
        try:
            self._backend.rollback()
        except StorageFailure:
            log.exception(
                "[HISTORY] Rollback failed", extra={"operation": operation}
            )
        try:
            self.reload()
        except StorageFailure:
            log.exception(
                "[HISTORY] Reload after failure failed; cache may be stale",
                extra={"operation": operation},
            )


__all__ = ["HistoryStore", "Snapshot"]
