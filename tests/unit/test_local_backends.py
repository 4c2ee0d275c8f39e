from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

import pytest

from bench_history.domain.models import Record
from bench_history.errors import StorageFailure
from bench_history.infrastructure import PersistenceBackend, build_backend
from bench_history.infrastructure import local as local_module
from bench_history.infrastructure.local import JsonFileBackend, MemoryBackend
from bench_history.config import Settings

BASE_DATE = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def make_record(offset_seconds: int = 0, **overrides) -> Record:
    fields = dict(
        id=uuid4(),
        date=BASE_DATE + timedelta(seconds=offset_seconds),
        device_model="iPhone16,1",
        device_name="Bench Phone",
        cpu_score=100,
        gpu_score=200,
        memory_score=300,
        storage_score=400,
        total_score=1000,
        grade="A",
        test_type="full",
        test_duration=12.5,
        details="kept on disk",
    )
    fields.update(overrides)
    return Record(**fields)


@pytest.fixture(params=["memory", "file"])
def backend(request, tmp_path: Path):
    if request.param == "memory":
        return MemoryBackend()
    return JsonFileBackend(tmp_path / "history.json")


def test_backends_satisfy_protocol(backend):
    assert isinstance(backend, PersistenceBackend)


def test_fetch_all_is_newest_first(backend):
    old, new, middle = make_record(0), make_record(20), make_record(10)
    for record in (old, new, middle):
        backend.insert(record)
    backend.flush()

    assert backend.fetch_all() == [new, middle, old]


def test_fetch_all_sees_buffered_writes(backend):
    record = make_record()
    backend.insert(record)
    assert backend.fetch_all() == [record]


def test_insert_rejects_duplicate_id(backend):
    record = make_record()
    backend.insert(record)

    with pytest.raises(StorageFailure, match="duplicate"):
        backend.insert(make_record(id=record.id))
    assert backend.fetch_all() == [record]


def test_delete_missing_id_is_noop(backend):
    record = make_record()
    backend.insert(record)
    backend.flush()

    backend.delete_by_id(uuid4())
    backend.flush()

    assert backend.fetch_all() == [record]


def test_delete_all_removes_everything(backend):
    for offset in range(3):
        backend.insert(make_record(offset))
    backend.flush()

    backend.delete_all()
    backend.flush()

    assert backend.fetch_all() == []


def test_rollback_discards_unflushed_writes(backend):
    kept = make_record(0)
    backend.insert(kept)
    backend.flush()

    backend.insert(make_record(5))
    backend.delete_by_id(kept.id)
    backend.rollback()

    assert backend.fetch_all() == [kept]


def test_file_backend_is_durable_across_handles(history_path: Path):
    first = JsonFileBackend(history_path)
    record = make_record()
    first.insert(record)
    first.flush()

    reopened = JsonFileBackend(history_path)

    assert reopened.fetch_all() == [record]
    assert reopened.fetch_all()[0].details == "kept on disk"


def test_file_backend_unflushed_writes_are_not_durable(history_path: Path):
    backend = JsonFileBackend(history_path)
    backend.insert(make_record())

    assert JsonFileBackend(history_path).fetch_all() == []


def test_file_backend_missing_file_is_empty_history(tmp_path: Path):
    backend = JsonFileBackend(tmp_path / "nested" / "history.json")
    assert backend.fetch_all() == []

    backend.insert(make_record())
    backend.flush()
    assert (tmp_path / "nested" / "history.json").exists()


def test_file_backend_writes_document_aliases(history_path: Path):
    backend = JsonFileBackend(history_path)
    backend.insert(make_record())
    backend.flush()

    payload = json.loads(history_path.read_text(encoding="utf-8"))
    assert payload[0]["cpuScore"] == 100
    assert payload[0]["details"] == "kept on disk"


@pytest.mark.parametrize("content", ["{not json", '{"a": 1}', '[{"id": "x"}]'])
def test_file_backend_corrupt_file_raises_storage_failure(history_path: Path, content: str):
    history_path.write_text(content, encoding="utf-8")

    with pytest.raises(StorageFailure) as excinfo:
        JsonFileBackend(history_path)
    assert excinfo.value.operation == "open"


def test_file_backend_failed_flush_keeps_previous_file(history_path: Path, monkeypatch):
    backend = JsonFileBackend(history_path)
    kept = make_record(0)
    backend.insert(kept)
    backend.flush()
    before = history_path.read_text(encoding="utf-8")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(local_module.os, "replace", broken_replace)
    backend.insert(make_record(5))

    with pytest.raises(StorageFailure) as excinfo:
        backend.flush()

    assert excinfo.value.operation == "flush"
    assert history_path.read_text(encoding="utf-8") == before
    assert [p.name for p in history_path.parent.iterdir()] == [history_path.name]


def test_flush_without_changes_does_not_write(history_path: Path):
    backend = JsonFileBackend(history_path)
    backend.flush()
    assert not history_path.exists()


def test_build_backend_selects_configured_backend(tmp_path: Path):
    file_settings = Settings(history_backend="file", history_path=str(tmp_path / "h.json"))
    memory_settings = Settings(history_backend="memory")

    file_backend = build_backend(file_settings)
    assert isinstance(file_backend, JsonFileBackend)
    assert file_backend.path == tmp_path / "h.json"
    assert isinstance(build_backend(memory_settings), MemoryBackend)
