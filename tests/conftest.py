"""
Pytest configuration for the benchmark history store.

Provides fixtures for:
- Deterministic clocks and device identities
- Embedded backends (in-memory and JSON file) and stores built on them
- Settings isolation for CLI tests
- Postgres connectivity for integration tests
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, List, Optional

import pytest

from bench_history.config import Settings, get_settings
from bench_history.device import static_identity
from bench_history.errors import StorageFailure
from bench_history.infrastructure.local import JsonFileBackend, MemoryBackend
from bench_history.store import HistoryStore

DEVICE_MODEL = "iPhone16,1"
DEVICE_NAME = "Bench Phone"


class FakeClock:
    """Returns strictly increasing UTC timestamps, one second apart."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.current = start or datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
        self.calls = 0

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(seconds=1)
        self.calls += 1
        return value


class FlakyBackend(MemoryBackend):
    """
    Memory backend whose operations can be made to fail on demand.

    Set the names of operations to break in `fail_on`.
    """

    name = "flaky"

    def __init__(self) -> None:
        super().__init__()
        self.fail_on: set[str] = set()
        self.calls: List[str] = []
        self.closed = False

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise StorageFailure(operation, "injected failure")

    def insert(self, record) -> None:
        self._check("insert")
        super().insert(record)

    def fetch_all(self):
        self._check("fetch_all")
        return super().fetch_all()

    def delete_by_id(self, record_id) -> None:
        self._check("delete_by_id")
        super().delete_by_id(record_id)

    def delete_all(self) -> None:
        self._check("delete_all")
        super().delete_all()

    def flush(self) -> None:
        self._check("flush")
        super().flush()

    def rollback(self) -> None:
        self._check("rollback")
        super().rollback()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    return tmp_path / "history.json"


@pytest.fixture
def file_backend(history_path: Path) -> JsonFileBackend:
    return JsonFileBackend(history_path)


@pytest.fixture
def flaky_backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture
def store(memory_backend: MemoryBackend, clock: FakeClock) -> Generator[HistoryStore, None, None]:
    """
    Store on a fresh in-memory backend with a deterministic clock.
    """
    history_store = HistoryStore(
        memory_backend, resolver=static_identity(DEVICE_MODEL, DEVICE_NAME), clock=clock
    )
    try:
        yield history_store
    finally:
        history_store.close()


@pytest.fixture
def flaky_store(
    flaky_backend: FlakyBackend, clock: FakeClock
) -> Generator[HistoryStore, None, None]:
    history_store = HistoryStore(
        flaky_backend, resolver=static_identity(DEVICE_MODEL, DEVICE_NAME), clock=clock
    )
    try:
        yield history_store
    finally:
        history_store.close()


@pytest.fixture
def isolated_settings(monkeypatch, history_path: Path, tmp_path: Path) -> Generator[Settings, None, None]:
    """
    Point the cached settings at a temporary history file and export dir.
    """
    monkeypatch.setenv("HISTORY_BACKEND", "file")
    monkeypatch.setenv("HISTORY_PATH", str(history_path))
    monkeypatch.setenv("EXPORT_DIR", str(tmp_path / "exports"))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    try:
        yield get_settings()
    finally:
        get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture for Postgres integration tests.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        history_backend="postgres",
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "benchmark_history"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    import psycopg

    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False
