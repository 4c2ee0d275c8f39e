"""
Infrastructure package for the benchmark history store.

Centralizes persistence concerns (backend contract, embedded and Postgres
backends, connection factories). Keep this layer focused on I/O and resource
management, decoupled from the store's cache and aggregate logic.
"""

from __future__ import annotations

from typing import Optional

from bench_history.config import Settings, get_settings
from bench_history.infrastructure.backend import AbstractBackend, PersistenceBackend
from bench_history.infrastructure.local import JsonFileBackend, MemoryBackend


def build_backend(settings: Optional[Settings] = None) -> PersistenceBackend:
    """
    Open the backend selected by `HISTORY_BACKEND`.

    The Postgres backend is imported lazily so the embedded backends work
    without a reachable database.
    """
    settings = settings or get_settings()
    if settings.history_backend == "memory":
        return MemoryBackend()
    if settings.history_backend == "postgres":
        from bench_history.infrastructure.db_factory import build_dsn
        from bench_history.infrastructure.postgres import PostgresBackend

        return PostgresBackend(dsn=build_dsn(settings))
    return JsonFileBackend(settings.history_path)


__all__ = [
    "AbstractBackend",
    "PersistenceBackend",
    "JsonFileBackend",
    "MemoryBackend",
    "build_backend",
]
