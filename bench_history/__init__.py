"""
Benchmark History - durable store for benchmark run results.

This package records completed benchmark runs, derives aggregate statistics,
and exports/imports the whole history as a portable JSON document:

- Immutable result records with camelCase document aliases
- Pluggable persistence backends (JSON file, Postgres, in-memory)
- A serialized, observable history store that always mirrors its backend
- Best-ever and average scores per category
- JSON and CSV export, tolerant JSON import
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from bench_history.config import Settings, get_settings
from bench_history.device import DeviceIdentity, default_device_identity
from bench_history.domain.models import AverageScores, BestScores, Record
from bench_history.errors import HistoryError, MalformedDocument, StorageFailure
from bench_history.infrastructure import (
    JsonFileBackend,
    MemoryBackend,
    PersistenceBackend,
    build_backend,
)
from bench_history.observable import SnapshotFeed
from bench_history.store import HistoryStore
from bench_history.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Record",
    "BestScores",
    "AverageScores",
    "DeviceIdentity",
    "default_device_identity",
    # Errors
    "HistoryError",
    "StorageFailure",
    "MalformedDocument",
    # Persistence
    "PersistenceBackend",
    "JsonFileBackend",
    "MemoryBackend",
    "build_backend",
    # Store
    "HistoryStore",
    "SnapshotFeed",
    # Logging
    "configure_logging",
    "get_logger",
]
