"""
Integration tests for the Postgres history backend.

These tests run against a real PostgreSQL instance and verify that:
1. Saved results survive reopening the backend
2. A duplicate import is rejected without losing the rest of the batch
3. A failed flush leaves nothing behind

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os

import psycopg
import pytest

from bench_history.device import static_identity
from bench_history.errors import StorageFailure
from bench_history.infrastructure.db_factory import create_sync_pool
from bench_history.infrastructure.postgres import TABLE, PostgresBackend
from bench_history.store import HistoryStore

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)

RESOLVER = static_identity("iPhone16,1", "Integration Phone")


@pytest.fixture
def clean_table(test_dsn, db_connection_available):
    if not db_connection_available:
        pytest.skip("Postgres is not reachable")
    PostgresBackend(dsn=test_dsn).close()
    with psycopg.connect(test_dsn) as conn:
        conn.execute(f"TRUNCATE public.{TABLE};")
    yield test_dsn


def save(store: HistoryStore, cpu: int):
    return store.save_result(cpu, 2, 3, 4, cpu + 9, "B", "quick", 3.5, details="pg")


class TestPostgresHistory:
    def test_saved_results_are_durable(self, clean_table):
        with HistoryStore(PostgresBackend(dsn=clean_table), resolver=RESOLVER) as store:
            first = save(store, 10)
            second = save(store, 20)

        with HistoryStore(PostgresBackend(dsn=clean_table), resolver=RESOLVER) as reopened:
            reopened.reload()
            assert [r.id for r in reopened.history] == [second.id, first.id]
            assert reopened.history[0].details == "pg"
            assert reopened.best_scores().cpu == 20

    def test_duplicate_import_keeps_other_entries(self, clean_table):
        with HistoryStore(PostgresBackend(dsn=clean_table), resolver=RESOLVER) as store:
            save(store, 10)
            document = store.export_to_document()
            store.delete_result(store.history[0].id)
            save(store, 30)
            existing = store.history[0]

            assert store.import_from_document(document) is True
            assert store.import_from_document(document) is True

            assert len(store.history) == 2
            assert existing in store.history

    def test_failed_flush_discards_buffered_insert(self, clean_table, monkeypatch):
        backend = PostgresBackend(dsn=clean_table)
        with HistoryStore(backend, resolver=RESOLVER) as store:

            def broken_flush():
                raise StorageFailure("flush", "injected")

            monkeypatch.setattr(backend, "flush", broken_flush)
            with pytest.raises(StorageFailure):
                save(store, 40)

            assert store.history == ()

    def test_pooled_backend_returns_connection(self, clean_table):
        pool = create_sync_pool(clean_table, min_size=1, max_size=2)
        try:
            with HistoryStore(PostgresBackend(pool=pool), resolver=RESOLVER) as store:
                save(store, 5)
            assert pool.get_stats()["pool_available"] >= 1
        finally:
            pool.close()
