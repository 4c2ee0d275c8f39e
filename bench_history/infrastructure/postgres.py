"""
Postgres persistence backend.

Every mutation runs inside the connection's open transaction, guarded by a
savepoint so one rejected statement (e.g. a duplicate id) does not poison the
rest of the batch. `flush` commits and `rollback` rolls back. psycopg errors
are translated into StorageFailure at this boundary.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional
from uuid import UUID

import psycopg
from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from bench_history.domain.models import Record
from bench_history.errors import StorageFailure
from bench_history.infrastructure.backend import AbstractBackend
from bench_history.infrastructure.db_factory import get_sync_connection
from bench_history.utils.logging import get_logger

log = get_logger(__name__)

TABLE = "benchmark_results"

_COLUMNS = (
    "id",
    "date",
    "device_model",
    "device_name",
    "cpu_score",
    "gpu_score",
    "memory_score",
    "storage_score",
    "total_score",
    "grade",
    "test_type",
    "test_duration",
    "details",
)

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS public.{TABLE} (
    seq BIGSERIAL,
    id UUID PRIMARY KEY,
    date TIMESTAMPTZ NOT NULL,
    device_model TEXT NOT NULL,
    device_name TEXT NOT NULL,
    cpu_score INTEGER NOT NULL CHECK (cpu_score >= 0),
    gpu_score INTEGER NOT NULL CHECK (gpu_score >= 0),
    memory_score INTEGER NOT NULL CHECK (memory_score >= 0),
    storage_score INTEGER NOT NULL CHECK (storage_score >= 0),
    total_score INTEGER NOT NULL CHECK (total_score >= 0),
    grade TEXT NOT NULL,
    test_type TEXT NOT NULL,
    test_duration DOUBLE PRECISION NOT NULL CHECK (test_duration >= 0),
    details TEXT
);
CREATE INDEX IF NOT EXISTS {TABLE}_date_idx ON public.{TABLE} (date DESC);
"""

INSERT_SQL = (
    f"INSERT INTO public.{TABLE} ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join(['%s'] * len(_COLUMNS))});"
)
SELECT_SQL = f"SELECT {', '.join(_COLUMNS)} FROM public.{TABLE} ORDER BY date DESC, seq ASC;"
DELETE_ONE_SQL = f"DELETE FROM public.{TABLE} WHERE id = %s;"
DELETE_ALL_SQL = f"DELETE FROM public.{TABLE};"


class PostgresBackend(AbstractBackend):
    """
    Store records in a Postgres table through a single psycopg connection.

    Parameters
    ----------
    dsn : str | None
        Connection string used when no pool or factory is given.
    pool : ConnectionPool | None
        Borrow the connection from this pool; it is returned on `close`.
    connection_factory : callable | None
        Override how the dedicated connection is opened (used by tests).
    ensure_schema : bool
        Create the table and index on first use.
    """

    name: str = "postgres"

    def __init__(
        self,
        dsn: Optional[str] = None,
        pool: Optional[ConnectionPool] = None,
        connection_factory: Optional[Callable[[], Connection]] = None,
        ensure_schema: bool = True,
    ) -> None:
        self._pool = pool
        try:
            if pool is not None:
                self._conn = pool.getconn()
            elif connection_factory is not None:
                self._conn = connection_factory()
            else:
                self._conn = get_sync_connection(dsn)
        except psycopg.Error as exc:
            raise StorageFailure("connect", str(exc)) from exc

        if ensure_schema:
            try:
                self._run("ensure_schema", SCHEMA_SQL)
                self.flush()
            except StorageFailure:
                self.close()
                raise

    def _run(self, operation: str, sql: str, params: Optional[tuple[Any, ...]] = None) -> None:
        """Execute one statement inside a savepoint, translating failures."""
        try:
            with self._conn.cursor() as cur:
                cur.execute("SAVEPOINT bench_history_op;")
                try:
                    cur.execute(sql, params)
                except psycopg.Error:
                    cur.execute("ROLLBACK TO SAVEPOINT bench_history_op;")
                    raise
                cur.execute("RELEASE SAVEPOINT bench_history_op;")
        except psycopg.Error as exc:
            log.warning(
                "Postgres statement failed",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise StorageFailure(operation, str(exc)) from exc

    def insert(self, record: Record) -> None:
        params = (
            record.id,
            record.date,
            record.device_model,
            record.device_name,
            record.cpu_score,
            record.gpu_score,
            record.memory_score,
            record.storage_score,
            record.total_score,
            record.grade,
            record.test_type,
            record.test_duration,
            record.details,
        )
        self._run("insert", INSERT_SQL, params)

    def fetch_all(self) -> List[Record]:
        try:
            with self._conn.cursor(row_factory=dict_row) as cur:
                cur.execute(SELECT_SQL)
                rows = cur.fetchall()
        except psycopg.Error as exc:
            raise StorageFailure("fetch_all", str(exc)) from exc
        return [Record.model_validate(row) for row in rows]

    def delete_by_id(self, record_id: UUID) -> None:
        self._run("delete_by_id", DELETE_ONE_SQL, (record_id,))

    def delete_all(self) -> None:
        self._run("delete_all", DELETE_ALL_SQL)

    def flush(self) -> None:
        try:
            self._conn.commit()
        except psycopg.Error as exc:
            raise StorageFailure("flush", str(exc)) from exc

    def rollback(self) -> None:
        try:
            self._conn.rollback()
        except psycopg.Error as exc:
            raise StorageFailure("rollback", str(exc)) from exc

    def close(self) -> None:
        if self._pool is not None:
            self._pool.putconn(self._conn)
        else:
            self._conn.close()


__all__ = ["PostgresBackend", "SCHEMA_SQL", "TABLE"]
