"""
Database connection factory utilities for the Postgres backend.

Composes the DSN from settings and opens connections or pools. Connection
acquisition retries transient failures using tenacity.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from bench_history.config import Settings, get_settings


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Parameters
    ----------
    dsn : str | None
        Connection string; defaults to the one built from settings.

    Returns
    -------
    Connection
        A new psycopg connection instance (autocommit disabled).

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def create_sync_pool(
    dsn: Optional[str] = None, min_size: Optional[int] = None, max_size: Optional[int] = None
) -> ConnectionPool:
    """
    Create a synchronous connection pool owned by the caller.

    Parameters
    ----------
    dsn : str | None
        Connection string; defaults to the one built from settings.
    min_size : int | None
        Minimum number of idle connections to keep.
    max_size : int | None
        Maximum total connections in the pool.

    Returns
    -------
    ConnectionPool
        An opened pool. The caller is responsible for closing it.
    """
    settings = get_settings()
    return ConnectionPool(
        conninfo=dsn or build_dsn(settings),
        min_size=min_size or settings.db_pool_min_size,
        max_size=max_size or settings.db_pool_max_size,
        open=True,
    )


__all__ = [
    "build_dsn",
    "get_sync_connection",
    "create_sync_pool",
]
