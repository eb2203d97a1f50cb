"""SQLite persistence for LifeOS.

All user documents and LLM usage rows live in ONE database file
(``lifeos/data/lifeos.db`` unless LIFEOS_DB_PATH is set). Every caller goes
through get_db_connection()/db_transaction(), which hand out connections from
a process-wide pool configured for WAL mode.
"""

from __future__ import annotations

import atexit
import os
import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import lru_cache, wraps
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Lock
from typing import Any, TypeVar

from lifeos.config import (
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
    DB_TEMP_CONN_MAX,
)
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event

F = TypeVar("F", bound=Callable[..., Any])

DB_PATH = Path(__file__).parent.parent / "data" / "lifeos.db"

logger = get_logger(__name__)


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Retry a database operation when SQLite reports the file as locked.

    The debounced writer thread and request handlers can hit the same rows at
    once; busy errors are retried with exponential backoff plus jitter, any
    other OperationalError propagates immediately.

    Usage:
        @retry_on_db_lock()
        def save_document(...):
            with db_transaction() as conn:
                conn.execute("UPDATE users ...")

    Side Effects:
        - Sleeps between attempts
        - Logs a warning per retry and an error once retries are exhausted
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    if not _is_lock_error(e):
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
                        counter("database.lock_retry_exhausted")
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)
                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )
                    time.sleep(sleep_time)
            raise AssertionError("unreachable")

        return wrapper  # type: ignore[return-value]

    return decorator


class DatabaseConnectionPool:
    """
    Thread-safe pool of SQLite connections.

    When the pool is empty for longer than DB_POOL_TIMEOUT a temporary
    connection is opened, up to DB_TEMP_CONN_MAX at a time.
    """

    def __init__(self, db_path: Path, pool_size: int = DB_POOL_SIZE):
        self.db_path = db_path
        self.pool_size = pool_size
        self.pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self.lock = Lock()
        self.closed = False
        self.temp_conn_count = 0
        self.temp_conn_max = DB_TEMP_CONN_MAX
        self._temporary: set[int] = set()

        for _ in range(self.pool_size):
            try:
                self.pool.put(self._create_connection())
            except (sqlite3.Error, RuntimeError) as e:
                logger.warning("Failed to create pooled connection: %s", e)

        atexit.register(self.close_all)

    def _create_connection(self) -> sqlite3.Connection:
        """
        Open a connection with WAL, NORMAL sync and dict-like rows.

        Raises:
            RuntimeError: If the integrity quick check fails

        Side Effects:
            - Opens the database file
            - Executes PRAGMA statements
        """
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=DB_CONNECT_TIMEOUT,
            check_same_thread=False,
        )

        try:
            result = conn.execute("PRAGMA quick_check(1)").fetchone()
        except sqlite3.DatabaseError as e:
            conn.close()
            logger.critical("Database error during integrity check: %s", e)
            counter("database.corruption_detected")
            raise RuntimeError(f"Database corruption detected: {e}") from e
        if result[0] != "ok":
            conn.close()
            logger.critical("Database corruption detected: %s", result[0])
            counter("database.corruption_detected")
            raise RuntimeError(f"Database corruption detected: {result[0]}")

        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row
        return conn

    def get_connection(self) -> sqlite3.Connection:
        """
        Take a connection from the pool, or open a temporary one.

        Raises:
            RuntimeError: If the pool is closed or the temporary limit is hit
        """
        if self.closed:
            raise RuntimeError("Connection pool has been closed")

        try:
            return self.pool.get(block=True, timeout=DB_POOL_TIMEOUT)
        except Empty:
            with self.lock:
                if self.temp_conn_count >= self.temp_conn_max:
                    logger.critical(
                        "Temporary connection limit reached: %d/%d (pool_size=%d)",
                        self.temp_conn_count,
                        self.temp_conn_max,
                        self.pool_size,
                    )
                    raise RuntimeError(
                        "Database connection pool exhausted "
                        f"(pool_size={self.pool_size}, temp_conn_max={self.temp_conn_max})"
                    ) from None
                self.temp_conn_count += 1
                temp_count = self.temp_conn_count

            logger.error(
                "Connection pool exhausted (pool_size=%d), opening temporary connection %d/%d",
                self.pool_size,
                temp_count,
                self.temp_conn_max,
            )
            log_event("database.pool_exhausted", pool_size=self.pool_size, temp_conn_count=temp_count)

            conn = self._create_connection()
            with self.lock:
                self._temporary.add(id(conn))
            return conn

    def return_connection(self, conn: sqlite3.Connection) -> None:
        """
        Give a connection back; temporary connections are closed instead.

        Side Effects:
            - Returns pooled connection to the queue or closes it
            - Decrements temp_conn_count for temporary connections
        """
        with self.lock:
            is_temp = id(conn) in self._temporary
            if is_temp:
                self._temporary.discard(id(conn))
                self.temp_conn_count -= 1

        if self.closed or is_temp:
            conn.close()
            return

        try:
            self.pool.put_nowait(conn)
        except Full:
            logger.warning("Failed to return connection to pool (pool full), closing")
            conn.close()

    def close_all(self) -> None:
        """
        Close every idle pooled connection and refuse further checkouts.

        Side Effects:
            - Sets self.closed
            - Closes and drains queued connections
        """
        self.closed = True
        while True:
            try:
                self.pool.get_nowait().close()
            except Empty:
                break


def get_db_path() -> Path:
    """Database path: LIFEOS_DB_PATH when set, otherwise the packaged default."""
    if env_path := os.getenv("LIFEOS_DB_PATH"):
        return Path(env_path)
    return DB_PATH


@lru_cache(maxsize=1)
def get_pool() -> DatabaseConnectionPool:
    """
    Process-wide connection pool (lazily created singleton).

    Side Effects:
        - Opens DB_POOL_SIZE connections on first call
        - Registers atexit cleanup handler
    """
    return DatabaseConnectionPool(get_db_path(), pool_size=DB_POOL_SIZE)


def reset_pool() -> None:
    """
    Close the current pool so the next call re-reads LIFEOS_DB_PATH.

    Side Effects:
        - Closes pooled connections
        - Clears the get_pool() singleton
    """
    if get_pool.cache_info().currsize:
        get_pool().close_all()
    get_pool.cache_clear()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Borrow a pooled connection for the duration of the block.

    Usage:
        with get_db_connection() as conn:
            row = conn.execute("SELECT data FROM users WHERE id = ?", (uid,)).fetchone()

    Raises:
        FileNotFoundError: If the database has not been initialized
    """
    db_path = get_db_path()
    if not db_path.exists():
        raise FileNotFoundError(f"Database not found: {db_path} (call init_database() first)")

    pool = get_pool()
    conn = pool.get_connection()
    try:
        yield conn
    finally:
        pool.return_connection(conn)


@contextmanager
def db_transaction() -> Generator[sqlite3.Connection, None, None]:
    """
    Connection whose work is committed on success and rolled back on error.

    Side Effects:
        - Commits or rolls back the transaction
    """
    with get_db_connection() as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def validate_schema() -> bool:
    """
    Check that the expected tables exist.

    Raises:
        ValueError: If tables are missing
    """
    from lifeos.infrastructure.database_schema import validate_schema as _validate_schema

    with get_db_connection() as conn:
        return _validate_schema(conn)


def get_pool_stats() -> dict[str, Any]:
    """Pool size, idle and in-use connection counts."""
    pool = get_pool()
    available = pool.pool.qsize()
    in_use = pool.pool_size - available
    usage_percent = (in_use / pool.pool_size) * 100 if pool.pool_size > 0 else 0

    return {
        "pool_size": pool.pool_size,
        "available": available,
        "in_use": in_use,
        "temporary": pool.temp_conn_count,
        "usage_percent": round(usage_percent, 1),
        "closed": pool.closed,
    }


def checkpoint_wal() -> dict[str, Any]:
    """
    Fold the WAL file back into the main database and truncate it.

    Side Effects:
        - Writes WAL frames into lifeos.db
        - Truncates lifeos.db-wal
    """
    db_path = get_db_path()
    wal_path = db_path.with_name(db_path.name + "-wal")
    wal_size_before = wal_path.stat().st_size if wal_path.exists() else 0

    with get_db_connection() as conn:
        result = conn.execute("PRAGMA wal_checkpoint(TRUNCATE)").fetchone()
        busy, log_pages, checkpointed_pages = result if result else (0, 0, 0)

    wal_size_after = wal_path.stat().st_size if wal_path.exists() else 0
    stats = {
        "wal_size_before_bytes": wal_size_before,
        "wal_size_after_bytes": wal_size_after,
        "bytes_freed": wal_size_before - wal_size_after,
        "checkpointed_pages": checkpointed_pages,
        "log_pages": log_pages,
        "busy": bool(busy),
    }
    logger.info(
        "WAL checkpoint completed: freed %d bytes (%d pages)",
        stats["bytes_freed"],
        checkpointed_pages,
    )
    return stats


def init_database() -> None:
    """
    Create tables and indexes if they are missing (idempotent).

    Side Effects:
        - Creates the data directory and database file if needed
    """
    from lifeos.infrastructure.database_schema import init_database as _init_database

    _init_database(get_db_path())
