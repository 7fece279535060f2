"""Centralized database configuration

FocusQ keeps its durable digest state in ONE SQLite database (default
~/.focusq/focusq.db, override with FOCUSQ_DB_PATH).

Provides:
- Connection creation with proper settings (WAL mode, Row factory)
- Single source of truth for the database path
- Transaction context manager (commit on success, rollback on error)
- Retry decorator for transient "database is locked" errors
- Idempotent schema initialization
"""

from __future__ import annotations

import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

from focusq.config import (
    DB_CONNECT_TIMEOUT,
    DB_PATH,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
)
from focusq.observability.logging import get_logger

F = TypeVar("F", bound=Callable[..., Any])

MEMORY_DB = ":memory:"

logger = get_logger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS digest_slots (
        slot_label TEXT PRIMARY KEY,
        last_sent_ms INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS suggested_items (
        source_id TEXT PRIMARY KEY,
        suggested_at_ms INTEGER NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_suggested_items_at
    ON suggested_items (suggested_at_ms)
    """,
    """
    CREATE TABLE IF NOT EXISTS created_tasks (
        source_id TEXT PRIMARY KEY,
        task_id TEXT NOT NULL,
        created_at_ms INTEGER NOT NULL
    )
    """,
)


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    Implements exponential backoff with jitter. Any other OperationalError
    is re-raised immediately.

    Side Effects:
        - Sleeps between retries
        - Logs a warning per retry and an error when retries are exhausted
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    message = str(e).lower()
                    if "locked" not in message and "busy" not in message:
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
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
            raise RuntimeError("unreachable")

        return wrapper  # type: ignore[return-value]

    return decorator


def get_db_path() -> Path:
    """Database path from config (FOCUSQ_DB_PATH already applied)."""
    return DB_PATH


def connect(db_path: Path | str | None = None) -> sqlite3.Connection:
    """
    Open a configured SQLite connection.

    Side Effects:
        - Creates the parent directory of a file database if needed
        - Executes PRAGMA statements (journal_mode, synchronous)
    """
    target = str(db_path) if db_path is not None else str(get_db_path())

    if target != MEMORY_DB:
        Path(target).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(target, timeout=DB_CONNECT_TIMEOUT, check_same_thread=False)
    if target != MEMORY_DB:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def db_transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database transactions

    Automatically commits on success, rolls back on error.

    Usage:
        with db_transaction(conn) as tx:
            tx.execute("INSERT INTO ...")
    """
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_schema(conn: sqlite3.Connection) -> None:
    """
    Create digest state tables (idempotent).

    Side Effects:
        - Creates tables and indexes if they don't exist
    """
    with db_transaction(conn) as tx:
        for statement in SCHEMA_STATEMENTS:
            tx.execute(statement)
    logger.debug("Digest state schema ready")
