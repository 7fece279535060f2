"""
Digest state and the deduplication store.

``DigestState`` is a plain value holding the three maps that drive digest
filtering:

- ``last_sent``: slot label -> epoch ms of the last successful send
- ``suggested_messages``: source id -> epoch ms when it was suggested
- ``created_tasks``: source id -> external task id (permanent suppression)

``DeduplicationStore`` persists that state in SQLite. Its methods block (lock
retries sleep), so async callers run them with ``asyncio.to_thread``; one lock
serializes use of the shared connection. Every write is an idempotent upsert
applied immediately, so a task recorded by the user while a
digest cycle is suspended on the network is never overwritten by the cycle.
A cycle reads one ``snapshot()`` at its start and filters against it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from focusq.config import (
    SLOT_RESEND_GUARD_SECONDS,
    SUGGESTED_RETENTION_DAYS,
    SUGGESTION_DEDUP_WINDOW_SECONDS,
)
from focusq.infrastructure.database import connect, db_transaction, init_schema, retry_on_db_lock
from focusq.observability.logging import get_logger
from focusq.observability.telemetry import counter, log_event

logger = get_logger(__name__)

DEDUP_WINDOW_MS = SUGGESTION_DEDUP_WINDOW_SECONDS * 1000
SLOT_GUARD_MS = SLOT_RESEND_GUARD_SECONDS * 1000


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


@dataclass
class DigestState:
    last_sent: dict[str, int] = field(default_factory=dict)
    suggested_messages: dict[str, int] = field(default_factory=dict)
    created_tasks: dict[str, str] = field(default_factory=dict)

    def has_been_suggested_recently(self, source_id: str, now: datetime) -> bool:
        suggested_at = self.suggested_messages.get(source_id)
        if suggested_at is None:
            return False
        return to_epoch_ms(now) - suggested_at < DEDUP_WINDOW_MS

    def has_task_created(self, source_id: str) -> bool:
        return source_id in self.created_tasks

    def is_excluded(self, source_id: str, now: datetime) -> bool:
        """True when the item must not appear in a new digest."""
        return self.has_task_created(source_id) or self.has_been_suggested_recently(
            source_id, now
        )

    def was_digest_slot_fired_recently(self, slot_label: str, now: datetime) -> bool:
        last_sent = self.last_sent.get(slot_label)
        if last_sent is None:
            return False
        return to_epoch_ms(now) - last_sent < SLOT_GUARD_MS


class DeduplicationStore:
    """SQLite-backed home of the process-wide ``DigestState``."""

    def __init__(self, db_path: Path | str | None = None):
        self.conn = connect(db_path)
        self._lock = threading.Lock()
        init_schema(self.conn)

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _fetchone(self, sql: str, params: tuple = ()):
        with self._lock:
            return self.conn.execute(sql, params).fetchone()

    @retry_on_db_lock()
    def snapshot(self) -> DigestState:
        """Read the whole state once (start of a digest cycle)."""
        state = DigestState()
        with self._lock:
            for row in self.conn.execute("SELECT slot_label, last_sent_ms FROM digest_slots"):
                state.last_sent[row["slot_label"]] = row["last_sent_ms"]
            for row in self.conn.execute("SELECT source_id, suggested_at_ms FROM suggested_items"):
                state.suggested_messages[row["source_id"]] = row["suggested_at_ms"]
            for row in self.conn.execute("SELECT source_id, task_id FROM created_tasks"):
                state.created_tasks[row["source_id"]] = row["task_id"]
        return state

    def has_been_suggested_recently(self, source_id: str, now: datetime) -> bool:
        row = self._fetchone(
            "SELECT suggested_at_ms FROM suggested_items WHERE source_id = ?", (source_id,)
        )
        if row is None:
            return False
        return to_epoch_ms(now) - row["suggested_at_ms"] < DEDUP_WINDOW_MS

    def has_task_created(self, source_id: str) -> bool:
        row = self._fetchone("SELECT 1 FROM created_tasks WHERE source_id = ?", (source_id,))
        return row is not None

    def was_digest_slot_fired_recently(self, slot_label: str, now: datetime) -> bool:
        row = self._fetchone(
            "SELECT last_sent_ms FROM digest_slots WHERE slot_label = ?", (slot_label,)
        )
        if row is None:
            return False
        return to_epoch_ms(now) - row["last_sent_ms"] < SLOT_GUARD_MS

    @retry_on_db_lock()
    def record_suggested(self, source_ids: list[str] | str, now: datetime) -> None:
        """
        Side Effects:
            - Upserts rows in ``suggested_items`` (committed immediately)
        """
        if isinstance(source_ids, str):
            source_ids = [source_ids]
        now_ms = to_epoch_ms(now)
        with self._lock, db_transaction(self.conn) as tx:
            tx.executemany(
                """
                INSERT INTO suggested_items (source_id, suggested_at_ms) VALUES (?, ?)
                ON CONFLICT(source_id) DO UPDATE SET suggested_at_ms = excluded.suggested_at_ms
                """,
                [(source_id, now_ms) for source_id in source_ids],
            )
        counter("digest.state.suggested_recorded", len(source_ids))

    @retry_on_db_lock()
    def record_task_created(self, source_id: str, task_id: str, now: datetime) -> None:
        """
        Side Effects:
            - Upserts a row in ``created_tasks`` (committed immediately)
        """
        with self._lock, db_transaction(self.conn) as tx:
            tx.execute(
                """
                INSERT INTO created_tasks (source_id, task_id, created_at_ms) VALUES (?, ?, ?)
                ON CONFLICT(source_id) DO UPDATE SET task_id = excluded.task_id
                """,
                (source_id, task_id, to_epoch_ms(now)),
            )
        logger.info("Marked source item %s as having task %s", source_id, task_id)

    @retry_on_db_lock()
    def record_digest_sent(self, slot_label: str, now: datetime) -> None:
        with self._lock, db_transaction(self.conn) as tx:
            tx.execute(
                """
                INSERT INTO digest_slots (slot_label, last_sent_ms) VALUES (?, ?)
                ON CONFLICT(slot_label) DO UPDATE SET last_sent_ms = excluded.last_sent_ms
                """,
                (slot_label, to_epoch_ms(now)),
            )

    @retry_on_db_lock()
    def prune_suggested(
        self, now: datetime, retention_days: int = SUGGESTED_RETENTION_DAYS
    ) -> int:
        """
        Delete suggested-item entries older than the retention window.

        The window is never shorter than the 7-day dedup window, so pruning
        cannot change which items are filtered. Created tasks are kept forever.

        Returns:
            Number of rows deleted
        """
        window = max(
            timedelta(days=retention_days), timedelta(seconds=SUGGESTION_DEDUP_WINDOW_SECONDS)
        )
        cutoff_ms = to_epoch_ms(now - window)
        with self._lock, db_transaction(self.conn) as tx:
            cursor = tx.execute(
                "DELETE FROM suggested_items WHERE suggested_at_ms < ?", (cutoff_ms,)
            )
            deleted = cursor.rowcount
        if deleted:
            log_event("digest.state.pruned", deleted=deleted, retention_days=retention_days)
        return deleted

    def stats(self) -> dict[str, int]:
        def count(table: str) -> int:
            return self._fetchone(f"SELECT COUNT(*) FROM {table}")[0]

        return {
            "slots": count("digest_slots"),
            "suggested_items": count("suggested_items"),
            "created_tasks": count("created_tasks"),
        }
