"""
Digest service - the host-facing facade of the digest engine.

Wires the deduplication store, the composer and the scheduler together and
exposes ``start()``, ``stop()`` and ``mark_task_created()`` to the host process.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from focusq.config import DIGEST_SLOTS, Settings
from focusq.digest.composer import (
    ActionabilityAnalyzer,
    DigestComposer,
    DigestCycleResult,
    MessageSource,
    MessagingChannel,
)
from focusq.digest.scheduler import DigestScheduler
from focusq.digest.state import DeduplicationStore
from focusq.observability.logging import get_logger

logger = get_logger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when the digest is used without the settings or credentials it needs."""


class DigestService:
    def __init__(
        self,
        settings: Settings,
        store: DeduplicationStore,
        source: MessageSource | None,
        analyzer: ActionabilityAnalyzer | None,
        channel: MessagingChannel | None,
        slots: Iterable[str] = DIGEST_SLOTS,
        clock: Callable[[], datetime] | None = None,
    ):
        self.settings = settings
        self.store = store
        self.source = source
        self.analyzer = analyzer
        self.channel = channel
        self.slots = tuple(slots)
        self.clock = clock or (lambda: datetime.now(UTC))

        self.composer: DigestComposer | None = None
        if source is not None and analyzer is not None and channel is not None:
            self.composer = DigestComposer(
                settings, store, source, analyzer, channel, clock=self.clock
            )

        self.scheduler: DigestScheduler | None = None
        self._task: asyncio.Task | None = None

    def missing_configuration(self) -> list[str]:
        missing = []
        if not self.settings.digest_enabled:
            missing.append("digest disabled in settings")
        if self.source is None or self.channel is None:
            missing.append("messaging credential (Slack token)")
        if self.analyzer is None:
            missing.append("analysis credential (Gemini)")
        if not self.settings.user_email:
            missing.append("user email")
        if not self.settings.primary_timezone:
            missing.append("primary timezone")
        return missing

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self) -> bool:
        """
        Arm the daily digest slots.

        Returns:
            True if the scheduler is running, False if configuration is missing
            (reported once here, never retried automatically)

        Side Effects:
            - Schedules ``DigestScheduler.run_forever`` on the running event loop, if any
        """
        if self.running:
            return True

        missing = self.missing_configuration()
        if missing or self.composer is None:
            logger.warning("Digest not started, missing: %s", ", ".join(missing))
            return False

        logger.info("Starting digest with timezone %s", self.settings.primary_timezone)
        self.scheduler = DigestScheduler(
            self.slots, self.settings.tz, self.composer.run_cycle, clock=self.clock
        )
        self.scheduler.start()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, scheduler must be ticked by the host")
        else:
            self._task = loop.create_task(self.scheduler.run_forever())

        logger.info("Scheduled %d daily digests: %s", len(self.slots), ", ".join(self.slots))
        return True

    def stop(self) -> None:
        """Clear pending timers; a cycle already in flight finishes on its own."""
        if self.scheduler is not None:
            self.scheduler.stop()

    async def aclose(self) -> None:
        """Stop, then wait for the scheduler loop (and any in-flight cycle) to exit."""
        self.stop()
        task, self._task = self._task, None
        if task is not None:
            await task

    def mark_task_created(self, source_id: str, task_id: str) -> None:
        """Host callback after the user converted a suggestion into a task."""
        self.store.record_task_created(source_id, task_id, self.clock())

    async def run_now(self, slot_label: str) -> DigestCycleResult:
        """Run one guarded cycle immediately (manual trigger)."""
        if self.composer is None:
            raise ConfigurationError("Digest collaborators are not configured")
        return await self.composer.run_cycle(slot_label)

    def status(self) -> dict[str, Any]:
        pending = self.scheduler.pending() if self.scheduler is not None else []
        return {
            "running": self.running,
            "slots": list(self.slots),
            "timezone": self.settings.primary_timezone,
            "next_fire_at": {slot: fire_at.isoformat() for fire_at, slot in pending},
            "missing_configuration": self.missing_configuration(),
            "state": self.store.stats(),
        }
