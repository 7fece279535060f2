"""
Digest Scheduler - fixed daily slots in the user's timezone.

Each slot label ("09:00", "12:00", "17:00") is an independent timer line:

    Idle(next_fire_at) -> [time passes] -> Firing -> Idle(next_fire_at')

The scheduler owns a priority queue of ``(fire_at_utc, slot_label)`` pairs and
is advanced by ``tick(now)``. In production ``run_forever()`` drives ``tick``
from the event loop; tests call ``tick`` with a virtual clock.

Re-arming happens unconditionally after every firing attempt, whether the
callback succeeded or raised. The next time is always recomputed from the
slot's wall-clock time, which self-corrects after clock changes but may skip
or double-fire a slot on a DST transition day (known limitation).
"""

from __future__ import annotations

import asyncio
import heapq
import re
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, time, timedelta, tzinfo

from focusq.config import SCHEDULER_MAX_SLEEP_SECONDS
from focusq.observability.logging import get_logger
from focusq.observability.telemetry import counter

logger = get_logger(__name__)

_SLOT_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

SlotCallback = Callable[[str], Awaitable[object]]


def parse_slot(slot_label: str) -> time:
    """``"HH:MM"`` (24h) -> ``datetime.time``."""
    match = _SLOT_PATTERN.match(slot_label)
    if not match:
        raise ValueError(f"Invalid digest slot {slot_label!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def next_fire_time(slot_label: str, tz: tzinfo, now: datetime) -> datetime:
    """Today's slot time if still ahead of ``now``, else tomorrow's (UTC result)."""
    slot_time = parse_slot(slot_label)
    local_now = now.astimezone(tz)
    candidate = datetime.combine(local_now.date(), slot_time, tzinfo=tz)
    if candidate.astimezone(UTC) <= now.astimezone(UTC):
        candidate = datetime.combine(local_now.date() + timedelta(days=1), slot_time, tzinfo=tz)
    return candidate.astimezone(UTC)


def following_fire_time(
    slot_label: str, tz: tzinfo, fired_at: datetime, now: datetime
) -> datetime:
    """
    This slot's time one calendar day after ``fired_at``.

    If that is already in the past (the host slept through several days), the
    schedule restarts from ``now`` instead of replaying every missed day.
    """
    slot_time = parse_slot(slot_label)
    fired_local = fired_at.astimezone(tz)
    candidate = datetime.combine(
        fired_local.date() + timedelta(days=1), slot_time, tzinfo=tz
    ).astimezone(UTC)
    if candidate <= now.astimezone(UTC):
        return next_fire_time(slot_label, tz, now)
    return candidate


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DigestScheduler:
    """Three (or more) recurring daily timers multiplexed over one queue."""

    def __init__(
        self,
        slots: Iterable[str],
        tz: tzinfo,
        on_fire: SlotCallback,
        clock: Callable[[], datetime] = _utc_now,
        max_sleep_seconds: float = SCHEDULER_MAX_SLEEP_SECONDS,
    ):
        self.slots = tuple(slots)
        for slot in self.slots:
            parse_slot(slot)
        self.tz = tz
        self.on_fire = on_fire
        self.clock = clock
        self.max_sleep_seconds = max_sleep_seconds

        self._queue: list[tuple[datetime, str]] = []
        self._running = False
        # Bumped on every start/stop so an in-flight firing never re-arms a
        # schedule that was stopped (or restarted) while it was awaiting.
        self._generation = 0
        self._wake = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Arm every slot from the current wall-clock time (no-op if running)."""
        if self._running:
            return
        now = self.clock()
        self._generation += 1
        self._queue = [(next_fire_time(slot, self.tz, now), slot) for slot in self.slots]
        heapq.heapify(self._queue)
        self._running = True
        for fire_at, slot in sorted(self._queue):
            minutes = int((fire_at - now).total_seconds() // 60)
            logger.info("Next %s digest in %d minutes (%s)", slot, minutes, fire_at.isoformat())

    def stop(self) -> None:
        """Clear all pending timers. Work already running is not interrupted."""
        self._generation += 1
        self._queue.clear()
        self._running = False
        self._wake.set()
        logger.info("Digest scheduler stopped")

    def pending(self) -> list[tuple[datetime, str]]:
        return sorted(self._queue)

    def next_fire_at(self, slot_label: str) -> datetime | None:
        for fire_at, slot in self._queue:
            if slot == slot_label:
                return fire_at
        return None

    async def tick(self, now: datetime | None = None) -> list[str]:
        """
        Fire every slot that is due at ``now`` and re-arm it.

        Returns:
            Slot labels fired during this tick, in firing order

        Side Effects:
            - Awaits the slot callback (digest cycle)
            - Logs and swallows callback failures so the schedule keeps running
        """
        now = now or self.clock()
        fired: list[str] = []

        while self._running and self._queue and self._queue[0][0] <= now:
            fire_at, slot = heapq.heappop(self._queue)
            generation = self._generation
            fired.append(slot)
            counter("digest.scheduler.fired")

            try:
                await self.on_fire(slot)
            except Exception:
                counter("digest.scheduler.callback_failed")
                logger.exception("Digest cycle for slot %s failed", slot)

            if self._running and generation == self._generation:
                rearm_at = following_fire_time(slot, self.tz, fire_at, now)
                heapq.heappush(self._queue, (rearm_at, slot))
                logger.info("Re-armed %s digest for %s", slot, rearm_at.isoformat())

        return fired

    async def run_forever(self) -> None:
        """Drive ``tick`` from the event loop until ``stop()`` is called."""
        self._wake.clear()
        while self._running:
            delay = self.max_sleep_seconds
            if self._queue:
                until_next = (self._queue[0][0] - self.clock()).total_seconds()
                delay = max(0.0, min(delay, until_next))
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=delay)
            except TimeoutError:
                pass
            self._wake.clear()
            if not self._running:
                break
            await self.tick()
