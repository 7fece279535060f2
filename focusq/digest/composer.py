"""
Digest Composer & Dispatcher - one digest cycle per scheduler firing.

Cycle:
    1. Guard: skip if this slot was sent less than an hour ago
    2. Collect Slack messages from the last 24h, drop items the dedup store
       excludes, analyse each remaining message, keep the actionable ones
    3. Score with ``DigestScorer`` and keep the top 5
    4. Nothing left -> end silently (no dispatch, no state update)
    5. Resolve the recipient, post the digest, record the slot as sent

Failure policy:
    - A failed analysis drops that one message; the batch continues
    - A failed dispatch aborts the cycle without recording the send, so the
      slot's next chance is its next scheduled occurrence
    - Cycles are serialized with one lock so overlapping slots cannot
      suggest the same message twice

"Suggested" marking is controlled by ``Settings.mark_suggested_policy``:
``analyzed`` marks every message that passed analysis (including ones that
lost the top-5 cut), ``delivered`` marks only what was actually sent.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, Protocol

from focusq.config import DIGEST_TOP_N, FETCH_WINDOW_SECONDS, Settings
from focusq.contracts.events import SlackMessage
from focusq.contracts.suggestions import ActionabilityAnalysis, ActionableItem
from focusq.digest.blocks import build_digest_blocks, fallback_text
from focusq.digest.state import DeduplicationStore, DigestState
from focusq.observability.logging import get_logger
from focusq.observability.telemetry import counter, log_event
from focusq.suggestions.normalizer import normalize_slack_message
from focusq.suggestions.scoring import DigestScorer, rank

logger = get_logger(__name__)

CycleStatus = Literal["skipped_recent", "empty", "sent", "dispatch_failed"]


class DispatchError(RuntimeError):
    """Raised when the digest could not be delivered to the user."""


class MessageSource(Protocol):
    async def fetch_recent_channel_messages(
        self, channel_ids: Sequence[str], since_epoch_seconds: int
    ) -> list[SlackMessage]: ...


class ActionabilityAnalyzer(Protocol):
    async def analyze_message_actionability(
        self, message: SlackMessage, vip_list: Sequence[str], user_identity: str
    ) -> ActionabilityAnalysis: ...


class MessagingChannel(Protocol):
    async def resolve_recipient_identity(self, email: str) -> str | None: ...

    async def dispatch_message(self, recipient_id: str, payload: dict[str, Any]) -> None: ...


@dataclass
class DigestCycleResult:
    slot: str
    status: CycleStatus
    items: list[ActionableItem] = field(default_factory=list)
    analyzed: int = 0
    error: str | None = None


def build_digest_payload(items: Sequence[ActionableItem], slot_label: str) -> dict[str, Any]:
    return {"text": fallback_text(items, slot_label), "blocks": build_digest_blocks(items, slot_label)}


class DigestComposer:
    def __init__(
        self,
        settings: Settings,
        store: DeduplicationStore,
        source: MessageSource,
        analyzer: ActionabilityAnalyzer,
        channel: MessagingChannel,
        clock: Callable[[], datetime] | None = None,
        top_n: int = DIGEST_TOP_N,
    ):
        self.settings = settings
        self.store = store
        self.source = source
        self.analyzer = analyzer
        self.channel = channel
        self.clock = clock or (lambda: datetime.now(UTC))
        self.top_n = top_n
        self._lock = asyncio.Lock()

    async def run_cycle(self, slot_label: str) -> DigestCycleResult:
        """Run one guarded digest cycle for ``slot_label`` (serialized)."""
        async with self._lock:
            return await self._run_cycle(slot_label)

    async def _run_cycle(self, slot_label: str) -> DigestCycleResult:
        logger.info("Generating %s digest", slot_label)
        now = self.clock()
        state = await asyncio.to_thread(self.store.snapshot)

        if state.was_digest_slot_fired_recently(slot_label, now):
            logger.info("Already sent %s digest recently, skipping", slot_label)
            counter("digest.cycle.skipped_recent")
            return DigestCycleResult(slot=slot_label, status="skipped_recent")

        await asyncio.to_thread(self.store.prune_suggested, now)

        actionable, analyzed = await self.collect_actionable_items(state, now)
        top_items = rank(actionable, self.top_n)
        logger.info(
            "Found %d actionable items, keeping top %d", len(actionable), len(top_items)
        )

        if not top_items:
            logger.info("No actionable items for %s digest", slot_label)
            counter("digest.cycle.empty")
            return DigestCycleResult(slot=slot_label, status="empty", analyzed=analyzed)

        try:
            await self.dispatch(top_items, slot_label)
        except Exception as e:
            logger.error("Failed to send %s digest: %s", slot_label, e)
            counter("digest.cycle.dispatch_failed")
            return DigestCycleResult(
                slot=slot_label,
                status="dispatch_failed",
                items=list(top_items),
                analyzed=analyzed,
                error=str(e),
            )

        if self.settings.mark_suggested_policy == "delivered":
            await asyncio.to_thread(
                self.store.record_suggested, [item.source_id for item in top_items], now
            )
        await asyncio.to_thread(self.store.record_digest_sent, slot_label, now)

        counter("digest.cycle.sent")
        log_event("digest.sent", slot=slot_label, items=len(top_items), analyzed=analyzed)
        return DigestCycleResult(
            slot=slot_label, status="sent", items=list(top_items), analyzed=analyzed
        )

    async def collect_actionable_items(
        self, state: DigestState, now: datetime
    ) -> tuple[list[ActionableItem], int]:
        """
        Fetch, filter and analyse recent messages from the monitored channels.

        Returns:
            (actionable items in collection order, number of messages analysed)

        Side Effects:
            - Calls the Slack collector and the analysis collaborator (network)
            - With the ``analyzed`` policy, records each actionable message as
              suggested in the dedup store
        """
        channels = self.settings.monitored_channels
        if not channels:
            logger.info("No monitored channels configured")
            return [], 0

        since = int(now.timestamp()) - FETCH_WINDOW_SECONDS
        try:
            messages = await self.source.fetch_recent_channel_messages(channels, since)
        except Exception as e:
            logger.error("Failed to fetch recent messages: %s", e)
            counter("digest.collect.fetch_failed")
            return [], 0

        logger.info("Found %d recent messages in %d channels", len(messages), len(channels))

        fresh: list[SlackMessage] = []
        seen: set[str] = set()
        for message in messages:
            if message.id in seen or state.is_excluded(message.id, now):
                continue
            seen.add(message.id)
            fresh.append(message)

        counter("digest.collect.deduplicated", len(messages) - len(fresh))
        logger.info("%d new messages after deduplication", len(fresh))

        scorer = DigestScorer(self.settings.vip_contacts)
        window = timedelta(seconds=FETCH_WINDOW_SECONDS)
        items: list[ActionableItem] = []
        analyzed = 0

        for message in fresh:
            candidate = normalize_slack_message(message)
            if candidate.timestamp is None or now - candidate.timestamp > window:
                continue

            try:
                analysis = await self.analyzer.analyze_message_actionability(
                    message, self.settings.vip_contacts, self.settings.user_email
                )
            except Exception as e:
                logger.warning("Error analyzing message %s: %s", message.id, e)
                counter("digest.analysis.failed")
                continue
            analyzed += 1

            item = scorer.score(replace(candidate, analysis=analysis), now)
            if item is None:
                continue

            items.append(item)
            if self.settings.mark_suggested_policy == "analyzed":
                await asyncio.to_thread(self.store.record_suggested, message.id, now)

        return items, analyzed

    async def dispatch(self, items: Sequence[ActionableItem], slot_label: str) -> None:
        """
        Raises:
            DispatchError: If the recipient cannot be resolved
            Exception: Whatever the messaging channel raises on post failure
        """
        email = self.settings.user_email
        if not email:
            raise DispatchError("User email not set, cannot send digest")

        recipient_id = await self.channel.resolve_recipient_identity(email)
        if not recipient_id:
            raise DispatchError("No messaging identity found for the configured user email")

        await self.channel.dispatch_message(recipient_id, build_digest_payload(items, slot_label))
        logger.info("Sent %s digest with %d items", slot_label, len(items))
