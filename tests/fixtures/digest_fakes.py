"""Fake collaborators and builders for digest engine tests."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from focusq.contracts.events import SlackMessage
from focusq.contracts.suggestions import ActionabilityAnalysis


def slack_message(
    message_id: str,
    sent_at: datetime,
    user: str = "U1",
    text: str = "Can you review the launch plan?",
    channel: str = "C1",
    **extra: Any,
) -> SlackMessage:
    ts = f"{sent_at.timestamp():.6f}"
    return SlackMessage(
        id=message_id,
        channel=channel,
        channel_name=extra.pop("channel_name", "product"),
        user=user,
        user_name=extra.pop("user_name", "Dana"),
        text=text,
        ts=ts,
        **extra,
    )


class FakeMessageSource:
    def __init__(self, messages: Sequence[SlackMessage] = ()):
        self.messages = list(messages)
        self.calls: list[tuple[list[str], int]] = []

    async def fetch_recent_channel_messages(self, channel_ids, since_epoch_seconds):
        self.calls.append((list(channel_ids), since_epoch_seconds))
        return list(self.messages)


class FakeAnalyzer:
    """Returns a per-message verdict; ids listed in ``failing`` raise."""

    def __init__(
        self,
        verdicts: dict[str, ActionabilityAnalysis] | None = None,
        failing: Sequence[str] = (),
        default_urgency: str = "medium",
    ):
        self.verdicts = verdicts or {}
        self.failing = set(failing)
        self.default_urgency = default_urgency
        self.analyzed: list[str] = []

    async def analyze_message_actionability(self, message, vip_list, user_identity):
        self.analyzed.append(message.id)
        await asyncio.sleep(0)
        if message.id in self.failing:
            raise RuntimeError("analysis backend unavailable")
        return self.verdicts.get(
            message.id,
            ActionabilityAnalysis(
                is_actionable=True,
                summary=f"Summary of {message.id}",
                suggested_action="Reply in thread",
                urgency=self.default_urgency,
                reason="Question directed at you",
            ),
        )


class FakeMessagingChannel:
    def __init__(self, recipient: str | None = "UME", fail: bool = False):
        self.recipient = recipient
        self.fail = fail
        self.dispatched: list[tuple[str, dict[str, Any]]] = []

    async def resolve_recipient_identity(self, email):
        return self.recipient

    async def dispatch_message(self, recipient_id, payload):
        if self.fail:
            raise RuntimeError("channel_not_found")
        self.dispatched.append((recipient_id, payload))


class MutableClock:
    """Virtual clock: call to read, ``advance`` to move forward."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current
