"""
Event normalizer: raw provider payloads -> scoring candidates.

Pure functions, no filtering and no scoring. Malformed input is passed through
with best-effort defaults (unparseable timestamps become ``None``, missing
names become empty strings) so the scorer decides what to drop.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import Union

from focusq.contracts.events import CalendarEvent, EmailMessage, SlackMessage
from focusq.contracts.suggestions import ActionabilityAnalysis, make_suggestion_id

RawEvent = Union[CalendarEvent, EmailMessage, SlackMessage]

# "Jane Doe <jane@example.com>" -> "Jane Doe"
_DISPLAY_NAME_PATTERN = re.compile(r"^(.+?)\s*<.*>$")


@dataclass(frozen=True)
class Candidate:
    """Common shape every raw event is reduced to before scoring."""

    source: str
    source_id: str
    text: str
    actors: tuple[str, ...]
    timestamp: datetime | None
    raw: RawEvent
    analysis: ActionabilityAnalysis | None = field(default=None, compare=False)

    @property
    def suggestion_id(self) -> str:
        return make_suggestion_id(self.source, self.source_id)


def extract_sender_name(sender: str) -> str:
    """Display name from an RFC 5322 sender, else the local part of the address."""
    sender = sender.strip()
    match = _DISPLAY_NAME_PATTERN.match(sender)
    if match:
        return match.group(1).replace('"', "").replace("'", "").strip()
    return sender.strip("<>").split("@")[0]


def parse_datetime(value: str, default_tz: tzinfo = UTC) -> datetime | None:
    """Parse an ISO-8601 string; naive values are interpreted in ``default_tz``."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default_tz)
    return parsed


def normalize_calendar_event(event: CalendarEvent, default_tz: tzinfo = UTC) -> Candidate:
    return Candidate(
        source="calendar",
        source_id=event.id,
        text=event.title,
        actors=(),
        timestamp=parse_datetime(event.start, default_tz),
        raw=event,
    )


def normalize_email(email: EmailMessage, default_tz: tzinfo = UTC) -> Candidate:
    name = extract_sender_name(email.sender)
    return Candidate(
        source="email",
        source_id=email.id,
        text=email.subject,
        actors=(name,) if name else (),
        timestamp=parse_datetime(email.date, default_tz),
        raw=email,
    )


def _slack_datetime(seconds: float) -> datetime | None:
    if seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, UTC)
    except (OverflowError, ValueError, OSError):
        return None


def normalize_slack_message(message: SlackMessage) -> Candidate:
    return Candidate(
        source="slack",
        source_id=message.id,
        text=message.text,
        actors=(message.user_name,) if message.user_name else (),
        timestamp=_slack_datetime(message.timestamp),
        raw=message,
    )


def normalize(event: RawEvent, default_tz: tzinfo = UTC) -> Candidate:
    """Dispatch on the raw event variant."""
    if isinstance(event, CalendarEvent):
        return normalize_calendar_event(event, default_tz)
    if isinstance(event, EmailMessage):
        return normalize_email(event, default_tz)
    if isinstance(event, SlackMessage):
        return normalize_slack_message(event)
    raise TypeError(f"Unsupported raw event type: {type(event).__name__}")
