"""
Priority scoring for suggestion candidates.

Two independent strategies share the ``Scorer`` contract:

- ``AggregatorScorer``: instant, on-demand view across calendar, email and Slack.
- ``DigestScorer``: periodic curated Slack digest (VIP, analysed urgency, recency).

They were tuned separately and must stay separate: a Slack DM scores 80+ in the
aggregator but starts from 50 in the digest.

Scoring never raises on missing optional fields. Absent fields are omitted from
context strings; they never change the score.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, tzinfo
from typing import Protocol

from focusq.config import MAX_SCORE
from focusq.contracts.events import CalendarEvent, EmailMessage, SlackMessage
from focusq.contracts.suggestions import ActionableItem, Priority, Suggestion
from focusq.suggestions.normalizer import Candidate

URGENT_SUBJECT_PHRASES: tuple[str, ...] = (
    "urgent",
    "asap",
    "action required",
    "deadline",
    "reminder",
    "follow up",
    "response needed",
)

# (score, priority, context) per Slack message type; other types (plain channel
# chatter) are not suggested
SLACK_TYPE_RULES: dict[str, tuple[int, Priority, str]] = {
    "mention": (85, "high", "You were mentioned"),
    "dm": (80, "high", "Direct message"),
    "saved": (70, "medium", "Saved item"),
    "thread": (60, "medium", "Thread activity"),
}

SLACK_TITLE_MAX_CHARS = 60


class Scorer(Protocol):
    """Turns one candidate into a ranked suggestion, or ``None`` to exclude it."""

    def score(self, candidate: Candidate, now: datetime) -> Suggestion | None: ...


def clamp_score(score: int) -> int:
    return min(score, MAX_SCORE)


def truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def format_clock(moment: datetime) -> str:
    """12-hour clock without a leading zero, e.g. ``3:05 PM``."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {suffix}"


def format_short_date(moment: datetime) -> str:
    return f"{moment.strftime('%b')} {moment.day}"


def rank(suggestions: Sequence[Suggestion], limit: int) -> list[Suggestion]:
    """Stable sort by score, highest first, then truncate."""
    return sorted(suggestions, key=lambda s: s.score, reverse=True)[:limit]


class AggregatorScorer:
    """Source-specific heuristics for the on-demand suggestion list."""

    def __init__(self, tz: tzinfo):
        self.tz = tz

    def score(self, candidate: Candidate, now: datetime) -> Suggestion | None:
        raw = candidate.raw
        if isinstance(raw, CalendarEvent):
            return self._score_calendar(candidate, raw, now)
        if isinstance(raw, EmailMessage):
            return self._score_email(candidate, raw)
        if isinstance(raw, SlackMessage):
            return self._score_slack(candidate, raw, now)
        return None

    def _score_calendar(
        self, candidate: Candidate, event: CalendarEvent, now: datetime
    ) -> Suggestion | None:
        if candidate.timestamp is None:
            return None

        start = candidate.timestamp.astimezone(self.tz)
        local_now = now.astimezone(self.tz)
        seconds_until = (start - local_now).total_seconds()
        if seconds_until < 0:
            return None

        # Whole minutes and hours, truncated
        minutes_until = int(seconds_until // 60)
        hours_until = int(seconds_until // 3600)

        is_today = start.date() == local_now.date()
        is_tomorrow = start.date() == local_now.date() + timedelta(days=1)

        if minutes_until <= 30:
            score = 100
        elif hours_until <= 2:
            score = 80
        elif is_today:
            score = 60
        elif is_tomorrow:
            score = 40
        else:
            score = 20

        priority: Priority
        if minutes_until <= 30:
            priority = "high"
            context = f"In {minutes_until} minutes"
        elif is_today:
            priority = "medium"
            context = f"Today at {format_clock(start)}"
        elif is_tomorrow:
            priority = "low"
            context = f"Tomorrow at {format_clock(start)}"
        else:
            priority = "low"
            context = format_short_date(start)

        if event.location:
            context += f" • {event.location}"

        return Suggestion(
            id=candidate.suggestion_id,
            title=f"Prepare for: {event.title}",
            source="calendar",
            source_id=candidate.source_id,
            priority=priority,
            context=context,
            due_date=event.start,
            score=score,
        )

    def _score_email(self, candidate: Candidate, email: EmailMessage) -> Suggestion:
        priority: Priority = "medium"
        score = 50

        if email.is_starred:
            priority = "high"
            score = 90

        if email.is_unread:
            score += 20

        subject_lower = email.subject.lower()
        if any(phrase in subject_lower for phrase in URGENT_SUBJECT_PHRASES):
            priority = "high"
            score += 30

        sender_name = candidate.actors[0] if candidate.actors else ""
        return Suggestion(
            id=candidate.suggestion_id,
            title=f"{_email_action_verb(email)} email from {sender_name}: {email.subject}",
            source="email",
            source_id=candidate.source_id,
            priority=priority,
            context=f"From {sender_name}",
            score=clamp_score(score),
        )

    def _score_slack(
        self, candidate: Candidate, message: SlackMessage, now: datetime
    ) -> Suggestion | None:
        rule = SLACK_TYPE_RULES.get(message.type)
        if rule is None:
            return None
        score, priority, context = rule

        if candidate.timestamp is not None:
            age = now - candidate.timestamp
            if age < timedelta(hours=6):
                score += 20

        if message.user_name:
            context += f" from {message.user_name}"
        if message.channel_name:
            context += f" in #{message.channel_name}"

        return Suggestion(
            id=candidate.suggestion_id,
            title=f"Respond: {truncate(message.text, SLACK_TITLE_MAX_CHARS)}",
            source="slack",
            source_id=candidate.source_id,
            priority=priority,
            context=context,
            score=clamp_score(score),
        )


def _email_action_verb(email: EmailMessage) -> str:
    subject = email.subject.lower()
    snippet = email.snippet.lower()
    if "review" in subject or "please review" in snippet:
        return "Review and respond to"
    if "approve" in subject or "approval" in snippet:
        return "Review and approve"
    if "feedback" in subject or "your feedback" in snippet:
        return "Provide feedback on"
    if "action required" in subject or "action needed" in subject:
        return "Take action on"
    return "Reply to"


class DigestScorer:
    """VIP / urgency / recency model for analysed Slack messages."""

    def __init__(self, vip_contacts: Sequence[str]):
        self.vip_contacts = frozenset(vip_contacts)

    def score(self, candidate: Candidate, now: datetime) -> ActionableItem | None:
        message = candidate.raw
        analysis = candidate.analysis
        if not isinstance(message, SlackMessage) or analysis is None:
            return None
        if not analysis.is_actionable:
            return None

        is_vip = message.user in self.vip_contacts
        age_hours = (
            (now - candidate.timestamp).total_seconds() / 3600
            if candidate.timestamp is not None
            else float("inf")
        )

        score = 50
        if is_vip:
            score += 30
        if analysis.urgency == "high":
            score += 15
        elif analysis.urgency == "medium":
            score += 5
        if age_hours < 2:
            score += 10
        elif age_hours < 6:
            score += 5

        reasons: list[str] = []
        if is_vip:
            reasons.append("From VIP contact")
        if analysis.urgency == "high":
            reasons.append("High urgency")
        if age_hours < 2:
            reasons.append("Very recent")
        if analysis.reason:
            reasons.append(analysis.reason)

        context = f"From {message.user_name or message.user or 'Unknown'}"
        if message.channel_name:
            context += f" in #{message.channel_name}"

        return ActionableItem(
            id=candidate.suggestion_id,
            title=analysis.summary or f"Respond: {truncate(message.text, SLACK_TITLE_MAX_CHARS)}",
            source="slack",
            source_id=candidate.source_id,
            priority=analysis.urgency,
            context=context,
            score=clamp_score(score),
            channel=message.channel,
            channel_name=message.channel_name,
            user=message.user,
            user_name=message.user_name,
            text=message.text,
            thread_ts=message.thread_ts,
            summary=analysis.summary,
            suggested_action=analysis.suggested_action,
            reasons=reasons,
            permalink=message.permalink,
            timestamp=int(message.timestamp * 1000),
        )
