"""
On-demand suggestion aggregator for the desktop UI.

Fetches calendar events, emails and Slack activity concurrently through the
host-provided collectors, scores each source with ``AggregatorScorer`` and
returns the top 10. No state is kept between calls and the digest state is
never touched; the only filtering is dropping past calendar events.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import UTC, datetime, tzinfo

from focusq.config import AGGREGATOR_TOP_N
from focusq.contracts.events import CalendarEvent, EmailMessage, SlackMessage
from focusq.contracts.suggestions import Suggestion
from focusq.observability.logging import get_logger
from focusq.suggestions.normalizer import RawEvent, normalize
from focusq.suggestions.scoring import AggregatorScorer, rank

logger = get_logger(__name__)

CalendarFetcher = Callable[[], Awaitable[list[CalendarEvent]]]
EmailFetcher = Callable[[], Awaitable[list[EmailMessage]]]
SlackActivityFetcher = Callable[[], Awaitable[list[SlackMessage]]]


async def _no_items() -> list:
    return []


def generate_smart_suggestions(
    calendar_events: Iterable[CalendarEvent],
    emails: Iterable[EmailMessage],
    slack_messages: Iterable[SlackMessage],
    now: datetime,
    tz: tzinfo = UTC,
    limit: int = AGGREGATOR_TOP_N,
) -> list[Suggestion]:
    """Score every source, concatenate, stable-sort by score and keep the top ``limit``."""
    scorer = AggregatorScorer(tz)
    suggestions: list[Suggestion] = []
    seen: set[str] = set()

    raw_events: list[RawEvent] = [*calendar_events, *emails, *slack_messages]
    for event in raw_events:
        suggestion = scorer.score(normalize(event, tz), now)
        if suggestion is None or suggestion.id in seen:
            continue
        seen.add(suggestion.id)
        suggestions.append(suggestion)

    return rank(suggestions, limit)


def time_of_day_context(now: datetime) -> str:
    """Greeting bucket for the local hour: morning, afternoon or evening."""
    if now.hour < 12:
        return "morning"
    if now.hour < 17:
        return "afternoon"
    return "evening"


class SuggestionAggregator:
    """Async facade: gathers collector output, then scores synchronously."""

    def __init__(
        self,
        tz: tzinfo,
        fetch_calendar_events: CalendarFetcher | None = None,
        fetch_emails: EmailFetcher | None = None,
        fetch_slack_activity: SlackActivityFetcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.tz = tz
        self.fetch_calendar_events = fetch_calendar_events or _no_items
        self.fetch_emails = fetch_emails or _no_items
        self.fetch_slack_activity = fetch_slack_activity or _no_items
        self.clock = clock or (lambda: datetime.now(UTC))

    async def get_smart_suggestions(self) -> list[Suggestion]:
        """
        Side Effects:
            - Calls the three collectors concurrently (network)
            - Logs collector failures; a failed source contributes nothing
        """
        results = await asyncio.gather(
            self.fetch_calendar_events(),
            self.fetch_emails(),
            self.fetch_slack_activity(),
            return_exceptions=True,
        )
        sources: list[Sequence] = []
        for name, result in zip(("calendar", "email", "slack"), results):
            if isinstance(result, BaseException):
                logger.warning("Failed to fetch %s items for suggestions: %s", name, result)
                sources.append([])
            else:
                sources.append(result)

        calendar_events, emails, slack_messages = sources
        return generate_smart_suggestions(
            calendar_events, emails, slack_messages, now=self.clock(), tz=self.tz
        )
