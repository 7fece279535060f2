"""
Tests for the on-demand suggestion aggregator.

Covers the per-source heuristics of AggregatorScorer (calendar proximity,
email flags and subject phrases, Slack message types) and the merge/rank step
of generate_smart_suggestions.
"""

import asyncio
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from focusq.contracts.events import CalendarEvent, EmailMessage, SlackMessage
from focusq.suggestions.aggregator import (
    SuggestionAggregator,
    generate_smart_suggestions,
    time_of_day_context,
)
from focusq.suggestions.scoring import format_clock, truncate


def calendar_event(event_id, start, title="Design review", location=None):
    return CalendarEvent(id=event_id, title=title, start=start.isoformat(), location=location)


def slack(message_id, sent_at, message_type, **fields):
    return SlackMessage(
        id=message_id, ts=f"{sent_at.timestamp():.6f}", type=message_type, **fields
    )


class TestCalendarScoring:
    def test_event_in_fifteen_minutes(self, now):
        event = calendar_event("e1", now + timedelta(minutes=15), location="Room 12")

        [suggestion] = generate_smart_suggestions([event], [], [], now=now)

        assert suggestion.id == "calendar_e1"
        assert suggestion.title == "Prepare for: Design review"
        assert suggestion.priority == "high"
        assert suggestion.score == 100
        assert suggestion.context == "In 15 minutes • Room 12"
        assert suggestion.due_date == event.start

    def test_score_decreases_with_distance(self, now):
        """Closer events always score at least as high as later ones."""
        starts = [
            now + timedelta(minutes=20),
            now + timedelta(minutes=90),
            now + timedelta(hours=6),
            now + timedelta(days=1),
            now + timedelta(days=5),
        ]
        events = [calendar_event(f"e{i}", start) for i, start in enumerate(starts)]

        suggestions = generate_smart_suggestions(events, [], [], now=now)

        assert [s.score for s in suggestions] == [100, 80, 60, 40, 20]
        assert [s.source_id for s in suggestions] == ["e0", "e1", "e2", "e3", "e4"]

    def test_contexts_by_day(self, now):
        events = [
            calendar_event("today", now + timedelta(minutes=90)),
            calendar_event("tomorrow", now + timedelta(days=1)),
            calendar_event("later", now + timedelta(days=5)),
        ]

        by_id = {s.source_id: s for s in generate_smart_suggestions(events, [], [], now=now)}

        assert by_id["today"].context == "Today at 3:30 PM"
        assert by_id["today"].priority == "medium"
        assert by_id["tomorrow"].context == "Tomorrow at 2:00 PM"
        assert by_id["tomorrow"].priority == "low"
        assert by_id["later"].context == "Nov 15"

    def test_past_events_are_excluded(self, now):
        events = [calendar_event("past", now - timedelta(minutes=5))]
        assert generate_smart_suggestions(events, [], [], now=now) == []

    def test_event_started_seconds_ago_is_excluded(self, now):
        events = [calendar_event("started", now - timedelta(seconds=30))]
        assert generate_smart_suggestions(events, [], [], now=now) == []

    def test_event_starting_now_is_included(self, now):
        [suggestion] = generate_smart_suggestions(
            [calendar_event("now", now)], [], [], now=now
        )
        assert suggestion.context == "In 0 minutes"

    def test_unparseable_start_is_excluded(self, now):
        events = [CalendarEvent(id="bad", title="?", start="someday")]
        assert generate_smart_suggestions(events, [], [], now=now) == []

    def test_context_uses_user_timezone(self, now):
        tz = ZoneInfo("America/New_York")
        event = calendar_event("e1", now + timedelta(minutes=90))

        [suggestion] = generate_smart_suggestions([event], [], [], now=now, tz=tz)

        assert suggestion.context == "Today at 10:30 AM"


class TestEmailScoring:
    def test_starred_unread_action_required_is_clamped(self, now):
        email = EmailMessage.model_validate(
            {
                "id": "m1",
                "subject": "Action required: sign contract",
                "from": "Legal Team <legal@example.com>",
                "isStarred": True,
                "isUnread": True,
            }
        )

        [suggestion] = generate_smart_suggestions([], [email], [], now=now)

        assert suggestion.priority == "high"
        assert suggestion.score == 100
        assert suggestion.context == "From Legal Team"
        assert suggestion.title == "Take action on email from Legal Team: Action required: sign contract"

    def test_plain_read_email(self, now):
        email = EmailMessage(id="m2", subject="Lunch?", sender="sam@example.com")

        [suggestion] = generate_smart_suggestions([], [email], [], now=now)

        assert suggestion.score == 50
        assert suggestion.priority == "medium"
        assert suggestion.title == "Reply to email from sam: Lunch?"

    def test_unread_adds_twenty(self, now):
        email = EmailMessage(id="m3", subject="Notes", sender="sam@example.com", is_unread=True)
        [suggestion] = generate_smart_suggestions([], [email], [], now=now)
        assert suggestion.score == 70

    def test_urgent_phrase_is_case_insensitive(self, now):
        email = EmailMessage(id="m4", subject="Quick question ASAP", sender="sam@example.com")
        [suggestion] = generate_smart_suggestions([], [email], [], now=now)
        assert suggestion.priority == "high"
        assert suggestion.score == 80


class TestSlackScoring:
    @pytest.mark.parametrize(
        "message_type,score,priority,context",
        [
            ("mention", 85, "high", "You were mentioned"),
            ("dm", 80, "high", "Direct message"),
            ("saved", 70, "medium", "Saved item"),
            ("thread", 60, "medium", "Thread activity"),
        ],
    )
    def test_type_rules_for_old_messages(self, now, message_type, score, priority, context):
        message = slack("s1", now - timedelta(hours=8), message_type, text="hello")

        [suggestion] = generate_smart_suggestions([], [], [message], now=now)

        assert suggestion.score == score
        assert suggestion.priority == priority
        assert suggestion.context == context

    def test_plain_channel_messages_are_not_suggested(self, now):
        message = slack("s1", now - timedelta(hours=1), "channel", text="lunch?")
        assert generate_smart_suggestions([], [], [message], now=now) == []

    @pytest.mark.parametrize("ts", ["1e20", "inf", "-1"])
    def test_out_of_range_ts_scores_without_recency(self, now, ts):
        message = SlackMessage(id="s1", ts=ts, type="dm", text="hi")

        [suggestion] = generate_smart_suggestions([], [], [message], now=now)

        assert suggestion.score == 80

    def test_recent_mention_is_clamped(self, now):
        message = slack(
            "s1",
            now - timedelta(hours=1),
            "mention",
            text="@you can you check this",
            user_name="Dana",
            channel_name="launch",
        )

        [suggestion] = generate_smart_suggestions([], [], [message], now=now)

        assert suggestion.score == 100
        assert suggestion.context == "You were mentioned from Dana in #launch"

    def test_title_truncated_to_sixty_chars(self, now):
        text = "x" * 80
        message = slack("s1", now - timedelta(hours=8), "dm", text=text)

        [suggestion] = generate_smart_suggestions([], [], [message], now=now)

        assert suggestion.title == "Respond: " + "x" * 60 + "..."


class TestGenerateSmartSuggestions:
    def test_top_ten_without_duplicates(self, now):
        events = [
            calendar_event(f"e{i}", now + timedelta(days=2, minutes=i)) for i in range(6)
        ]
        emails = [
            EmailMessage(id=f"m{i}", subject="Hello", sender="a@example.com") for i in range(6)
        ]
        # Same calendar event delivered twice by the collector
        events.append(events[0])

        suggestions = generate_smart_suggestions(events, emails, [], now=now)

        assert len(suggestions) == 10
        assert len({s.id for s in suggestions}) == 10
        scores = [s.score for s in suggestions]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_source_order(self, now):
        """Stable sort: calendar before email before Slack on equal scores."""
        event = calendar_event("e1", now + timedelta(hours=6))  # 60
        email = EmailMessage(id="m1", subject="Hi", sender="a@example.com", is_unread=True)  # 70
        email_low = EmailMessage(id="m2", subject="Hi", sender="a@example.com")  # 50
        message = slack("s1", now - timedelta(hours=8), "thread")  # 60

        suggestions = generate_smart_suggestions([event], [email, email_low], [message], now=now)

        assert [s.id for s in suggestions] == ["email_m1", "calendar_e1", "slack_s1", "email_m2"]

    def test_empty_sources(self, now):
        assert generate_smart_suggestions([], [], [], now=now) == []


class TestSuggestionAggregator:
    def test_failed_collector_contributes_nothing(self, now):
        async def calendar():
            return [calendar_event("e1", now + timedelta(minutes=10))]

        async def failing_email():
            raise ConnectionError("imap down")

        aggregator = SuggestionAggregator(
            ZoneInfo("UTC"),
            fetch_calendar_events=calendar,
            fetch_emails=failing_email,
            clock=lambda: now,
        )

        suggestions = asyncio.run(aggregator.get_smart_suggestions())

        assert [s.id for s in suggestions] == ["calendar_e1"]


def test_time_of_day_context(now):
    assert time_of_day_context(now.replace(hour=8)) == "morning"
    assert time_of_day_context(now.replace(hour=13)) == "afternoon"
    assert time_of_day_context(now.replace(hour=19)) == "evening"


def test_helpers():
    assert truncate("short", 60) == "short"
    assert format_clock(datetime(2025, 1, 1, 0, 5)) == "12:05 AM"
