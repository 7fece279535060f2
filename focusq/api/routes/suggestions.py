"""Smart suggestion endpoints (on-demand aggregator, no digest state)."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from focusq.api.models import SuggestionsRequest, SuggestionsResponse
from focusq.suggestions.aggregator import generate_smart_suggestions, time_of_day_context

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


@router.get("", response_model=SuggestionsResponse, response_model_by_alias=True)
async def get_smart_suggestions(request: Request) -> SuggestionsResponse:
    """Top 10 suggestions from the configured calendar, email and Slack collectors."""
    aggregator = request.app.state.aggregator
    suggestions = await aggregator.get_smart_suggestions()
    local_now = datetime.now(UTC).astimezone(aggregator.tz)
    return SuggestionsResponse(suggestions=suggestions, time_of_day=time_of_day_context(local_now))


@router.post("", response_model=SuggestionsResponse, response_model_by_alias=True)
async def score_suggestions(request: Request, body: SuggestionsRequest) -> SuggestionsResponse:
    """Score items supplied by the host."""
    aggregator = request.app.state.aggregator
    now = datetime.now(UTC)
    suggestions = generate_smart_suggestions(
        body.calendar_events, body.emails, body.slack_messages, now=now, tz=aggregator.tz
    )
    return SuggestionsResponse(
        suggestions=suggestions, time_of_day=time_of_day_context(now.astimezone(aggregator.tz))
    )
