"""Pydantic request/response models for the FocusQ host API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from focusq.contracts.events import CalendarEvent, EmailMessage, SlackMessage
from focusq.contracts.suggestions import ActionableItem, Suggestion

MAX_ITEMS_PER_SOURCE = 500


class SuggestionsRequest(BaseModel):
    """Raw items the host already fetched, scored without touching digest state."""

    model_config = ConfigDict(populate_by_name=True)

    calendar_events: list[CalendarEvent] = Field(
        default_factory=list, alias="calendarEvents", max_length=MAX_ITEMS_PER_SOURCE
    )
    emails: list[EmailMessage] = Field(default_factory=list, max_length=MAX_ITEMS_PER_SOURCE)
    slack_messages: list[SlackMessage] = Field(
        default_factory=list, alias="slackMessages", max_length=MAX_ITEMS_PER_SOURCE
    )


class SuggestionsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    suggestions: list[Suggestion]
    time_of_day: str = Field(alias="timeOfDay")


class TaskCreatedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_id: str = Field(alias="sourceId", min_length=1, max_length=200)
    task_id: str = Field(alias="taskId", min_length=1, max_length=200)


class DigestCycleResponse(BaseModel):
    slot: str
    status: str
    items: list[ActionableItem] = Field(default_factory=list)
    analyzed: int = 0
    error: str | None = None


class InteractionRequest(BaseModel):
    """Slack ``block_actions`` payload forwarded by the interaction relay."""

    actions: list[dict[str, Any]] = Field(default_factory=list, max_length=25)


class InteractionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_ids: list[str] = Field(alias="taskIds")
