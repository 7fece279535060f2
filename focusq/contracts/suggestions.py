"""
Suggestion contracts shared by the aggregator and the digest.

JSON field names follow the desktop client's camelCase (``sourceId``,
``dueDate``, ...); Python attributes stay snake_case.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SuggestionSource = Literal["calendar", "email", "slack"]
Priority = Literal["low", "medium", "high"]
Urgency = Literal["high", "medium", "low"]


def make_suggestion_id(source: str, source_id: str) -> str:
    """Deterministic suggestion id: the same raw item always maps to the same id."""
    return f"{source}_{source_id}"


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str
    source: SuggestionSource
    source_id: str = Field(alias="sourceId")
    priority: Priority
    context: str = ""
    due_date: str | None = Field(default=None, alias="dueDate")
    score: int


class ActionableItem(Suggestion):
    """A Slack message that passed actionability analysis in one digest cycle."""

    channel: str
    channel_name: str = Field(default="", alias="channelName")
    user: str = ""
    user_name: str = Field(default="", alias="userName")
    text: str = ""
    thread_ts: str | None = Field(default=None, alias="threadTs")
    summary: str
    suggested_action: str = Field(alias="suggestedAction")
    reasons: list[str] = Field(default_factory=list)
    permalink: str | None = None
    timestamp: int


class ActionabilityAnalysis(BaseModel):
    """Validated response of the actionability analysis collaborator."""

    model_config = ConfigDict(populate_by_name=True)

    is_actionable: bool = Field(alias="isActionable")
    summary: str = ""
    suggested_action: str = Field(default="", alias="suggestedAction")
    urgency: Urgency = "low"
    reason: str = ""
