"""
Raw provider payloads consumed by the suggestion engine.

These are supplied by collaborators (calendar, mail and Slack collectors) and
are never mutated by FocusQ. Optional fields default to empty values so that
partially populated payloads still flow through normalization and scoring.
"""

from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SlackMessageType = Literal["mention", "dm", "thread", "saved", "channel"]


class CalendarEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    start: str
    end: str = ""
    description: str | None = None
    location: str | None = None


class EmailMessage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    subject: str = ""
    sender: str = Field(default="", alias="from")
    snippet: str = ""
    date: str = ""
    is_starred: bool = Field(default=False, alias="isStarred")
    is_unread: bool = Field(default=False, alias="isUnread")


class SlackMessage(BaseModel):
    """A Slack message as delivered by the Slack collector.

    ``ts`` is Slack's fractional Unix-seconds string. ``type`` is only meaningful
    for the on-demand aggregator; digest collection always yields ``channel``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    channel: str = ""
    channel_name: str = Field(default="", alias="channelName")
    user: str = ""
    user_name: str = Field(default="", alias="userName")
    text: str = ""
    ts: str
    thread_ts: str | None = Field(default=None, alias="threadTs")
    permalink: str | None = None
    type: SlackMessageType = "channel"

    @property
    def timestamp(self) -> float:
        """Message time in Unix seconds (0.0 when ``ts`` is malformed or not finite)."""
        try:
            seconds = float(self.ts)
        except ValueError:
            return 0.0
        return seconds if math.isfinite(seconds) else 0.0
