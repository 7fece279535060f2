"""
Slack Web API collaborator.

Implements the digest's ``MessageSource`` (conversations.history) and
``MessagingChannel`` (users.lookupByEmail + chat.postMessage). HTTP calls use
``requests`` on a worker thread so the event loop is never blocked; transient
network errors are retried with exponential backoff.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from focusq.config import (
    SLACK_API_BASE_URL,
    SLACK_HISTORY_LIMIT,
    SLACK_MAX_RETRIES,
    SLACK_TIMEOUT_SECONDS,
)
from focusq.contracts.events import SlackMessage
from focusq.observability.logging import get_logger
from focusq.observability.telemetry import counter

logger = get_logger(__name__)


class SlackAPIError(RuntimeError):
    """Raised when Slack answers ``ok: false`` or a non-2xx status."""

    def __init__(self, method: str, error: str):
        super().__init__(f"Slack {method} failed: {error}")
        self.method = method
        self.error = error


class SlackClient:
    def __init__(
        self,
        token: str,
        base_url: str = SLACK_API_BASE_URL,
        timeout: float = SLACK_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._channel_names: dict[str, str] = {}

    @retry(
        stop=stop_after_attempt(SLACK_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def call(
        self, method: str, params: dict[str, Any] | None = None, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        Call one Web API method.

        Raises:
            SlackAPIError: On HTTP error status or ``ok: false``
            requests.RequestException: On network failure after retries
        """
        url = f"{self.base_url}/{method}"
        headers = {"Authorization": f"Bearer {self.token}"}
        if json is not None:
            response = self.session.post(url, headers=headers, json=json, timeout=self.timeout)
        else:
            response = self.session.get(url, headers=headers, params=params, timeout=self.timeout)

        if response.status_code >= 400:
            counter(f"slack.{method}.http_error")
            raise SlackAPIError(method, f"HTTP {response.status_code}")

        data = response.json()
        if not data.get("ok"):
            counter(f"slack.{method}.error")
            raise SlackAPIError(method, str(data.get("error", "unknown_error")))
        return data

    def channel_name(self, channel_id: str) -> str:
        """Resolve a channel's name (cached); falls back to the id."""
        if channel_id not in self._channel_names:
            try:
                data = self.call("conversations.info", params={"channel": channel_id})
                self._channel_names[channel_id] = data.get("channel", {}).get("name") or channel_id
            except (SlackAPIError, requests.RequestException) as e:
                logger.warning("Could not resolve name of channel %s: %s", channel_id, e)
                return channel_id
        return self._channel_names[channel_id]

    def fetch_channel_history(self, channel_id: str, since_epoch_seconds: int) -> list[SlackMessage]:
        data = self.call(
            "conversations.history",
            params={
                "channel": channel_id,
                "oldest": str(since_epoch_seconds),
                "limit": SLACK_HISTORY_LIMIT,
            },
        )
        channel_name = self.channel_name(channel_id)

        messages = []
        for raw in data.get("messages", []):
            ts = raw.get("ts")
            if not ts:
                continue
            profile = raw.get("user_profile") or {}
            user = raw.get("user") or "unknown"
            messages.append(
                SlackMessage(
                    id=ts,
                    channel=channel_id,
                    channel_name=channel_name,
                    user=user,
                    user_name=profile.get("display_name") or profile.get("real_name") or user,
                    text=raw.get("text", ""),
                    ts=ts,
                    thread_ts=raw.get("thread_ts"),
                    permalink=raw.get("permalink"),
                )
            )
        return messages

    def fetch_recent_messages(
        self, channel_ids: Sequence[str], since_epoch_seconds: int
    ) -> list[SlackMessage]:
        """History of every channel; a failing channel is logged and skipped."""
        messages: list[SlackMessage] = []
        for channel_id in channel_ids:
            try:
                messages.extend(self.fetch_channel_history(channel_id, since_epoch_seconds))
            except (SlackAPIError, requests.RequestException) as e:
                logger.warning("Error fetching messages from %s: %s", channel_id, e)
                counter("slack.history.channel_failed")
        return messages

    def lookup_user_id_by_email(self, email: str) -> str | None:
        try:
            data = self.call("users.lookupByEmail", params={"email": email})
        except SlackAPIError as e:
            if e.error == "users_not_found":
                logger.warning("Could not find Slack user for the configured email")
                return None
            raise
        return (data.get("user") or {}).get("id")

    def post_message(self, channel: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self.call("chat.postMessage", json={"channel": channel, **payload})

    # --- async collaborator surface used by the digest composer ---

    async def fetch_recent_channel_messages(
        self, channel_ids: Sequence[str], since_epoch_seconds: int
    ) -> list[SlackMessage]:
        return await asyncio.to_thread(self.fetch_recent_messages, channel_ids, since_epoch_seconds)

    async def resolve_recipient_identity(self, email: str) -> str | None:
        return await asyncio.to_thread(self.lookup_user_id_by_email, email)

    async def dispatch_message(self, recipient_id: str, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(self.post_message, recipient_id, payload)
