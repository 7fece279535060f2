"""
Slack Block Kit payload for a digest message.

One section per actionable item (summary, sender and channel, suggested action,
reasons) with a "Create Task" button. The button's ``action_id`` and ``value``
are parsed back by ``focusq.digest.actions`` when the user clicks it.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from focusq.contracts.suggestions import ActionableItem

CREATE_TASK_ACTION_PREFIX = "create_task_"

SLOT_EMOJIS: dict[str, str] = {
    "09:00": "🌅",
    "12:00": "☀️",
    "17:00": "🌆",
}
DEFAULT_EMOJI = "📬"


def fallback_text(items: Sequence[ActionableItem], slot_label: str) -> str:
    """Notification text shown by clients that cannot render blocks."""
    return f"{DEFAULT_EMOJI} {slot_label} Inbox: {len(items)} things you might have missed"


def _item_section(index: int, item: ActionableItem) -> dict[str, Any]:
    lines = [
        f"*{index}. {item.summary or item.title}*",
        f"From *{item.user_name or item.user or 'Unknown'}* in <#{item.channel}>",
    ]
    if item.suggested_action:
        lines.append(f"_{item.suggested_action}_")
    lines.extend(f"• {reason}" for reason in item.reasons)

    return {
        "type": "section",
        "text": {"type": "mrkdwn", "text": "\n".join(lines)},
        "accessory": {
            "type": "button",
            "text": {"type": "plain_text", "text": "📝 Create Task"},
            "action_id": f"{CREATE_TASK_ACTION_PREFIX}{item.id}",
            "value": json.dumps(
                {
                    "messageId": item.source_id,
                    "summary": item.summary,
                    "channel": item.channel,
                    "permalink": item.permalink,
                }
            ),
        },
    }


def build_digest_blocks(items: Sequence[ActionableItem], slot_label: str) -> list[dict[str, Any]]:
    emoji = SLOT_EMOJIS.get(slot_label, DEFAULT_EMOJI)

    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"{emoji} Things You Might Have Missed"},
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"Here are *{len(items)} actionable items* from your monitored channels:",
            },
        },
        {"type": "divider"},
    ]

    for index, item in enumerate(items, start=1):
        blocks.append(_item_section(index, item))

        if item.permalink:
            blocks.append(
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"<{item.permalink}|View message>"}],
                }
            )

        if index < len(items):
            blocks.append({"type": "divider"})

    blocks.append(
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": "💡 Tasks created from these items won't appear in future digests",
                }
            ],
        }
    )
    return blocks
