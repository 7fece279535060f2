"""
"Create Task" button handling for digest messages.

The digest posts one button per item (see ``focusq.digest.blocks``). When the
user clicks it, the interaction relay hands the Slack ``block_actions`` payload
to the host, which passes it here. The item is converted into a task through
the host's task converter and recorded as created, so it never shows up in a
digest again.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from focusq.digest.blocks import CREATE_TASK_ACTION_PREFIX
from focusq.observability.logging import get_logger
from focusq.observability.telemetry import counter

logger = get_logger(__name__)


class TaskActionValue(BaseModel):
    """JSON carried in the button's ``value``."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId")
    summary: str = ""
    channel: str = ""
    permalink: str | None = None


class TaskConverter(Protocol):
    async def convert_item_to_task(self, item: TaskActionValue) -> str: ...


def parse_create_task_action(action: dict[str, Any]) -> TaskActionValue | None:
    """Return the button value for ``create_task_*`` actions, else ``None``."""
    action_id = str(action.get("action_id", ""))
    if not action_id.startswith(CREATE_TASK_ACTION_PREFIX):
        return None
    try:
        return TaskActionValue.model_validate(json.loads(action.get("value") or "{}"))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Malformed create-task action %s: %s", action_id, e)
        counter("digest.actions.malformed")
        return None


class TaskActionHandler:
    def __init__(
        self,
        converter: TaskConverter,
        mark_task_created: Callable[[str, str], None],
    ):
        self.converter = converter
        self.mark_task_created = mark_task_created

    async def handle_action(self, action: dict[str, Any]) -> str | None:
        """
        Convert one button action into a task.

        Returns:
            The created task id, or ``None`` if the action is not a create-task action

        Raises:
            Exception: Whatever the task converter raises (nothing is recorded)
        """
        value = parse_create_task_action(action)
        if value is None:
            return None

        task_id = await self.converter.convert_item_to_task(value)
        await asyncio.to_thread(self.mark_task_created, value.message_id, task_id)
        counter("digest.actions.task_created")
        return task_id

    async def handle_interaction(self, payload: dict[str, Any]) -> list[str]:
        """Process every action of a Slack ``block_actions`` interaction payload."""
        task_ids: list[str] = []
        for action in payload.get("actions", []):
            task_id = await self.handle_action(action)
            if task_id:
                task_ids.append(task_id)
        return task_ids
