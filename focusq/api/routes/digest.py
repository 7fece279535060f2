"""Digest control endpoints: start/stop, manual runs and task feedback."""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from focusq.api.models import (
    DigestCycleResponse,
    InteractionRequest,
    InteractionResponse,
    TaskCreatedRequest,
)
from focusq.digest.scheduler import parse_slot
from focusq.digest.service import ConfigurationError
from focusq.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/digest", tags=["digest"])


@router.get("/status")
async def digest_status(request: Request) -> dict[str, Any]:
    return request.app.state.digest_service.status()


@router.post("/start")
async def start_digest(request: Request) -> dict[str, Any]:
    service = request.app.state.digest_service
    started = service.start()
    return {"started": started, "missing_configuration": service.missing_configuration()}


@router.post("/stop")
async def stop_digest(request: Request) -> dict[str, Any]:
    request.app.state.digest_service.stop()
    return {"stopped": True}


@router.post("/run/{slot}", response_model=DigestCycleResponse, response_model_by_alias=True)
async def run_digest(request: Request, slot: str) -> DigestCycleResponse:
    """Run one cycle now. Still subject to the one-hour resend guard."""
    try:
        parse_slot(slot)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    try:
        result = await request.app.state.digest_service.run_now(slot)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    return DigestCycleResponse(**asdict(result))


@router.post("/tasks")
async def mark_task_created(request: Request, body: TaskCreatedRequest) -> dict[str, Any]:
    """Host callback after a suggestion was converted into a task."""
    service = request.app.state.digest_service
    await asyncio.to_thread(service.mark_task_created, body.source_id, body.task_id)
    return {"recorded": True}


@router.post("/actions", response_model=InteractionResponse, response_model_by_alias=True)
async def handle_actions(request: Request, body: InteractionRequest) -> InteractionResponse:
    """Create-task button clicks forwarded from the Slack interaction relay."""
    handler = request.app.state.action_handler
    if handler is None:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED, detail="No task converter configured"
        )
    task_ids = await handler.handle_interaction({"actions": body.actions})
    return InteractionResponse(task_ids=task_ids)
