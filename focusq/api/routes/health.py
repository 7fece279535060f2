"""Health check endpoint."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from focusq.config import APP_VERSION
from focusq.integrations.gemini import gemini_configured

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Service status and credential readiness (presence checks only, no API calls)."""
    service = request.app.state.digest_service
    return {
        "status": "healthy",
        "service": "FocusQ",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "digest_running": service.running,
        "llm": {"ready": gemini_configured()},
    }
