"""FastAPI host surface for FocusQ.

Exposes the digest engine to the desktop client: scheduler start/stop,
smart suggestions, task-created feedback and create-task button actions.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from focusq.api.routes.digest import router as digest_router
from focusq.api.routes.health import router as health_router
from focusq.api.routes.suggestions import router as suggestions_router
from focusq.config import APP_VERSION, Settings
from focusq.digest.actions import TaskActionHandler, TaskConverter
from focusq.digest.service import DigestService
from focusq.digest.state import DeduplicationStore
from focusq.infrastructure.env import get_optional_env
from focusq.integrations.analysis import GeminiActionabilityAnalyzer
from focusq.integrations.gemini import gemini_configured
from focusq.integrations.slack import SlackClient
from focusq.observability.logging import get_logger
from focusq.suggestions.aggregator import SuggestionAggregator

logger = get_logger(__name__)


def create_app(
    digest_service: DigestService,
    aggregator: SuggestionAggregator,
    task_converter: TaskConverter | None = None,
    autostart: bool = True,
) -> FastAPI:
    """Build the API around already-wired engine components."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if autostart:
            digest_service.start()
        yield
        await digest_service.aclose()

    app = FastAPI(title="FocusQ API", version=APP_VERSION, lifespan=lifespan)
    app.state.digest_service = digest_service
    app.state.aggregator = aggregator
    app.state.action_handler = (
        TaskActionHandler(task_converter, digest_service.mark_task_created)
        if task_converter is not None
        else None
    )

    app.include_router(health_router)
    app.include_router(suggestions_router)
    app.include_router(digest_router)
    return app


def build_default_app() -> FastAPI:
    """
    Wire the engine from environment configuration.

    Environment:
        - FOCUSQ_SETTINGS_PATH: JSON settings file (else FOCUSQ_* variables)
        - SLACK_BOT_TOKEN: messaging credential
        - GOOGLE_CLOUD_PROJECT: analysis credential
    """
    settings_path = get_optional_env("FOCUSQ_SETTINGS_PATH")
    if settings_path:
        settings = Settings.load(Path(settings_path).expanduser())
    else:
        settings = Settings.from_env()

    store = DeduplicationStore()

    slack_token = get_optional_env("SLACK_BOT_TOKEN")
    slack = SlackClient(slack_token) if slack_token else None
    analyzer = GeminiActionabilityAnalyzer() if gemini_configured() else None

    service = DigestService(settings, store, source=slack, analyzer=analyzer, channel=slack)
    aggregator = SuggestionAggregator(settings.tz)
    return create_app(service, aggregator)


def main() -> None:
    import uvicorn

    host = os.getenv("FOCUSQ_HOST", "127.0.0.1")
    port = int(os.getenv("FOCUSQ_PORT", "8765"))
    logger.info("Starting FocusQ API on %s:%d", host, port)
    uvicorn.run(build_default_app(), host=host, port=port)


if __name__ == "__main__":
    main()
