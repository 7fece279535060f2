"""
Gemini Model Manager - shared Vertex AI model instance.

Initialized once per process from GOOGLE_CLOUD_PROJECT / GEMINI_LOCATION and
reused by every analysis call.
"""

from __future__ import annotations

import os
from functools import lru_cache

from focusq.config import GEMINI_LOCATION, GEMINI_MODEL
from focusq.observability.logging import get_logger

logger = get_logger(__name__)

SYSTEM_INSTRUCTION = "You are an assistant that identifies actionable items in Slack messages."


class GeminiInitializationError(RuntimeError):
    """Raised when Gemini model cannot be initialized."""


def gemini_configured() -> bool:
    """Credential presence check only (no API call)."""
    return bool(os.getenv("GOOGLE_CLOUD_PROJECT"))


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create the shared Gemini model.

    Raises:
        GeminiInitializationError: If the project is not configured or init fails
    """
    import vertexai
    from vertexai.generative_models import GenerativeModel

    project = os.getenv("GOOGLE_CLOUD_PROJECT")
    if not project:
        raise GeminiInitializationError("GOOGLE_CLOUD_PROJECT not set")

    try:
        vertexai.init(project=project, location=GEMINI_LOCATION)
        model = GenerativeModel(GEMINI_MODEL, system_instruction=SYSTEM_INSTRUCTION)
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e

    logger.info(
        "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
        project,
        GEMINI_LOCATION,
        GEMINI_MODEL,
    )
    return model


def clear_model_cache() -> None:
    get_gemini_model.cache_clear()
