"""
Actionability analysis of Slack messages with Gemini.

The model is asked for a small JSON verdict (actionable?, summary, suggested
action, urgency, reason). Output is validated against
``ActionabilityAnalysis``; anything that does not validate raises
``AnalysisSchemaError`` so the digest drops that one message.

Transient Vertex AI failures are converted to builtin exception types and
retried with exponential backoff before surfacing as ``AnalysisError``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Sequence

from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from focusq.config import GEMINI_MAX_TOKENS, GEMINI_TEMPERATURE, LLM_MAX_RETRIES
from focusq.contracts.events import SlackMessage
from focusq.contracts.suggestions import ActionabilityAnalysis
from focusq.integrations.gemini import get_gemini_model
from focusq.observability.logging import get_logger
from focusq.observability.telemetry import counter

logger = get_logger(__name__)

ANALYSIS_PROMPT = """Analyze this Slack message and determine if it requires action from the user.

Message: "{text}"
From: {user_name}
Channel: #{channel_name}
From a VIP contact: {is_vip}

Determine:
1. Is this an actionable item? (question, request, decision needed, bug report, feature request, etc.)
2. What specific action should the user take?
3. Is it urgent or can it wait?
4. Brief summary (1 sentence)

Respond in JSON format:
{{
  "isActionable": boolean,
  "summary": "one sentence summary",
  "suggestedAction": "what the user should do",
  "urgency": "high" | "medium" | "low",
  "reason": "why this needs attention"
}}

If not actionable, set isActionable to false."""


class AnalysisError(RuntimeError):
    """Raised when the analysis call fails."""


class AnalysisSchemaError(ValueError):
    """Raised when the model output doesn't match ``ActionabilityAnalysis``."""


def build_prompt(message: SlackMessage, vip_list: Sequence[str]) -> str:
    return ANALYSIS_PROMPT.format(
        text=message.text,
        user_name=message.user_name or message.user or "Unknown",
        channel_name=message.channel_name or message.channel,
        is_vip="yes" if message.user in vip_list else "no",
    )


def parse_analysis(raw_response: str) -> ActionabilityAnalysis:
    """
    Raises:
        AnalysisSchemaError: If the response is not JSON or doesn't validate
    """
    text = raw_response.strip()
    if text.startswith("```"):
        text = text.strip("`").removeprefix("json").strip()
    try:
        return ActionabilityAnalysis.model_validate(json.loads(text))
    except json.JSONDecodeError as e:
        counter("analysis.json_parse_error")
        raise AnalysisSchemaError(f"Analysis response is not valid JSON: {e}") from e
    except ValidationError as e:
        counter("analysis.schema_validation_failed")
        raise AnalysisSchemaError(f"Analysis response doesn't match schema: {e}") from e


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, OSError)),
    reraise=True,
)
def call_gemini(prompt: str) -> str:
    """
    Call Gemini with retry on transient Vertex AI errors.

    Raises:
        TimeoutError / ConnectionError / OSError: Transient errors (retried)
        Exception: Anything else (not retried)
    """
    from google.api_core.exceptions import (
        DeadlineExceeded,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    model = get_gemini_model()
    generation_config = {
        "temperature": GEMINI_TEMPERATURE,
        "max_output_tokens": GEMINI_MAX_TOKENS,
        "response_mime_type": "application/json",
    }
    try:
        return model.generate_content(prompt, generation_config=generation_config).text
    except DeadlineExceeded as e:
        counter("analysis.timeout")
        raise TimeoutError(f"Analysis call timed out: {e}") from e
    except (ServiceUnavailable, InternalServerError) as e:
        counter("analysis.service_unavailable")
        logger.warning("Gemini unavailable, will retry: %s", e)
        raise ConnectionError(f"Gemini unavailable: {e}") from e
    except ResourceExhausted as e:
        counter("analysis.rate_limited")
        logger.warning("Gemini rate limited (429), will retry: %s", e)
        raise OSError(f"Gemini rate limited: {e}") from e


class GeminiActionabilityAnalyzer:
    """``ActionabilityAnalyzer`` backed by Gemini."""

    def __init__(self, llm_call_fn: Callable[[str], str] = call_gemini):
        self.llm_call_fn = llm_call_fn

    def analyze(self, message: SlackMessage, vip_list: Sequence[str]) -> ActionabilityAnalysis:
        prompt = build_prompt(message, vip_list)
        try:
            raw_response = self.llm_call_fn(prompt)
        except Exception as e:
            counter("analysis.call_error")
            raise AnalysisError(f"Analysis call failed: {e}") from e
        return parse_analysis(raw_response)

    async def analyze_message_actionability(
        self, message: SlackMessage, vip_list: Sequence[str], user_identity: str
    ) -> ActionabilityAnalysis:
        # user_identity is not sent to the model
        return await asyncio.to_thread(self.analyze, message, vip_list)
