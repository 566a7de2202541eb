"""LLM client for chat-driven itinerary edits with OpenAI integration.

Security: Reads API key from environment only, never hardcoded.
Provides a deterministic stub when no key is present for local runs and tests.

The adapter treats model output as untrusted: the top level must parse to a
JSON object with a valid ``interaction_type``. Only the optional fields
(patch, suggestions, sources, assistant_response) are coerced to defaults.
"""

import asyncio
import json
import logging
from typing import Any, Protocol

from openai import AsyncOpenAI

from backend.app.config import Settings, get_settings
from backend.app.errors import GenerationError
from backend.app.models.chat import ModelReply
from backend.app.models.common import InteractionType
from backend.app.utils.metrics import generation_failures_total

logger = logging.getLogger(__name__)

DEFAULT_NARRATION = "Okay! Let me know if you'd like any other changes to your trip."


class GenerativeClient(Protocol):
    """Protocol for generative model implementations."""

    async def complete(self, prompt: str) -> str:
        """Run the prompt and return raw model text.

        Implementations must request structured (JSON) output.
        """
        ...


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required).

    Answers every message as a question and never proposes a patch.
    """

    async def complete(self, prompt: str) -> str:
        """Generate deterministic stub reply."""
        return json.dumps(
            {
                "interaction_type": "question",
                "patch": [],
                "assistant_response": (
                    "I can't reach the planning assistant right now, "
                    "so your itinerary has been left unchanged."
                ),
                "suggestions": [],
                "sources": [],
            }
        )


class OpenAIClient:
    """OpenAI-backed generative client."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def complete(self, prompt: str) -> str:
        """Run prompt with JSON-object response format."""
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"},
            temperature=0.3,
            max_tokens=4000,
        )
        return response.choices[0].message.content or ""


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str) and v.strip()]


def parse_model_reply(raw: str) -> ModelReply:
    """Parse and validate raw model text.

    Args:
        raw: Model output expected to be a JSON object

    Returns:
        ModelReply with optional fields coerced to safe defaults

    Raises:
        GenerationError: Output is not JSON, not an object, or lacks a valid
            interaction_type
    """
    text = raw.strip()
    # Some models wrap JSON in a markdown fence even in JSON mode
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise GenerationError("model output is not valid JSON") from e

    if not isinstance(data, dict):
        raise GenerationError(f"model output is a {type(data).__name__}, expected object")

    try:
        interaction_type = InteractionType(data.get("interaction_type"))
    except ValueError as e:
        raise GenerationError(
            f"model output has invalid interaction_type: {data.get('interaction_type')!r}"
        ) from e

    patch = data.get("patch")
    narration = data.get("assistant_response")

    return ModelReply(
        interaction_type=interaction_type,
        patch=patch if isinstance(patch, list) else [],
        narration=narration if isinstance(narration, str) and narration.strip() else DEFAULT_NARRATION,
        suggestions=_string_list(data.get("suggestions")),
        sources=_string_list(data.get("sources")),
    )


class GenerativeAdapter:
    """Invokes the model under a timeout and validates its reply."""

    def __init__(self, client: GenerativeClient, timeout_ms: int = 30000) -> None:
        self._client = client
        self._timeout_s = timeout_ms / 1000

    async def complete(self, prompt: str) -> ModelReply:
        """Run prompt and return a validated reply.

        Raises:
            GenerationError: Call failed, timed out, or output was unusable
        """
        try:
            raw = await asyncio.wait_for(self._client.complete(prompt), timeout=self._timeout_s)
        except TimeoutError as e:
            generation_failures_total.labels(reason="timeout").inc()
            logger.error(f"[llm] model call timed out after {self._timeout_s}s")
            raise GenerationError("model call timed out") from e
        except Exception as e:
            generation_failures_total.labels(reason="call_error").inc()
            logger.error(f"[llm] model call failed: {type(e).__name__}: {e}")
            raise GenerationError("model call failed") from e

        try:
            return parse_model_reply(raw)
        except GenerationError as e:
            generation_failures_total.labels(reason="unparsable").inc()
            logger.error(f"[llm] rejected model output: {e}; raw={raw[:500]!r}")
            raise


def get_llm_client(settings: Settings | None = None) -> GenerativeClient:
    """Factory function to get appropriate client based on config.

    Returns:
        OpenAIClient if API key is configured, DeterministicStubClient otherwise
    """
    settings = settings or get_settings()
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client for plan chat")
        return OpenAIClient(api_key=api_key.get_secret_value(), model=settings.openai_model)

    logger.warning("No OpenAI API key configured, using deterministic stub client")
    return DeterministicStubClient()
