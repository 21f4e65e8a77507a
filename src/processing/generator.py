"""Email body generation — one Claude call per request, no retries."""

from __future__ import annotations

import logging

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from src.processing.prompts import build_body_prompt

logger = logging.getLogger(__name__)

# Sonnet writes better marketing copy than Haiku and the call is user-triggered.
_MODEL = "claude-sonnet-4-6"
_MAX_TOKENS = 1024


class GenerationError(Exception):
    """Raised when the body could not be generated. Propagates to the caller."""


class ContentGenerator:
    """Wraps a single Anthropic Messages call that drafts an email body.

    ``initialize()`` must succeed before ``generate_body()`` can be used; its
    return value tells the caller whether AI features are available at all.

    Usage::

        generator = ContentGenerator(api_key)
        if generator.initialize() is None:
            body = await generator.generate_body("Spring sale")
    """

    def __init__(self, api_key: str | None) -> None:
        self._api_key = api_key or ""
        self._client: AsyncAnthropic | None = None

    @property
    def ready(self) -> bool:
        return self._client is not None

    def initialize(self) -> str | None:
        """Create the API client. Returns None on success, else an error message."""
        if not self._api_key:
            message = "Anthropic API key (ANTHROPIC_API_KEY) is missing or empty. AI features will be disabled."
            logger.error(message)
            return message
        try:
            self._client = AsyncAnthropic(api_key=self._api_key)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to create Anthropic client", exc_info=True)
            return f"Failed to initialize the AI service using ANTHROPIC_API_KEY: {exc}"
        return None

    async def generate_body(self, subject: str, custom_prompt: str | None = None) -> str:
        """Draft an email body for ``subject`` (or answer ``custom_prompt``).

        Raises:
            GenerationError: if the client isn't initialised or the call fails.
        """
        if self._client is None:
            raise GenerationError(
                "AI service not initialized. Initialization might have failed or the API key is missing."
            )

        try:
            response = await self._client.messages.create(
                model=_MODEL,
                max_tokens=_MAX_TOKENS,
                messages=[{"role": "user", "content": build_body_prompt(subject, custom_prompt)}],
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Body generation failed: %s", exc)
            raise GenerationError(f"Failed to generate content: {exc}") from exc

        text = "".join(block.text for block in response.content if isinstance(block, TextBlock))
        if not text:
            raise GenerationError(
                f"Model returned no text (stop_reason={response.stop_reason!r})"
            )
        return text
