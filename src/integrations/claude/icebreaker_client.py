"""
Claude Messages API client for icebreaker generation.
Uses prompt caching on the static system prompt.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from anthropic import Anthropic, APIConnectionError, APIStatusError, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.config import settings
from src.core.logging import get_logger
from src.services.icebreaker.prompt_template import SYSTEM_PROMPT

logger = get_logger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class IcebreakerGenerationError(Exception):
    """Claude did not return usable variations."""

    pass


@dataclass
class GenerationResult:
    variations: list[dict[str, Any]]
    tokens_used: int
    model: str


class IcebreakerClient:
    """Thin wrapper over anthropic.Anthropic().messages."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        api_key = api_key or settings.anthropic_api_key
        if not api_key:
            raise IcebreakerGenerationError("ANTHROPIC_API_KEY not configured")
        self.client = Anthropic(api_key=api_key)
        self.model = model or settings.claude_model

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=20),
        retry=retry_if_exception_type((RateLimitError, APIConnectionError)),
        reraise=True,
    )
    def _create(self, user_prompt: str) -> Any:
        return self.client.messages.create(
            model=self.model,
            max_tokens=2048,
            system=[
                {
                    "type": "text",
                    "text": SYSTEM_PROMPT,
                    "cache_control": {"type": "ephemeral"},  # Enable caching
                }
            ],
            messages=[{"role": "user", "content": user_prompt}],
        )

    def generate(self, user_prompt: str) -> GenerationResult:
        """
        Generate icebreaker variations.

        Raises:
            IcebreakerGenerationError: API failure or unparseable response
        """
        try:
            message = self._create(user_prompt)
        except (APIStatusError, APIConnectionError) as e:
            logger.error(f"Claude request failed: {e}")
            raise IcebreakerGenerationError(f"Claude request failed: {e}") from e

        variations = self.parse_variations(message)
        usage = getattr(message, "usage", None)
        tokens_used = (usage.input_tokens + usage.output_tokens) if usage else 0

        return GenerationResult(variations=variations, tokens_used=tokens_used, model=self.model)

    def parse_variations(self, message: Any) -> list[dict[str, Any]]:
        """
        Extract the "variations" array from a Claude response.

        Raises:
            IcebreakerGenerationError: If the response is empty, not JSON or has no variations
        """
        if not message.content:
            raise IcebreakerGenerationError("Message has no content")

        text_content = None
        for block in message.content:
            if block.type == "text":
                text_content = block.text
                break

        if not text_content:
            raise IcebreakerGenerationError("No text content found in message")

        try:
            data = json.loads(_FENCE.sub("", text_content.strip()))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON response: {text_content[:500]}")
            raise IcebreakerGenerationError(f"Invalid JSON response from Claude: {e}") from e

        variations = data.get("variations") if isinstance(data, dict) else None
        if not variations or not isinstance(variations, list):
            raise IcebreakerGenerationError("Response contained no variations")

        return [v for v in variations if isinstance(v, dict) and v.get("body")][:3]
