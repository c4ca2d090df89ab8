"""
Generation API client.

Wraps the OpenAI SDK, pointed at any OpenAI-compatible endpoint (Gemini by
default). Vendor errors are classified here and nowhere else.
"""

import logging
import os
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from ..core.errors import UpstreamError, classify_error

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_AI_API_KEY")


def resolve_api_key() -> Optional[str]:
    """Return the first API key found in the environment."""
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


class GenerationClient:
    """Text generation against a single API account.

    Failures are raised as tagged GenerationErrors, chained to the original
    SDK exception.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ):
        """Initialize the client.

        Args:
            api_key: API key (defaults to GEMINI_API_KEY / GOOGLE_AI_API_KEY)
            base_url: OpenAI-compatible endpoint (defaults to AI_BASE_URL or Gemini)
            temperature: Sampling temperature passed on every call (optional)
            max_tokens: Maximum tokens to generate (optional)

        Raises:
            ValueError: If no API key is configured
        """
        api_key = api_key or resolve_api_key()
        if not api_key:
            raise ValueError("GEMINI_API_KEY or GOOGLE_AI_API_KEY is not configured")

        self.base_url = base_url or os.environ.get("AI_BASE_URL") or DEFAULT_BASE_URL
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = OpenAI(api_key=api_key, base_url=self.base_url)

    def generate(self, model: str, prompt: str, **kwargs: Any) -> str:
        """Generate a completion for a single-turn prompt.

        Args:
            model: Model identifier (required)
            prompt: Prompt text (required)
            **kwargs: Additional chat completion parameters

        Returns:
            The response text

        Raises:
            ValueError: If model or prompt is empty
            GenerationError: Classified API failure
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if not prompt or not prompt.strip():
            raise ValueError("prompt is required and cannot be empty")

        params = dict(kwargs)
        if self.temperature is not None:
            params.setdefault("temperature", self.temperature)
        if self.max_tokens is not None:
            params.setdefault("max_tokens", self.max_tokens)

        logger.debug("Sending prompt to %s (%d chars)", model, len(prompt), extra={"model": model})
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                **params
            )
        except OpenAIError as e:
            raise classify_error(e, model=model) from e

        if not response.choices:
            raise UpstreamError("Response contained no choices", model=model)

        content = response.choices[0].message.content
        if content is None:
            raise UpstreamError("Response contained no text content", model=model)
        return content
