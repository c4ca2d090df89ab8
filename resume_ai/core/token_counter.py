"""
Token counting and usage estimation.

The generation API is billed per token, but responses are priced from plain
text, so token counts are approximated from word counts.
"""

import math
from dataclasses import dataclass

# Rough approximation: 1 token ~= 0.75 words
WORDS_PER_TOKEN = 0.75


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation."""
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a text from its whitespace-separated words.

    Empty or whitespace-only text counts as zero tokens.
    """
    words = len((text or "").split())
    return math.ceil(words / WORDS_PER_TOKEN)


def estimate_usage(input_text: str, output_text: str) -> TokenUsage:
    """Estimate prompt and completion tokens independently."""
    return TokenUsage(
        prompt_tokens=estimate_tokens(input_text),
        completion_tokens=estimate_tokens(output_text)
    )
