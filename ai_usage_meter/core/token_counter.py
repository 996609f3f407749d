"""
Token counting and usage tracking.

Holds token counts reported by providers and the fallback estimate used
when a provider omits them.
"""

import math
from dataclasses import dataclass

# Rough ratio for English text
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.

    `estimated` is True when the counts come from `estimate_tokens`
    rather than from the provider.
    """
    input_tokens: int
    output_tokens: int
    estimated: bool = False

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens


def estimate_tokens(text: str) -> int:
    """Estimate the token count of `text` at about one token per four characters."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
