"""
Token estimation and accounting.

Context budgeting works on a length-based estimate rather than an exact
tokenizer count, so trigger points are approximate by nature.
"""

import math

from ..models.contracts import TokenUsage

# Hard ceiling for the estimated scratchpad size
TOKEN_BUDGET = 150_000

# Soft trigger for tool-use eviction (must stay below TOKEN_BUDGET)
CONTEXT_THRESHOLD = 100_000

# Most recent tool-use entries that survive eviction
KEEP_TOOL_USES = 5

CHARS_PER_TOKEN = 4

# Flat overhead per message/entry for role markers and separators
PER_ITEM_OVERHEAD = 4


def estimate_tokens(text: str | None) -> int:
    """
    Estimate the token count of a piece of text.

    Args:
        text: Text to estimate (None counts as empty)

    Returns:
        ceil(len(text) / 4), 0 for empty input
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class TokenCounter:
    """
    Accumulates provider-reported token usage across the LLM calls of one run.

    Example:
        counter = TokenCounter()
        counter.record(input_tokens=1200, output_tokens=80)
        counter.usage.total_tokens  # 1280
    """

    def __init__(self):
        self.usage = TokenUsage()
        self.calls = 0

    def record(self, input_tokens: int, output_tokens: int) -> None:
        """Add the usage of one LLM call."""
        self.usage.add(max(input_tokens, 0), max(output_tokens, 0))
        self.calls += 1

    def count_text(self, text: str) -> int:
        return estimate_tokens(text)

    def snapshot(self, context_tokens: int = 0) -> TokenUsage:
        """
        Copy of the accumulated usage stamped with the final context size.

        Args:
            context_tokens: Estimated tokens of the final scratchpad

        Returns:
            Independent TokenUsage instance
        """
        usage = self.usage.model_copy()
        usage.context_tokens = context_tokens
        return usage

    def tokens_per_second(self, elapsed_seconds: float) -> float:
        if elapsed_seconds <= 0:
            return 0.0
        return self.usage.output_tokens / elapsed_seconds
