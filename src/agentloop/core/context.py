"""
Context Manager: keeps the scratchpad inside its token budget.

Before each decision step the estimated scratchpad cost is compared with the
soft threshold. Above it, the oldest tool-use entries beyond the most recent
``keep_tool_uses`` are evicted. Messages and the system prompt are never
touched, and running over the hard budget afterwards is logged, not raised.
"""

from ..exceptions import ConfigurationError
from ..utils.logging import context_logger, get_logger
from ..utils.token_counter import CONTEXT_THRESHOLD, KEEP_TOOL_USES, TOKEN_BUDGET
from .scratchpad import Scratchpad


class ContextManager:
    """
    Structural, oldest-first eviction of tool-use history.

    Example:
        manager = ContextManager(token_budget=8000, context_threshold=6000, keep_tool_uses=2)
        evicted = manager.enforce(scratchpad, system_prompt)
        if evicted:
            ...  # announce context_cleared before the next thinking step
    """

    def __init__(
        self,
        token_budget: int = TOKEN_BUDGET,
        context_threshold: int = CONTEXT_THRESHOLD,
        keep_tool_uses: int = KEEP_TOOL_USES,
    ):
        """
        Initialize the context manager.

        Args:
            token_budget: Hard ceiling on estimated tokens
            context_threshold: Soft trigger for eviction, must be below the budget
            keep_tool_uses: Most recent tool-use entries that are always retained

        Raises:
            ConfigurationError: If the limits are inconsistent
        """
        if token_budget <= 0:
            raise ConfigurationError("token_budget must be positive", "token_budget", token_budget)
        if context_threshold >= token_budget:
            raise ConfigurationError(
                f"context_threshold ({context_threshold}) must be lower than "
                f"token_budget ({token_budget})",
                "context_threshold",
                context_threshold,
            )
        if keep_tool_uses < 0:
            raise ConfigurationError(
                "keep_tool_uses must be >= 0", "keep_tool_uses", keep_tool_uses
            )

        self.token_budget = token_budget
        self.context_threshold = context_threshold
        self.keep_tool_uses = keep_tool_uses
        self.logger = get_logger(__name__)

    @classmethod
    def from_config(cls, config) -> "ContextManager":
        return cls(
            token_budget=config.token_budget,
            context_threshold=config.context_threshold,
            keep_tool_uses=config.keep_tool_uses,
        )

    def estimate(self, scratchpad: Scratchpad, system_prompt: str = "") -> int:
        return scratchpad.estimated_tokens(system_prompt)

    def requires_eviction(self, scratchpad: Scratchpad, system_prompt: str = "") -> bool:
        return self.estimate(scratchpad, system_prompt) > self.context_threshold

    def enforce(self, scratchpad: Scratchpad, system_prompt: str = "") -> int:
        """
        Evict old tool-use entries if the threshold is exceeded.

        Args:
            scratchpad: Scratchpad of the current run
            system_prompt: System prompt counted toward the estimate

        Returns:
            Number of evicted entries (0 when under the threshold)
        """
        before = self.estimate(scratchpad, system_prompt)
        if before <= self.context_threshold:
            return 0

        evicted = scratchpad.evict_oldest_tool_uses(self.keep_tool_uses)
        after = self.estimate(scratchpad, system_prompt) if evicted else before

        if evicted:
            context_logger.log_operation_complete(
                "context_eviction",
                details={
                    "evicted_count": evicted,
                    "tokens_before": before,
                    "tokens_after": after,
                    "threshold": self.context_threshold,
                },
            )

        if after > self.token_budget:
            self.logger.warning(
                "context_over_budget",
                estimated_tokens=after,
                token_budget=self.token_budget,
                retained_tool_uses=len(scratchpad.tool_uses),
            )

        return evicted
