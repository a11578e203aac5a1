"""
Tests for context budget enforcement.
"""

import pytest

from agentloop.core.context import ContextManager
from agentloop.core.scratchpad import Scratchpad
from agentloop.exceptions import ConfigurationError


def _scratchpad_with_tool_uses(count: int, result_size: int = 400) -> Scratchpad:
    scratchpad = Scratchpad()
    scratchpad.add_message("user", "question")
    for i in range(count):
        scratchpad.begin_tool_use("search", {"i": i})
        scratchpad.finish_tool_use(result="x" * result_size)
    return scratchpad


class TestContextManagerInit:
    """Tests for limit validation."""

    def test_threshold_must_be_below_budget(self):
        with pytest.raises(ConfigurationError):
            ContextManager(token_budget=100, context_threshold=100)

    def test_budget_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            ContextManager(token_budget=0, context_threshold=-1)

    def test_keep_must_not_be_negative(self):
        with pytest.raises(ConfigurationError):
            ContextManager(token_budget=100, context_threshold=50, keep_tool_uses=-1)

    def test_defaults(self):
        manager = ContextManager()
        assert manager.token_budget == 150_000
        assert manager.context_threshold == 100_000
        assert manager.keep_tool_uses == 5

    def test_from_config(self, agent_config):
        manager = ContextManager.from_config(agent_config)
        assert manager.keep_tool_uses == agent_config.keep_tool_uses


class TestEnforce:
    """Tests for eviction decisions."""

    def test_under_threshold_is_noop(self):
        """Test that nothing happens below the threshold."""
        scratchpad = _scratchpad_with_tool_uses(3)
        manager = ContextManager(token_budget=100_000, context_threshold=50_000)

        assert manager.enforce(scratchpad) == 0
        assert len(scratchpad.tool_uses) == 3

    def test_over_threshold_keeps_most_recent(self):
        """Test oldest-first eviction down to keep_tool_uses."""
        scratchpad = _scratchpad_with_tool_uses(6)
        newest = scratchpad.tool_uses[-2:]
        manager = ContextManager(token_budget=2000, context_threshold=300, keep_tool_uses=2)

        assert manager.enforce(scratchpad) == 4
        assert scratchpad.tool_uses == newest

    def test_messages_survive_eviction(self):
        scratchpad = _scratchpad_with_tool_uses(4)
        manager = ContextManager(token_budget=2000, context_threshold=10, keep_tool_uses=0)

        manager.enforce(scratchpad)
        assert [m.content for m in scratchpad.messages] == ["question"]

    def test_system_prompt_counts_toward_threshold(self):
        """Test that a large system prompt alone can trigger eviction."""
        scratchpad = _scratchpad_with_tool_uses(2, result_size=4)
        manager = ContextManager(token_budget=10_000, context_threshold=1000, keep_tool_uses=1)

        assert manager.enforce(scratchpad) == 0
        assert manager.enforce(scratchpad, system_prompt="p" * 8000) == 1

    def test_over_budget_after_eviction_does_not_raise(self, mocker):
        """Test that exceeding the hard budget is logged only."""
        scratchpad = Scratchpad()
        scratchpad.add_message("user", "q" * 40_000)
        manager = ContextManager(token_budget=1000, context_threshold=500)
        manager.logger = mocker.Mock()

        assert manager.enforce(scratchpad) == 0
        manager.logger.warning.assert_called_once()
        assert manager.logger.warning.call_args[0][0] == "context_over_budget"

    def test_requires_eviction(self):
        scratchpad = _scratchpad_with_tool_uses(1)
        manager = ContextManager(token_budget=1000, context_threshold=50)
        assert manager.requires_eviction(scratchpad)
        assert not ContextManager().requires_eviction(scratchpad)
