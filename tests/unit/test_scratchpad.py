"""
Tests for the run scratchpad.
"""

import json

import pytest

from agentloop.exceptions import ScratchpadStateError
from agentloop.models.enums import MessageRole
from agentloop.core.scratchpad import Scratchpad
from agentloop.utils.token_counter import PER_ITEM_OVERHEAD


def _finished_tool_use(scratchpad, name="search", result="ok", **args):
    scratchpad.begin_tool_use(name, args)
    return scratchpad.finish_tool_use(result=result)


class TestToolUseLifecycle:
    """Tests for begin/finish of tool-use entries."""

    def test_begin_creates_in_flight_entry(self):
        """Test that a started entry is in flight with no result."""
        scratchpad = Scratchpad()
        entry = scratchpad.begin_tool_use("search", {"q": "acme"})

        assert entry.is_in_flight
        assert scratchpad.in_flight is entry
        assert entry.result is None and entry.error is None

    def test_second_begin_while_in_flight_rejected(self):
        """Test that only one entry may be in flight."""
        scratchpad = Scratchpad()
        scratchpad.begin_tool_use("search", {})

        with pytest.raises(ScratchpadStateError):
            scratchpad.begin_tool_use("lookup", {})

    def test_finish_without_in_flight_rejected(self):
        """Test that finishing with nothing started raises."""
        with pytest.raises(ScratchpadStateError):
            Scratchpad().finish_tool_use(result="x")

    def test_finish_with_result(self):
        """Test successful completion."""
        scratchpad = Scratchpad()
        scratchpad.begin_tool_use("search", {})
        entry = scratchpad.finish_tool_use(result={"hits": 3})

        assert entry.succeeded
        assert entry.result == {"hits": 3}
        assert scratchpad.in_flight is None

    def test_finish_with_error_drops_result(self):
        """Test that an entry holds either a result or an error, never both."""
        scratchpad = Scratchpad()
        scratchpad.begin_tool_use("search", {})
        entry = scratchpad.finish_tool_use(result="ignored", error="timeout")

        assert entry.error == "timeout"
        assert entry.result is None
        assert not entry.succeeded

    def test_sequence_numbers_increase(self):
        """Test that entries are numbered in start order."""
        scratchpad = Scratchpad()
        first = _finished_tool_use(scratchpad)
        second = _finished_tool_use(scratchpad)
        assert (first.sequence_number, second.sequence_number) == (0, 1)

    def test_token_cost_updated_on_finish(self):
        """Test that the cost reflects the result once known."""
        scratchpad = Scratchpad()
        entry = scratchpad.begin_tool_use("search", {})
        started_cost = entry.approx_token_cost
        scratchpad.finish_tool_use(result="x" * 400)
        assert entry.approx_token_cost >= started_cost + 100


class TestEviction:
    """Tests for oldest-first eviction of tool-use entries."""

    def test_evicts_oldest_beyond_keep(self):
        """Test that only the most recent entries survive."""
        scratchpad = Scratchpad()
        entries = [_finished_tool_use(scratchpad, result=str(i)) for i in range(5)]

        evicted = scratchpad.evict_oldest_tool_uses(keep=2)

        assert evicted == 3
        assert scratchpad.tool_uses == entries[3:]
        assert scratchpad.evicted_total == 3

    def test_messages_are_never_evicted(self):
        """Test that eviction touches tool-use entries only."""
        scratchpad = Scratchpad()
        scratchpad.add_message(MessageRole.USER, "question")
        _finished_tool_use(scratchpad)
        scratchpad.add_message(MessageRole.ASSISTANT, "interim")
        _finished_tool_use(scratchpad)

        scratchpad.evict_oldest_tool_uses(keep=0)

        assert [m.content for m in scratchpad.messages] == ["question", "interim"]
        assert scratchpad.tool_uses == []

    def test_nothing_to_evict(self):
        """Test that fewer entries than keep is a no-op."""
        scratchpad = Scratchpad()
        _finished_tool_use(scratchpad)
        assert scratchpad.evict_oldest_tool_uses(keep=5) == 0
        assert len(scratchpad.tool_uses) == 1

    def test_in_flight_entry_is_never_evicted(self):
        """Test that the running call survives even with keep=0."""
        scratchpad = Scratchpad()
        _finished_tool_use(scratchpad)
        running = scratchpad.begin_tool_use("slow", {})

        assert scratchpad.evict_oldest_tool_uses(keep=0) == 1
        assert scratchpad.tool_uses == [running]


class TestRendering:
    """Tests for chat-completions rendering and estimates."""

    def test_system_prompt_first(self):
        scratchpad = Scratchpad()
        scratchpad.add_message("user", "hi")
        rendered = scratchpad.to_llm_messages("You are helpful.")

        assert rendered[0] == {"role": "system", "content": "You are helpful."}
        assert rendered[1] == {"role": "user", "content": "hi"}

    def test_tool_use_renders_call_and_result(self):
        """Test that a finished entry becomes an assistant call plus a tool message."""
        scratchpad = Scratchpad()
        scratchpad.begin_tool_use("search", {"q": "acme"}, call_id="call_abc")
        scratchpad.finish_tool_use(result={"hits": 1})

        call_message, tool_message = scratchpad.to_llm_messages()

        assert call_message["role"] == "assistant"
        function = call_message["tool_calls"][0]["function"]
        assert function["name"] == "search"
        assert json.loads(function["arguments"]) == {"q": "acme"}
        assert tool_message["role"] == "tool"
        assert tool_message["tool_call_id"] == "call_abc"
        assert json.loads(tool_message["content"]) == {"hits": 1}

    def test_error_observation(self):
        scratchpad = Scratchpad()
        scratchpad.begin_tool_use("search", {})
        scratchpad.finish_tool_use(error="rate limited")

        tool_message = scratchpad.to_llm_messages()[-1]
        assert tool_message["content"] == "Error: rate limited"
        assert tool_message["tool_call_id"] == "call_0"

    def test_in_flight_entry_not_rendered(self):
        scratchpad = Scratchpad()
        scratchpad.add_message("user", "hi")
        scratchpad.begin_tool_use("search", {})
        assert len(scratchpad.to_llm_messages()) == 1

    def test_estimate_sums_items(self):
        """Test that the estimate is ceil(chars/4) plus overhead per item."""
        scratchpad = Scratchpad()
        scratchpad.add_message("user", "abcd" * 10)  # 10 tokens
        assert scratchpad.estimated_tokens() == 10 + PER_ITEM_OVERHEAD
        assert scratchpad.estimated_tokens("abcd") == 10 + 1 + 2 * PER_ITEM_OVERHEAD

    def test_last_assistant_content(self):
        scratchpad = Scratchpad()
        assert scratchpad.last_assistant_content() is None
        scratchpad.add_message("assistant", "first")
        scratchpad.add_message("user", "more")
        scratchpad.add_message("assistant", "second")
        assert scratchpad.last_assistant_content() == "second"
