"""
Tests for the agent event models.
"""

import json

import pytest
from pydantic import ValidationError

from agentloop.models.contracts import TokenUsage
from agentloop.models.enums import AgentEventType
from agentloop.models.events import (
    AnswerStartEvent,
    ContextClearedEvent,
    DoneEvent,
    ErrorEvent,
    ThinkingEvent,
    ToolEndEvent,
    ToolLimitEvent,
    ToolStartEvent,
    parse_event,
)


class TestEventModels:
    """Tests for tags, terminal flags and serialization."""

    def test_type_tags(self):
        assert ThinkingEvent().type == "thinking"
        assert ToolStartEvent(tool="search").type == "tool_start"
        assert ToolLimitEvent(limit=3).type == "tool_limit"
        assert AnswerStartEvent().type == "answer_start"

    def test_only_done_and_error_are_terminal(self):
        done = DoneEvent(answer="a", total_time=1.0, token_usage=TokenUsage())
        assert done.is_terminal
        assert ErrorEvent(message="x").is_terminal
        assert not ThinkingEvent().is_terminal
        assert not ContextClearedEvent(evicted_count=2).is_terminal

    def test_enum_terminal_flags_match(self):
        terminal = {t.value for t in AgentEventType if t.is_terminal}
        assert terminal == {"done", "error"}

    def test_to_dict(self):
        event = ToolEndEvent(tool="search", args={"q": "acme"}, result=[1, 2], duration_ms=5.0)
        assert event.to_dict() == {
            "type": "tool_end",
            "tool": "search",
            "args": {"q": "acme"},
            "result": [1, 2],
            "duration_ms": 5.0,
            "cached": False,
        }

    def test_to_sse_frame(self):
        frame = ErrorEvent(message="boom").to_sse()
        assert frame.startswith("event: error\ndata: ")
        assert frame.endswith("\n\n")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload == {"type": "error", "message": "boom"}


class TestParseEvent:
    """Tests for rebuilding events from their serialized form."""

    def test_parse_dict(self):
        usage = TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15)
        original = DoneEvent(answer="42", total_time=0.5, token_usage=usage, iterations=2)

        parsed = parse_event(original.to_dict())
        assert isinstance(parsed, DoneEvent)
        assert parsed == original

    def test_parse_json_string(self):
        parsed = parse_event('{"type": "context_cleared", "evicted_count": 3}')
        assert isinstance(parsed, ContextClearedEvent)
        assert parsed.evicted_count == 3

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "unknown"})

    def test_missing_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "tool_error", "tool": "x"})
