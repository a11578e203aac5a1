"""
Agent event stream.

Every event is a pydantic model tagged by a literal ``type`` field; ``AgentEvent``
is the closed union over all of them. Consumers should match on ``event.type``
(or the concrete class) and treat ``done`` and ``error`` as the only terminal
variants.
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from .contracts import TokenUsage


class _BaseEvent(BaseModel):
    """Shared helpers for all event variants."""

    type: str

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_sse(self) -> str:
        """Format as a Server-Sent Events frame."""
        return f"event: {self.type}\ndata: {json.dumps(self.to_dict())}\n\n"

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")


class ThinkingEvent(_BaseEvent):
    type: Literal["thinking"] = "thinking"
    message: str = ""


class ToolStartEvent(_BaseEvent):
    type: Literal["tool_start"] = "tool_start"
    tool: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolProgressEvent(_BaseEvent):
    type: Literal["tool_progress"] = "tool_progress"
    tool: str
    message: str


class ToolEndEvent(_BaseEvent):
    type: Literal["tool_end"] = "tool_end"
    tool: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    duration_ms: float = 0.0
    cached: bool = False


class ToolErrorEvent(_BaseEvent):
    type: Literal["tool_error"] = "tool_error"
    tool: str
    error: str


class ToolLimitEvent(_BaseEvent):
    type: Literal["tool_limit"] = "tool_limit"
    limit: int


class ContextClearedEvent(_BaseEvent):
    type: Literal["context_cleared"] = "context_cleared"
    evicted_count: int


class AnswerStartEvent(_BaseEvent):
    type: Literal["answer_start"] = "answer_start"


class DoneEvent(_BaseEvent):
    type: Literal["done"] = "done"
    answer: str
    total_time: float = Field(..., description="Elapsed seconds for the whole run")
    token_usage: TokenUsage
    tokens_per_second: float = 0.0
    iterations: int = 0


class ErrorEvent(_BaseEvent):
    type: Literal["error"] = "error"
    message: str


AgentEvent = Annotated[
    Union[
        ThinkingEvent,
        ToolStartEvent,
        ToolProgressEvent,
        ToolEndEvent,
        ToolErrorEvent,
        ToolLimitEvent,
        ContextClearedEvent,
        AnswerStartEvent,
        DoneEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter = TypeAdapter(AgentEvent)


def parse_event(data: dict[str, Any] | str) -> AgentEvent:
    """
    Rebuild an event from its dict or JSON form.

    Args:
        data: Output of ``event.to_dict()`` or its JSON serialization

    Returns:
        The concrete event instance

    Raises:
        pydantic.ValidationError: If ``type`` is unknown or fields are missing
    """
    if isinstance(data, str):
        return _event_adapter.validate_json(data)
    return _event_adapter.validate_python(data)


__all__ = [
    "AgentEvent",
    "ThinkingEvent",
    "ToolStartEvent",
    "ToolProgressEvent",
    "ToolEndEvent",
    "ToolErrorEvent",
    "ToolLimitEvent",
    "ContextClearedEvent",
    "AnswerStartEvent",
    "DoneEvent",
    "ErrorEvent",
    "parse_event",
]
