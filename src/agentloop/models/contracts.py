"""
Pydantic models defining the contracts between the engine components.
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import MessageRole, RunStatus


def result_to_text(value: Any) -> str:
    """Render a tool result or argument payload as text for LLM consumption."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


# ============================================================================
# Conversation Contracts
# ============================================================================


class Message(BaseModel):
    """A user, assistant or system turn. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)

    def to_llm_message(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


class ToolUseEntry(BaseModel):
    """One tool invocation recorded in the scratchpad.

    The entry is appended when the call starts and finalized exactly once
    with either ``result`` or ``error``.
    """

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    call_id: str | None = None
    result: Any = None
    error: str | None = None
    sequence_number: int = Field(..., ge=0)
    approx_token_cost: int = Field(default=0, ge=0)
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None

    @property
    def is_in_flight(self) -> bool:
        return self.finished_at is None

    @property
    def succeeded(self) -> bool:
        return self.finished_at is not None and self.error is None

    def to_text(self) -> str:
        """Observation text fed back to the LLM."""
        parts = [f"{self.tool_name}({result_to_text(self.arguments)})"]
        if self.error is not None:
            parts.append(f"error: {self.error}")
        elif self.finished_at is not None:
            parts.append(result_to_text(self.result))
        return "\n".join(parts)


class TokenUsage(BaseModel):
    """Token accounting for one run."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    context_tokens: int = Field(
        default=0, description="Estimated cost of the final accepted scratchpad"
    )

    def add(self, input_tokens: int, output_tokens: int) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.total_tokens = self.input_tokens + self.output_tokens


# ============================================================================
# LLM Provider Contracts
# ============================================================================


class ToolCall(BaseModel):
    """A tool invocation requested by the LLM."""

    id: str | None = None
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class LLMDecision(BaseModel):
    """Output of ``LLMProvider.decide``: tool calls, or a final answer."""

    tool_calls: list[ToolCall] = Field(default_factory=list)
    content: str | None = None
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0.0

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


# ============================================================================
# Dispatcher Contracts
# ============================================================================


class ToolOutcome(BaseModel):
    """Result of dispatching one tool call."""

    tool_name: str
    success: bool
    result: Any = None
    error: str | None = None
    duration_ms: float = 0.0
    cached: bool = False


# ============================================================================
# Persistence Contracts
# ============================================================================


class ConversationEntry(BaseModel):
    """One persisted query/answer pair of the long-term history."""

    user_message: str = Field(..., alias="userMessage")
    agent_response: str | None = Field(default=None, alias="agentResponse")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())

    model_config = ConfigDict(populate_by_name=True)


class CacheEntry(BaseModel):
    """A stored cache value with its content-addressed key."""

    key: str
    value: Any
    stored_at: float = Field(..., description="Unix timestamp of the write")


# ============================================================================
# Run Driver Contracts
# ============================================================================


class RunOutcome(BaseModel):
    """What the caller observed after consuming a run."""

    status: RunStatus
    answer: str = ""
    error: str | None = None
    token_usage: TokenUsage | None = None
    total_time: float = 0.0
    event_count: int = 0
