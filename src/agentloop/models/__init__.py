"""Data models for agentloop."""

from .contracts import (
    CacheEntry,
    ConversationEntry,
    LLMDecision,
    Message,
    RunOutcome,
    TokenUsage,
    ToolCall,
    ToolOutcome,
    ToolUseEntry,
)
from .enums import AgentEventType, CacheBackendType, LogLevel, MessageRole, RunStatus
from .events import (
    AgentEvent,
    AnswerStartEvent,
    ContextClearedEvent,
    DoneEvent,
    ErrorEvent,
    ThinkingEvent,
    ToolEndEvent,
    ToolErrorEvent,
    ToolLimitEvent,
    ToolProgressEvent,
    ToolStartEvent,
    parse_event,
)

__all__ = [
    "AgentEvent",
    "AgentEventType",
    "AnswerStartEvent",
    "CacheBackendType",
    "CacheEntry",
    "ContextClearedEvent",
    "ConversationEntry",
    "DoneEvent",
    "ErrorEvent",
    "LLMDecision",
    "LogLevel",
    "Message",
    "MessageRole",
    "RunOutcome",
    "RunStatus",
    "ThinkingEvent",
    "TokenUsage",
    "ToolCall",
    "ToolEndEvent",
    "ToolErrorEvent",
    "ToolLimitEvent",
    "ToolOutcome",
    "ToolProgressEvent",
    "ToolStartEvent",
    "ToolUseEntry",
    "parse_event",
]
