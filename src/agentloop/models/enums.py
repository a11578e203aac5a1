"""Enums for type-safe settings and protocol values.

This module provides the enum types shared by configuration, the event
stream and the run driver.
"""

from enum import Enum


class LogLevel(str, Enum):
    """Standard logging levels.

    Attributes:
        DEBUG: Detailed diagnostic information
        INFO: General informational messages
        WARNING: Warning messages for potentially problematic situations
        ERROR: Error messages for serious problems
        CRITICAL: Critical messages for severe errors
    """
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def __str__(self) -> str:
        """Return the enum value as a string for serialization."""
        return self.value


class MessageRole(str, Enum):
    """Roles a conversation message can carry."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value


class AgentEventType(str, Enum):
    """Tags of the agent event stream.

    Attributes:
        THINKING: The LLM is being asked for its next decision
        TOOL_START: A tool call is about to be dispatched
        TOOL_PROGRESS: A running tool reported progress
        TOOL_END: A tool call returned a result
        TOOL_ERROR: A tool call failed or named an unknown tool
        TOOL_LIMIT: The tool-call bound was hit; the run is forced to answer
        CONTEXT_CLEARED: Old tool-use entries were evicted from the scratchpad
        ANSWER_START: The final answer is being produced
        DONE: Terminal success event
        ERROR: Terminal failure event
    """
    THINKING = "thinking"
    TOOL_START = "tool_start"
    TOOL_PROGRESS = "tool_progress"
    TOOL_END = "tool_end"
    TOOL_ERROR = "tool_error"
    TOOL_LIMIT = "tool_limit"
    CONTEXT_CLEARED = "context_cleared"
    ANSWER_START = "answer_start"
    DONE = "done"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (AgentEventType.DONE, AgentEventType.ERROR)


class RunStatus(str, Enum):
    """Externally observed outcome of a run."""
    COMPLETED = "completed"
    ERROR = "error"
    INTERRUPTED = "interrupted"

    def __str__(self) -> str:
        return self.value


class CacheBackendType(str, Enum):
    """Storage media for the request cache."""
    MEMORY = "memory"
    DISK = "disk"
    REDIS = "redis"

    def __str__(self) -> str:
        return self.value


__all__ = [
    "LogLevel",
    "MessageRole",
    "AgentEventType",
    "RunStatus",
    "CacheBackendType",
]
