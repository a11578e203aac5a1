"""Exception hierarchy with structured context"""

from typing import Any
from datetime import datetime


class AgentError(Exception):
    """Base exception with structured context and metadata"""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
        recoverable: bool = False,
        user_message: str | None = None,
    ):
        """
        Initialize exception with context.

        Args:
            message: Technical error message for logs
            details: Additional context (dict for structured logging)
            retry_after: Seconds to wait before retrying (if applicable)
            recoverable: Whether the run can continue past this error
            user_message: Human-readable message surfaced in events
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.retry_after = retry_after
        self.recoverable = recoverable
        self.user_message = user_message or message
        self.timestamp = datetime.now()

    def __str__(self) -> str:
        parts = [self.message]

        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({details_str})")

        if self.retry_after:
            parts.append(f"[retry after {self.retry_after}s]")

        if self.recoverable:
            parts.append("[recoverable]")

        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "retry_after": self.retry_after,
            "recoverable": self.recoverable,
            "user_message": self.user_message,
            "timestamp": self.timestamp.isoformat(),
        }


class InputValidationError(AgentError):
    """Rejected input, raised before any run starts"""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            details={"field": field} if field else {},
            recoverable=False,
            user_message=message,
        )
        self.field = field


class LLMError(AgentError):
    """LLM provider failure; always terminates the run"""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        # Rate limits (429) are usually recoverable
        recoverable = status_code == 429

        if status_code == 429:
            user_message = "API rate limit exceeded. Please try again in a moment."
        elif status_code == 401:
            user_message = "API authentication failed. Please check your API key."
        elif status_code == 503:
            user_message = "Service temporarily unavailable. Please try again."
        else:
            user_message = f"An error occurred while calling the LLM API: {message}"

        super().__init__(
            message=message,
            details=details or {},
            retry_after=retry_after,
            recoverable=recoverable,
            user_message=user_message,
        )
        self.status_code = status_code


class ToolExecutionError(AgentError):
    """A tool executor failed; recovered locally as a tool_error event"""

    def __init__(
        self,
        message: str,
        tool_name: str,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        details["tool_name"] = tool_name

        super().__init__(
            message=message,
            details=details,
            recoverable=True,
            user_message=f"Tool '{tool_name}' execution failed: {message}",
        )
        self.tool_name = tool_name


class UnknownToolError(ToolExecutionError):
    """The LLM asked for a tool that is not registered"""

    def __init__(self, tool_name: str):
        super().__init__(message=f"Unknown tool: {tool_name}", tool_name=tool_name)
        self.user_message = f"Unknown tool: {tool_name}"


class ConfigurationError(AgentError):
    """Configuration validation errors"""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value

        super().__init__(
            message=message,
            details=details,
            recoverable=False,  # Config errors require fix
            user_message=f"Configuration error: {message}",
        )
        self.field = field
        self.value = value


class ScratchpadStateError(AgentError):
    """Raised when a scratchpad operation would break its single in-flight entry rule"""

    pass
