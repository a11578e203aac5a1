"""
Unit tests for the exception hierarchy.
"""

import pytest

from agentloop.exceptions import (
    AgentError,
    ConfigurationError,
    InputValidationError,
    LLMError,
    ScratchpadStateError,
    ToolExecutionError,
    UnknownToolError,
)


class TestAgentError:
    """Tests for the base exception."""

    def test_basic_fields(self):
        error = AgentError("Something failed", details={"step": 2})
        assert error.message == "Something failed"
        assert error.details == {"step": 2}
        assert error.user_message == "Something failed"
        assert not error.recoverable

    def test_str_includes_context(self):
        error = AgentError("failed", details={"a": 1}, retry_after=2, recoverable=True)
        text = str(error)
        assert "failed" in text
        assert "(a=1)" in text
        assert "[retry after 2s]" in text
        assert "[recoverable]" in text

    def test_to_dict(self):
        data = AgentError("failed").to_dict()
        assert data["error_type"] == "AgentError"
        assert data["message"] == "failed"
        assert "timestamp" in data

    @pytest.mark.parametrize(
        "error",
        [
            InputValidationError("empty"),
            LLMError("down"),
            ToolExecutionError("bad", tool_name="t"),
            UnknownToolError("t"),
            ConfigurationError("bad"),
            ScratchpadStateError("bad"),
        ],
    )
    def test_hierarchy(self, error):
        assert isinstance(error, AgentError)


class TestLLMError:
    """Tests for provider failure messages."""

    def test_rate_limit_is_recoverable(self):
        error = LLMError("429", status_code=429, retry_after=30)
        assert error.recoverable
        assert "rate limit" in error.user_message

    def test_auth_failure(self):
        error = LLMError("401", status_code=401)
        assert not error.recoverable
        assert "API key" in error.user_message

    def test_generic_message(self):
        error = LLMError("connection reset")
        assert error.user_message == "An error occurred while calling the LLM API: connection reset"
        assert error.status_code is None


class TestToolErrors:
    """Tests for tool failures."""

    def test_tool_execution_error(self):
        error = ToolExecutionError("timeout", tool_name="search")
        assert error.recoverable
        assert error.details["tool_name"] == "search"
        assert error.user_message == "Tool 'search' execution failed: timeout"

    def test_unknown_tool(self):
        error = UnknownToolError("teleport")
        assert error.user_message == "Unknown tool: teleport"
        assert error.tool_name == "teleport"
        assert isinstance(error, ToolExecutionError)


class TestOtherErrors:
    def test_input_validation_field(self):
        error = InputValidationError("Query must be a non-empty string", field="query")
        assert error.field == "query"
        assert error.details == {"field": "query"}

    def test_configuration_error(self):
        error = ConfigurationError("bad threshold", field="context_threshold", value=5)
        assert error.details == {"field": "context_threshold", "value": 5}
        assert error.user_message == "Configuration error: bad threshold"
