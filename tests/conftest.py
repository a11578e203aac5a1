"""
Pytest configuration and shared fixtures.
"""

from typing import Any, Callable, Union

import pytest
from pydantic import BaseModel

from agentloop.core.cache import InMemoryCacheBackend, RequestCache
from agentloop.core.config import AgentConfig, reset_config
from agentloop.models.contracts import LLMDecision
from agentloop.tools.registry import ToolContext, ToolRegistry

ScriptStep = Union[LLMDecision, Exception, Callable[[list, list], LLMDecision]]


class ScriptedLLM:
    """
    Fake LLMProvider that replays a fixed script of decisions.

    Each step is an LLMDecision, an exception to raise, or a callable
    receiving (messages, tools). Every call is recorded for assertions.
    """

    def __init__(self, steps: list[ScriptStep], default: LLMDecision | None = None):
        self.steps = list(steps)
        self.default = default
        self.calls: list[dict[str, Any]] = []

    async def decide(self, messages, available_tools) -> LLMDecision:
        self.calls.append({"messages": messages, "tools": available_tools})
        if not self.steps:
            if self.default is not None:
                return self.default
            raise AssertionError("ScriptedLLM ran out of steps")
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(messages, available_tools)
        return step


class EchoArgs(BaseModel):
    text: str


@pytest.fixture(autouse=True)
def _reset_global_config():
    """Keep the process-wide config from leaking between tests"""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def agent_config(tmp_path):
    """Configuration with small, explicit limits"""
    return AgentConfig(
        model="test/model",
        token_budget=150_000,
        context_threshold=100_000,
        keep_tool_uses=5,
        max_tool_calls=5,
        run_timeout_seconds=30,
        data_dir=tmp_path / "data",
        enable_rich_console=False,
    )


@pytest.fixture
def registry():
    """Registry with a handful of deterministic tools"""
    registry = ToolRegistry()

    @registry.tool("echo", "Echo the given text back", argument_schema=EchoArgs, cacheable=True)
    def echo(args: dict, context: ToolContext) -> str:
        return args["text"]

    @registry.tool("fail", "Always raises")
    def fail(args: dict, context: ToolContext) -> str:
        raise RuntimeError("boom")

    @registry.tool("report", "Emits progress before returning")
    def report(args: dict, context: ToolContext) -> dict:
        for step in range(3):
            context.emit_progress(f"step {step}")
        return {"steps": 3}

    @registry.tool("big", "Returns a large payload")
    def big(args: dict, context: ToolContext) -> str:
        return "x" * int(args.get("size", 4000))

    return registry


@pytest.fixture
def request_cache():
    """In-memory request cache"""
    return RequestCache(InMemoryCacheBackend(max_size=100))


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances"""
    return ScriptedLLM
