"""
Tool Registry and Dispatcher.

The registry maps tool names to executors plus the description and argument
schema the LLM sees. The dispatcher validates and invokes one call at a time,
consulting the request cache for tools marked cacheable. Executor failures are
translated 1:1 into failed outcomes; nothing is retried here.
"""

import asyncio
import inspect
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.cache import CACHE_MISS, RequestCache, build_cache_key, describe_request
from ..core.cancellation import CancellationToken
from ..exceptions import ToolExecutionError, UnknownToolError
from ..models.contracts import ToolOutcome
from ..utils.error_handler import ErrorHandler
from ..utils.logging import dispatch_logger, get_logger

logger = get_logger(__name__)

ToolExecutorFn = Callable[[dict[str, Any], "ToolContext"], Any]


@dataclass
class ToolContext:
    """Per-call context handed to executors."""

    tool_name: str
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    progress_callback: Callable[[str], None] | None = None

    def emit_progress(self, message: str) -> None:
        """Report progress; may be called from a worker thread."""
        if self.progress_callback is not None:
            self.progress_callback(message)

    @property
    def is_cancelled(self) -> bool:
        return self.cancellation.is_cancelled


@dataclass
class RegisteredTool:
    """A registry entry."""

    name: str
    description: str
    executor: ToolExecutorFn
    argument_schema: type[BaseModel] | None = None
    cacheable: bool = False

    def json_schema(self) -> dict[str, Any]:
        if self.argument_schema is None:
            return {"type": "object", "properties": {}}
        schema = self.argument_schema.model_json_schema()
        schema.pop("title", None)
        return schema

    def to_function_schema(self) -> dict[str, Any]:
        """OpenAI/LiteLLM function-calling definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema(),
            },
        }

    def validate_arguments(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """
        Validate raw arguments against the schema.

        Raises:
            ToolExecutionError: If validation fails
        """
        if self.argument_schema is None:
            return dict(arguments)
        try:
            validated = self.argument_schema.model_validate(arguments)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            )
            raise ToolExecutionError(
                f"Invalid arguments: {problems}",
                tool_name=self.name,
                details={"arguments": arguments},
            ) from e
        return validated.model_dump()


class ToolRegistry:
    """
    Name-to-executor mapping.

    Example:
        registry = ToolRegistry()

        @registry.tool("echo", "Echo the input back", argument_schema=EchoArgs)
        def echo(args, context):
            return args["text"]
    """

    def __init__(self):
        self._tools: dict[str, RegisteredTool] = {}
        self.logger = get_logger(__name__)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: RegisteredTool) -> RegisteredTool:
        """
        Add a tool to the registry.

        Raises:
            ValueError: If the name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        self.logger.info("tool_registered", tool_name=tool.name, cacheable=tool.cacheable)
        return tool

    def tool(
        self,
        name: str,
        description: str,
        argument_schema: type[BaseModel] | None = None,
        cacheable: bool = False,
    ) -> Callable[[ToolExecutorFn], ToolExecutorFn]:
        """Decorator form of ``register``."""

        def decorator(func: ToolExecutorFn) -> ToolExecutorFn:
            self.register(
                RegisteredTool(
                    name=name,
                    description=description,
                    executor=func,
                    argument_schema=argument_schema,
                    cacheable=cacheable,
                )
            )
            return func

        return decorator

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def tools(self) -> list[RegisteredTool]:
        return list(self._tools.values())

    def build_tool_descriptions(self) -> str:
        """Human-readable tool catalogue for the system prompt."""
        return "\n\n".join(f"### {t.name}\n\n{t.description}" for t in self._tools.values())

    def to_function_schemas(self) -> list[dict[str, Any]]:
        return [t.to_function_schema() for t in self._tools.values()]


class ToolDispatcher:
    """
    Validates and invokes tool calls.

    Sync executors run in a worker thread so they cannot block the event loop;
    async executors are awaited directly.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        cache: RequestCache | None = None,
        cache_ttl_seconds: float | None = None,
    ):
        self.registry = registry
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds

    async def dispatch(
        self,
        name: str,
        arguments: dict[str, Any] | None,
        context: ToolContext,
    ) -> ToolOutcome:
        """
        Run one tool call.

        Args:
            name: Tool name requested by the LLM
            arguments: Raw arguments
            context: Cancellation and progress plumbing for the executor

        Returns:
            ToolOutcome; failures are reported in it, never raised
        """
        start_time = time.perf_counter()
        arguments = arguments or {}

        tool = self.registry.get(name)
        if tool is None:
            error = UnknownToolError(name)
            dispatch_logger.log_operation_error("dispatch", error, {"tool_name": name})
            return ToolOutcome(tool_name=name, success=False, error=error.user_message)

        try:
            validated = tool.validate_arguments(arguments)
        except ToolExecutionError as e:
            dispatch_logger.log_operation_error("dispatch", e, {"tool_name": name})
            return ToolOutcome(
                tool_name=name,
                success=False,
                error=e.message,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )

        cache_key = None
        if tool.cacheable and self.cache is not None:
            cache_key = build_cache_key(describe_request("tool", name, validated))
            cached = ErrorHandler.handle_with_fallback(
                lambda: self.cache.read_cache(cache_key, ttl_seconds=self.cache_ttl_seconds),
                fallback=CACHE_MISS,
                error_msg="tool_cache_read_failed",
                log_level="warning",
            )
            if cached is not CACHE_MISS:
                logger.debug("tool_cache_hit", tool_name=name, key=cache_key[:16])
                return ToolOutcome(
                    tool_name=name,
                    success=True,
                    result=cached,
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    cached=True,
                )

        dispatch_logger.log_operation_start("dispatch", {"tool_name": name})
        try:
            result = await self._invoke(tool, validated, context)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            dispatch_logger.log_operation_error(
                "dispatch", e, {"tool_name": name, "duration_ms": duration_ms}
            )
            return ToolOutcome(
                tool_name=name,
                success=False,
                error=f"{type(e).__name__}: {e}",
                duration_ms=duration_ms,
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        dispatch_logger.log_operation_complete("dispatch", duration_ms, {"tool_name": name})

        if cache_key is not None:
            ErrorHandler.ignore_errors(
                lambda: self.cache.write_cache(cache_key, result),
                error_msg="tool_cache_write_failed",
            )

        return ToolOutcome(tool_name=name, success=True, result=result, duration_ms=duration_ms)

    async def _invoke(
        self, tool: RegisteredTool, arguments: dict[str, Any], context: ToolContext
    ) -> Any:
        if inspect.iscoroutinefunction(tool.executor):
            return await tool.executor(arguments, context)

        result = await asyncio.to_thread(tool.executor, arguments, context)
        if inspect.isawaitable(result):
            result = await result
        return result
