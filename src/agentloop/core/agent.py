"""
Agent - the turn loop.

States: Idle -> Thinking -> {ToolDispatch -> Thinking}* -> Answering ->
{Done | Error | Interrupted}.

``Agent.run`` returns an ``AgentRun``: a lazy, single-pass async iterator of
``AgentEvent``. The loop only advances while the consumer pulls, so a slow
consumer slows the run instead of losing events. Cancellation is cooperative:
the token is checked before every LLM call and around every tool invocation,
and a cancelled run simply stops without a terminal event.
"""

import asyncio
import time
from contextlib import aclosing
from typing import Any, AsyncGenerator, AsyncIterator

from ..exceptions import InputValidationError, LLMError
from ..llm.client import LLMClient, LLMProvider
from ..models.contracts import TokenUsage, ToolCall, ToolOutcome
from ..models.enums import MessageRole
from ..models.events import (
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
)
from ..tools.registry import ToolContext, ToolDispatcher, ToolRegistry
from ..utils.error_handler import ErrorHandler
from ..utils.logging import agent_logger, get_logger
from ..utils.token_counter import TokenCounter
from .cache import CacheConfig, RequestCache
from .cancellation import CancellationToken
from .config import AgentConfig, get_config
from .context import ContextManager
from .history import ChatHistoryStore
from .progress import ProgressChannel
from .prompts import build_system_prompt
from .scratchpad import Scratchpad


class AgentRun:
    """
    One execution of the loop.

    Iterating yields events; the attributes expose the run's state to the
    caller (partial answer on failure, the cancellation token, final status).
    """

    def __init__(
        self,
        agent: "Agent",
        query: str,
        history: ChatHistoryStore | None,
        cancellation: CancellationToken,
    ):
        self.query = query
        self.history = history
        self.cancellation = cancellation
        self.scratchpad = Scratchpad()
        self.token_counter = TokenCounter()
        self.system_prompt = agent.build_system_prompt()
        self.terminal_event: DoneEvent | ErrorEvent | None = None
        self.tool_calls_made = 0
        self.iterations = 0
        self._events = agent._run(self)

    def __aiter__(self) -> "AgentRun":
        return self

    async def __anext__(self) -> AgentEvent:
        return await self._events.__anext__()

    async def aclose(self) -> None:
        await self._events.aclose()

    def cancel(self, reason: str = "cancelled") -> None:
        self.cancellation.cancel(reason)

    @property
    def partial_answer(self) -> str:
        """Latest assistant content produced so far (empty if none)."""
        return self.scratchpad.last_assistant_content() or ""

    @property
    def interrupted(self) -> bool:
        return self.terminal_event is None and self.cancellation.is_cancelled


class Agent:
    """
    Orchestrates LLM decisions and tool calls for a query.

    Example:
        agent = Agent(llm=LLMClient(), registry=create_default_registry())
        async for event in agent.run("What is 17% of 2,340?"):
            print(event.type)
    """

    def __init__(
        self,
        llm: LLMProvider,
        registry: ToolRegistry | None = None,
        cache: RequestCache | None = None,
        context_manager: ContextManager | None = None,
        max_tool_calls: int | None = None,
        run_timeout_seconds: float | None = None,
        system_prompt_template: str | None = None,
        config: AgentConfig | None = None,
        max_history_turns: int | None = None,
    ):
        """
        Initialize the agent.

        Args:
            llm: Decision-step provider
            registry: Tools available to the model (empty registry if None)
            cache: Request cache shared with other agents, if any
            context_manager: Eviction policy (built from config if None)
            max_tool_calls: Tool calls allowed per run
            run_timeout_seconds: Wall-clock deadline per run
            system_prompt_template: Override for the default prompt template
            config: Configuration used for unspecified settings
            max_history_turns: Answered history turns replayed per run
        """
        config = config or get_config()
        self.config = config
        self.llm = llm
        self.registry = registry or ToolRegistry()
        self.cache = cache
        self.dispatcher = ToolDispatcher(
            self.registry, cache=cache, cache_ttl_seconds=config.cache_ttl_seconds
        )
        self.context_manager = context_manager or ContextManager.from_config(config)
        self.max_tool_calls = max_tool_calls if max_tool_calls is not None else config.max_tool_calls
        self.run_timeout_seconds = run_timeout_seconds or config.run_timeout_seconds
        self.max_history_turns = (
            max_history_turns if max_history_turns is not None else config.max_history_turns
        )
        self.system_prompt_template = system_prompt_template
        self.logger = get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        config: AgentConfig | None = None,
        registry: ToolRegistry | None = None,
        llm: LLMProvider | None = None,
    ) -> "Agent":
        """Build an agent with a LiteLLM client and the configured cache backend."""
        config = config or get_config()
        return cls(
            llm=llm or LLMClient.from_config(config),
            registry=registry,
            cache=CacheConfig.from_agent_config(config).create_cache(),
            config=config,
        )

    def build_system_prompt(self) -> str:
        descriptions = self.registry.build_tool_descriptions()
        if self.system_prompt_template:
            return build_system_prompt(descriptions, self.system_prompt_template)
        return build_system_prompt(descriptions)

    def run(
        self,
        query: str,
        history: ChatHistoryStore | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AgentRun:
        """
        Start a run.

        The last ``max_history_turns`` answered turns of ``history`` are
        replayed ahead of the query. The final answer is written back only
        when the store's pending query is this run's query, so the caller
        must call ``history.save_user_query(query)`` first; ``AgentRunner``
        does this and settles the entry on error or interruption.

        Args:
            query: User question; must contain non-whitespace text
            history: Store supplying prior turns and receiving the final answer
            cancellation: Token the caller can set to abort the run

        Returns:
            AgentRun, an async iterator of events

        Raises:
            InputValidationError: If the query is empty
        """
        if not isinstance(query, str) or not query.strip():
            raise InputValidationError("Query must be a non-empty string", field="query")
        return AgentRun(self, query.strip(), history, cancellation or CancellationToken())

    async def _run(self, run: AgentRun) -> AsyncGenerator[AgentEvent, None]:
        start_time = time.perf_counter()
        deadline = run.cancellation.cancel_after(self.run_timeout_seconds, reason="timeout")
        scratchpad = run.scratchpad
        tool_schemas = self.registry.to_function_schemas()
        force_answer = False

        agent_logger.log_operation_start(
            "run", {"query_length": len(run.query), "tools": len(self.registry)}
        )

        try:
            if run.history is not None and self.max_history_turns > 0:
                for past_query, past_answer in run.history.get_turns(
                    limit=self.max_history_turns
                ):
                    if past_answer:
                        scratchpad.add_message(MessageRole.USER, past_query)
                        scratchpad.add_message(MessageRole.ASSISTANT, past_answer)
            scratchpad.add_message(MessageRole.USER, run.query)

            while True:
                if self._stopped(run, "before_llm_call"):
                    return

                evicted = self.context_manager.enforce(scratchpad, run.system_prompt)
                if evicted:
                    yield ContextClearedEvent(evicted_count=evicted)

                yield ThinkingEvent()
                run.iterations += 1

                try:
                    decision = await self.llm.decide(
                        scratchpad.to_llm_messages(run.system_prompt),
                        [] if force_answer else tool_schemas,
                    )
                except Exception as e:
                    error = e if isinstance(e, LLMError) else LLMError(
                        f"LLM provider failed: {e}", details={"error_type": type(e).__name__}
                    )
                    agent_logger.log_operation_error("run", error, {"iterations": run.iterations})
                    run.terminal_event = ErrorEvent(message=error.user_message)
                    yield run.terminal_event
                    return

                run.token_counter.record(decision.input_tokens, decision.output_tokens)

                if self._stopped(run, "after_llm_call"):
                    return

                if force_answer or decision.is_final:
                    yield AnswerStartEvent()
                    answer = decision.content or ""
                    scratchpad.add_message(MessageRole.ASSISTANT, answer)
                    run.terminal_event = self._done_event(run, answer, start_time)

                    if run.history is not None:
                        ErrorHandler.ignore_errors(
                            lambda: self._save_answer(run, answer),
                            error_msg="history_save_failed",
                        )

                    agent_logger.log_operation_complete(
                        "run",
                        duration_ms=run.terminal_event.total_time * 1000,
                        details={
                            "iterations": run.iterations,
                            "tool_calls": run.tool_calls_made,
                            "total_tokens": run.terminal_event.token_usage.total_tokens,
                        },
                    )
                    agent_logger.log_metric(
                        "tokens_per_second", run.terminal_event.tokens_per_second, unit="tok/s"
                    )
                    yield run.terminal_event
                    return

                if decision.content:
                    scratchpad.add_message(MessageRole.ASSISTANT, decision.content)

                for call in decision.tool_calls:
                    if run.tool_calls_made >= self.max_tool_calls:
                        self.logger.info("tool_limit_reached", limit=self.max_tool_calls)
                        yield ToolLimitEvent(limit=self.max_tool_calls)
                        force_answer = True
                        break

                    if self._stopped(run, "before_tool_call"):
                        return

                    run.tool_calls_made += 1
                    scratchpad.begin_tool_use(call.name, call.arguments, call.id)
                    yield ToolStartEvent(tool=call.name, args=call.arguments)

                    outcome: ToolOutcome | None = None
                    async with aclosing(
                        self._dispatch_with_progress(call, run.cancellation)
                    ) as items:
                        async for item in items:
                            if isinstance(item, ToolOutcome):
                                outcome = item
                            else:
                                yield item

                    if outcome.success:
                        scratchpad.finish_tool_use(result=outcome.result)
                    else:
                        scratchpad.finish_tool_use(error=outcome.error or "Tool failed")

                    if self._stopped(run, "after_tool_call"):
                        return

                    if outcome.success:
                        yield ToolEndEvent(
                            tool=call.name,
                            args=call.arguments,
                            result=outcome.result,
                            duration_ms=outcome.duration_ms,
                            cached=outcome.cached,
                        )
                    else:
                        yield ToolErrorEvent(tool=call.name, error=outcome.error or "Tool failed")
        finally:
            deadline.cancel()

    async def _dispatch_with_progress(
        self, call: ToolCall, cancellation: CancellationToken
    ) -> AsyncIterator[Any]:
        """
        Dispatch one call, yielding progress events as they arrive and the
        ToolOutcome last.
        """
        channel = ProgressChannel()
        context = ToolContext(
            tool_name=call.name,
            cancellation=cancellation,
            progress_callback=channel.emit,
        )
        task = asyncio.create_task(self.dispatcher.dispatch(call.name, call.arguments, context))
        task.add_done_callback(lambda _: channel.close())

        try:
            while True:
                message = await channel.get()
                if message is None:
                    break
                yield ToolProgressEvent(tool=call.name, message=message)
            yield await task
        finally:
            if not task.done():
                task.cancel()

    def _stopped(self, run: AgentRun, checkpoint: str) -> bool:
        if not run.cancellation.is_cancelled:
            return False
        self.logger.info(
            "run_interrupted",
            checkpoint=checkpoint,
            reason=run.cancellation.reason,
            iterations=run.iterations,
            tool_calls=run.tool_calls_made,
        )
        return True

    def _save_answer(self, run: AgentRun, answer: str) -> None:
        # Never attach the answer to some other query's entry
        pending = run.history.get_pending_query()
        if pending is None or pending.strip() != run.query:
            self.logger.warning(
                "history_answer_skipped",
                reason="query_not_recorded",
                pending=pending is not None,
            )
            return
        run.history.save_answer(answer)

    def _done_event(self, run: AgentRun, answer: str, start_time: float) -> DoneEvent:
        total_time = time.perf_counter() - start_time
        usage: TokenUsage = run.token_counter.snapshot(
            context_tokens=run.scratchpad.estimated_tokens(run.system_prompt)
        )
        return DoneEvent(
            answer=answer,
            total_time=total_time,
            token_usage=usage,
            tokens_per_second=run.token_counter.tokens_per_second(total_time),
            iterations=run.iterations,
        )
