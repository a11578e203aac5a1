"""
Run driver: the caller side of a run.

The agent stream ends without a terminal event when a run is cancelled; this
module turns that into an explicit ``interrupted`` status, distinct from a
provider ``error``. It also records the query before the run starts and keeps
the history consistent when a run does not complete.
"""

from collections.abc import Awaitable, Callable
from typing import Union

from ..models.contracts import RunOutcome
from ..models.enums import RunStatus
from ..models.events import AgentEvent, DoneEvent, ErrorEvent
from ..utils.error_handler import ErrorHandler
from ..utils.logging import get_logger
from .agent import Agent, AgentRun
from .cancellation import CancellationToken
from .history import ChatHistoryStore

logger = get_logger(__name__)

EventHandler = Callable[[AgentEvent], Union[None, Awaitable[None]]]


class AgentRunner:
    """
    Drives runs against one agent and one history store.

    Example:
        runner = AgentRunner(agent, history=InMemoryChatHistory())
        outcome = await runner.run_query("Compare AAPL and MSFT margins", on_event=render)
        if outcome.status == RunStatus.INTERRUPTED:
            ...
    """

    def __init__(self, agent: Agent, history: ChatHistoryStore | None = None):
        self.agent = agent
        self.history = history
        self.current_run: AgentRun | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the run in progress, if any."""
        if self.current_run is not None:
            self.current_run.cancel(reason)

    async def run_query(
        self,
        query: str,
        on_event: EventHandler | None = None,
        cancellation: CancellationToken | None = None,
    ) -> RunOutcome:
        """
        Execute one query to completion, error or interruption.

        Args:
            query: User question
            on_event: Called (or awaited) for every event in order
            cancellation: Token to abort the run; a fresh one if None

        Returns:
            RunOutcome with the observed status

        Raises:
            InputValidationError: If the query is empty (nothing is recorded)
        """
        run = self.agent.run(query, history=self.history, cancellation=cancellation)
        self.current_run = run

        if self.history is not None:
            ErrorHandler.ignore_errors(
                lambda: self.history.save_user_query(run.query),
                error_msg="history_query_save_failed",
            )

        event_count = 0
        try:
            async for event in run:
                event_count += 1
                if on_event is not None:
                    maybe_awaitable = on_event(event)
                    if maybe_awaitable is not None:
                        await maybe_awaitable
        except BaseException:
            # A consumer that stops early leaves the run unfinished
            run.cancel("consumer_aborted")
            self._settle_history(run)
            raise
        finally:
            await run.aclose()
            self.current_run = None

        outcome = self._outcome(run, event_count)
        if outcome.status != RunStatus.COMPLETED:
            self._settle_history(run)

        logger.info(
            "run_finished",
            status=outcome.status.value,
            events=event_count,
            reason=run.cancellation.reason,
        )
        return outcome

    def _outcome(self, run: AgentRun, event_count: int) -> RunOutcome:
        terminal = run.terminal_event
        if isinstance(terminal, DoneEvent):
            return RunOutcome(
                status=RunStatus.COMPLETED,
                answer=terminal.answer,
                token_usage=terminal.token_usage,
                total_time=terminal.total_time,
                event_count=event_count,
            )
        if isinstance(terminal, ErrorEvent):
            return RunOutcome(
                status=RunStatus.ERROR,
                answer=run.partial_answer,
                error=terminal.message,
                event_count=event_count,
            )
        return RunOutcome(
            status=RunStatus.INTERRUPTED,
            answer=run.partial_answer,
            error=run.cancellation.reason,
            event_count=event_count,
        )

    def _settle_history(self, run: AgentRun) -> None:
        """Store whatever partial answer exists so no entry stays unanswered."""
        if self.history is None:
            return
        ErrorHandler.ignore_errors(
            lambda: self.history.save_answer(run.partial_answer),
            error_msg="history_partial_save_failed",
        )
