"""
Scratchpad: the live, ordered record of one run.

Messages and tool-use entries are kept in the order they happened. Messages are
never removed; tool-use entries are removed only by eviction, oldest first.
At most one tool-use entry may be in flight at any time.
"""

import json
from datetime import datetime
from typing import Any, Iterator, Union

from ..exceptions import ScratchpadStateError
from ..models.contracts import Message, ToolUseEntry, result_to_text
from ..models.enums import MessageRole
from ..utils.token_counter import PER_ITEM_OVERHEAD, estimate_tokens

ScratchpadItem = Union[Message, ToolUseEntry]


class Scratchpad:
    """
    Ordered messages interleaved with tool-use entries for a single run.

    Owned by exactly one run, so no locking is done here.
    """

    def __init__(self):
        self._items: list[ScratchpadItem] = []
        self._next_sequence = 0
        self._in_flight: ToolUseEntry | None = None
        self.evicted_total = 0

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ScratchpadItem]:
        return iter(list(self._items))

    @property
    def messages(self) -> list[Message]:
        return [item for item in self._items if isinstance(item, Message)]

    @property
    def tool_uses(self) -> list[ToolUseEntry]:
        return [item for item in self._items if isinstance(item, ToolUseEntry)]

    @property
    def in_flight(self) -> ToolUseEntry | None:
        return self._in_flight

    def add_message(self, role: MessageRole | str, content: str) -> Message:
        """Append a user/assistant/system message."""
        message = Message(role=MessageRole(role), content=content)
        self._items.append(message)
        return message

    def begin_tool_use(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        call_id: str | None = None,
    ) -> ToolUseEntry:
        """
        Append a new in-flight tool-use entry.

        Raises:
            ScratchpadStateError: If another entry is still in flight
        """
        if self._in_flight is not None:
            raise ScratchpadStateError(
                "Cannot start a tool use while another is in flight",
                details={
                    "in_flight": self._in_flight.tool_name,
                    "requested": tool_name,
                },
            )

        entry = ToolUseEntry(
            tool_name=tool_name,
            arguments=dict(arguments or {}),
            call_id=call_id,
            sequence_number=self._next_sequence,
        )
        entry.approx_token_cost = self.estimate_item(entry)
        self._next_sequence += 1
        self._items.append(entry)
        self._in_flight = entry
        return entry

    def finish_tool_use(self, result: Any = None, error: str | None = None) -> ToolUseEntry:
        """
        Terminate the in-flight entry with a result or an error.

        Raises:
            ScratchpadStateError: If no entry is in flight
        """
        entry = self._in_flight
        if entry is None:
            raise ScratchpadStateError("No tool use is in flight")

        entry.result = None if error is not None else result
        entry.error = error
        entry.finished_at = datetime.now()
        entry.approx_token_cost = self.estimate_item(entry)
        self._in_flight = None
        return entry

    def evict_oldest_tool_uses(self, keep: int) -> int:
        """
        Remove the oldest finished tool-use entries beyond the ``keep`` most recent.

        Args:
            keep: Number of most recent finished entries to retain

        Returns:
            Number of entries removed
        """
        finished = [e for e in self.tool_uses if not e.is_in_flight]
        excess = len(finished) - max(keep, 0)
        if excess <= 0:
            return 0

        doomed = {id(e) for e in finished[:excess]}
        self._items = [item for item in self._items if id(item) not in doomed]
        self.evicted_total += excess
        return excess

    @staticmethod
    def estimate_item(item: ScratchpadItem) -> int:
        if isinstance(item, Message):
            return estimate_tokens(item.content) + PER_ITEM_OVERHEAD
        return estimate_tokens(item.to_text()) + PER_ITEM_OVERHEAD

    def estimated_tokens(self, system_prompt: str = "") -> int:
        """Estimated token cost of the system prompt plus every item."""
        total = estimate_tokens(system_prompt) + (PER_ITEM_OVERHEAD if system_prompt else 0)
        for item in self._items:
            total += self.estimate_item(item)
        return total

    def last_assistant_content(self) -> str | None:
        for item in reversed(self._items):
            if isinstance(item, Message) and item.role == MessageRole.ASSISTANT:
                return item.content
        return None

    def to_llm_messages(self, system_prompt: str = "") -> list[dict[str, Any]]:
        """
        Render the scratchpad in chat-completions format.

        Each finished tool use becomes an assistant ``tool_calls`` message
        followed by its ``tool`` result message, so eviction never leaves a
        dangling call id behind.
        """
        rendered: list[dict[str, Any]] = []
        if system_prompt:
            rendered.append({"role": MessageRole.SYSTEM.value, "content": system_prompt})

        for item in self._items:
            if isinstance(item, Message):
                rendered.append(item.to_llm_message())
                continue
            if item.is_in_flight:
                continue

            call_id = item.call_id or f"call_{item.sequence_number}"
            rendered.append(
                {
                    "role": MessageRole.ASSISTANT.value,
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {
                                "name": item.tool_name,
                                "arguments": json.dumps(item.arguments, default=str),
                            },
                        }
                    ],
                }
            )
            observation = (
                f"Error: {item.error}" if item.error is not None else result_to_text(item.result)
            )
            rendered.append(
                {
                    "role": "tool",
                    "tool_call_id": call_id,
                    "name": item.tool_name,
                    "content": observation,
                }
            )
        return rendered
