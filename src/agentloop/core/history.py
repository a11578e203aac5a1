"""
Chat history stores.

Two independent implementations share the ``ChatHistoryStore`` capability:

- ``InMemoryChatHistory`` keeps the turns of one session so follow-up
  questions see earlier answers.
- ``LongTermChatHistory`` persists queries and answers across restarts as a
  single JSON document, newest entry first.
"""

import copy
import json
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from ..models.contracts import ConversationEntry
from ..utils.error_handler import ErrorHandler
from ..utils.logging import get_logger, history_logger

HISTORY_SUBDIR = "messages"
HISTORY_FILENAME = "chat_history.json"


def _last(turns: list[tuple[str, str]], limit: int | None) -> list[tuple[str, str]]:
    if limit is None:
        return turns
    return turns[-limit:] if limit > 0 else []


@runtime_checkable
class ChatHistoryStore(Protocol):
    """What the agent and the run driver need from a history store."""

    def save_user_query(self, query: str) -> None:
        ...

    def save_answer(self, answer: str) -> None:
        ...

    def get_message_strings(self) -> list[str]:
        ...

    def get_turns(self, limit: int | None = None) -> list[tuple[str, str]]:
        ...

    def get_pending_query(self) -> str | None:
        ...


class InMemoryChatHistory:
    """
    Session-scoped history, oldest turn first.

    The query is recorded before the run starts so an interrupted run still
    leaves it behind; the answer is attached afterwards.
    """

    def __init__(self):
        self._messages: list[dict[str, Any]] = []

    def save_user_query(self, query: str) -> None:
        self._messages.append({"query": query, "answer": None})

    def save_answer(self, answer: str) -> None:
        """Attach an answer to the most recently saved query (no-op when empty)."""
        if not self._messages:
            return
        self._messages[-1]["answer"] = answer

    def get_messages(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._messages)

    def get_user_messages(self) -> list[str]:
        return [m["query"] for m in self._messages]

    def get_message_strings(self) -> list[str]:
        return self.get_user_messages()

    def get_turns(self, limit: int | None = None) -> list[tuple[str, str]]:
        """Answered (query, answer) pairs, oldest first; the last ``limit`` if given."""
        turns = [(m["query"], m["answer"]) for m in self._messages if m["answer"] is not None]
        return _last(turns, limit)

    def get_pending_query(self) -> str | None:
        """The most recent query if it is still waiting for its answer."""
        if self._messages and self._messages[-1]["answer"] is None:
            return self._messages[-1]["query"]
        return None

    def has_messages(self) -> bool:
        return bool(self._messages)

    def clear(self) -> None:
        self._messages = []


class LongTermChatHistory:
    """
    Persisted query/answer history, newest first.

    The backing file is ``<base_dir>/messages/chat_history.json``. Loading is
    corruption tolerant: unreadable or wrongly shaped data resets the store to
    empty instead of failing. Writes use a temp file and an atomic rename, and
    a lock serializes read-modify-write cycles between concurrent runs.

    Example:
        history = LongTermChatHistory(".agentloop")
        history.add_user_message("What moved the market today?")
        history.update_agent_response("Mostly rates.")
    """

    def __init__(self, base_dir: Path | str = ".agentloop"):
        """
        Initialize the store.

        Args:
            base_dir: Data directory; the history lives in its messages/ subfolder
        """
        self.base_dir = Path(base_dir)
        self.file_path = self.base_dir / HISTORY_SUBDIR / HISTORY_FILENAME
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._messages: list[ConversationEntry] = []
        self._loaded = False

    def load(self) -> None:
        """
        Read the persisted list, creating an empty file if none exists.

        Malformed content is discarded and replaced by an empty list.
        """
        with self._lock:
            if not self.file_path.exists():
                self._messages = []
                self._loaded = True
                self._save()
                return

            try:
                data = json.loads(self.file_path.read_text(encoding="utf-8"))
                if not isinstance(data, list):
                    raise ValueError(f"expected a list, got {type(data).__name__}")
                self._messages = [ConversationEntry.model_validate(item) for item in data]
            except (OSError, ValueError, TypeError, ValidationError) as e:
                self.logger.warning(
                    "chat_history_reset",
                    path=str(self.file_path),
                    error=str(e),
                )
                self._messages = []
                self._save()

            self._loaded = True
            self.logger.debug("chat_history_loaded", entries=len(self._messages))

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _save(self) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        payload = [m.model_dump(by_alias=True) for m in self._messages]

        temp_file = self.file_path.with_suffix(".tmp")
        with ErrorHandler.log_duration("chat_history_save", log_level="debug"):
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            temp_file.replace(self.file_path)

    def add_user_message(self, text: str) -> None:
        """Push a new entry with no response onto the front."""
        with self._lock:
            self._ensure_loaded()
            self._messages.insert(0, ConversationEntry(user_message=text))
            self._save()
        history_logger.log_operation_complete(
            "history_query_saved", details={"entries": len(self._messages)}
        )

    def update_agent_response(self, text: str) -> None:
        """Set the response of the most recent entry; no-op when empty."""
        with self._lock:
            self._ensure_loaded()
            if not self._messages:
                return
            self._messages[0] = self._messages[0].model_copy(update={"agent_response": text})
            self._save()

    def get_messages(self) -> list[dict[str, Any]]:
        """Defensive copy of all entries, newest first."""
        with self._lock:
            self._ensure_loaded()
            return [m.model_dump(by_alias=True) for m in self._messages]

    def get_message_strings(self) -> list[str]:
        """User messages, newest first, with consecutive duplicates collapsed."""
        with self._lock:
            self._ensure_loaded()
            strings: list[str] = []
            for entry in self._messages:
                if not strings or strings[-1] != entry.user_message:
                    strings.append(entry.user_message)
            return strings

    def get_turns(self, limit: int | None = None) -> list[tuple[str, str]]:
        """Answered (query, answer) pairs, oldest first; the last ``limit`` if given."""
        with self._lock:
            self._ensure_loaded()
            turns = [
                (m.user_message, m.agent_response)
                for m in reversed(self._messages)
                if m.agent_response is not None
            ]
        return _last(turns, limit)

    def get_pending_query(self) -> str | None:
        """The newest query if it has no response yet."""
        with self._lock:
            self._ensure_loaded()
            if self._messages and self._messages[0].agent_response is None:
                return self._messages[0].user_message
            return None

    def clear(self) -> None:
        with self._lock:
            self._messages = []
            self._loaded = True
            self._save()

    # ChatHistoryStore aliases used by the run driver
    def save_user_query(self, query: str) -> None:
        self.add_user_message(query)

    def save_answer(self, answer: str) -> None:
        self.update_agent_response(answer)
