"""
agentloop - LLM agent execution engine

Streams lifecycle events while an LLM decides between tool calls and a final
answer, keeps the conversation within a token budget, and reuses expensive
tool results through a content-addressed cache.
"""

__version__ = "0.1.0"

from .core.agent import Agent, AgentRun
from .core.cache import (
    CACHE_MISS,
    CacheConfig,
    DiskCacheBackend,
    InMemoryCacheBackend,
    RequestCache,
    build_cache_key,
    describe_request,
)
from .core.cancellation import CancellationToken
from .core.config import AgentConfig, get_config, reset_config
from .core.context import ContextManager
from .core.history import ChatHistoryStore, InMemoryChatHistory, LongTermChatHistory
from .core.prompts import build_system_prompt, get_current_date
from .core.runner import AgentRunner
from .core.scratchpad import Scratchpad
from .llm.client import LLMClient, LLMProvider
from .models.events import AgentEvent
from .tools.registry import RegisteredTool, ToolContext, ToolDispatcher, ToolRegistry
from .utils.token_counter import (
    CONTEXT_THRESHOLD,
    KEEP_TOOL_USES,
    TOKEN_BUDGET,
    TokenCounter,
    estimate_tokens,
)

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentEvent",
    "AgentRun",
    "AgentRunner",
    "CACHE_MISS",
    "CONTEXT_THRESHOLD",
    "CacheConfig",
    "CancellationToken",
    "ChatHistoryStore",
    "ContextManager",
    "DiskCacheBackend",
    "InMemoryCacheBackend",
    "InMemoryChatHistory",
    "KEEP_TOOL_USES",
    "LLMClient",
    "LLMProvider",
    "LongTermChatHistory",
    "RegisteredTool",
    "RequestCache",
    "Scratchpad",
    "TOKEN_BUDGET",
    "TokenCounter",
    "ToolContext",
    "ToolDispatcher",
    "ToolRegistry",
    "build_cache_key",
    "build_system_prompt",
    "describe_request",
    "estimate_tokens",
    "get_config",
    "get_current_date",
    "reset_config",
]
