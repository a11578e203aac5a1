"""Tool registry, dispatcher and built-in tools."""

from .builtin import builtin_tools, create_default_registry
from .registry import RegisteredTool, ToolContext, ToolDispatcher, ToolRegistry

__all__ = [
    "RegisteredTool",
    "ToolContext",
    "ToolDispatcher",
    "ToolRegistry",
    "builtin_tools",
    "create_default_registry",
]
