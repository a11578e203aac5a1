"""LLM provider integration (LiteLLM)."""

from .client import LLMClient, LLMProvider

__all__ = ["LLMClient", "LLMProvider"]
