"""
LLM Client - decision step over LiteLLM.

The agent only needs one capability from a provider: given the conversation
and the available tools, decide between tool calls and a final answer. Every
failure, whatever the transport, surfaces as ``LLMError``.
"""

import json
import time
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import litellm
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..exceptions import LLMError
from ..models.contracts import LLMDecision, ToolCall
from ..utils.logging import get_logger

logger = get_logger(__name__)

TRANSIENT_ERRORS = (
    TimeoutError,
    ConnectionError,
    litellm.Timeout,
    litellm.APIConnectionError,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
)


@runtime_checkable
class LLMProvider(Protocol):
    """Anything that can make the agent's decision step."""

    async def decide(
        self,
        messages: List[Dict[str, Any]],
        available_tools: List[Dict[str, Any]],
    ) -> LLMDecision:
        ...


def _parse_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return {"_raw_arguments": raw}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


class LLMClient:
    """
    LiteLLM-backed ``LLMProvider`` with retries and model fallbacks.

    Example:
        client = LLMClient(default_model="openai/gpt-4o-mini")
        decision = await client.decide(messages, registry.to_function_schemas())
    """

    def __init__(
        self,
        default_model: str = "openai/gpt-4o-mini",
        fallback_models: Optional[List[str]] = None,
        max_retries: int = 3,
        timeout: int = 60,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        api_keys: Optional[Dict[str, str]] = None,
        retry_backoff: float = 1.0,
    ):
        """
        Initialize LLM client.

        Args:
            default_model: Model in LiteLLM format ("provider/model")
            fallback_models: Models tried in order if the default one fails
            max_retries: Attempts per model for transient transport failures
            timeout: Request timeout in seconds
            temperature: Sampling temperature
            max_tokens: Cap on generated tokens
            api_keys: Provider name to API key, e.g. {"openai": "sk-..."}
            retry_backoff: Multiplier for exponential backoff between attempts
        """
        self.default_model = default_model
        self.fallback_models = fallback_models or []
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_keys = api_keys or {}
        self.retry_backoff = retry_backoff

    @classmethod
    def from_config(cls, config) -> "LLMClient":
        api_keys = {}
        if config.openai_api_key:
            api_keys["openai"] = config.openai_api_key
        if config.anthropic_api_key:
            api_keys["anthropic"] = config.anthropic_api_key
        if config.gemini_api_key:
            api_keys["gemini"] = config.gemini_api_key

        return cls(
            default_model=config.model,
            fallback_models=config.get_fallback_models(),
            max_retries=config.llm_max_retries,
            timeout=config.llm_timeout,
            temperature=config.temperature,
            max_tokens=config.max_output_tokens,
            api_keys=api_keys,
        )

    def _api_key_for(self, model: str) -> Optional[str]:
        provider = model.split("/")[0] if "/" in model else ""
        return self.api_keys.get(provider)

    async def _acompletion(self, **kwargs: Any) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_backoff, max=10),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await litellm.acompletion(**kwargs)

    async def decide(
        self,
        messages: List[Dict[str, Any]],
        available_tools: List[Dict[str, Any]],
        model: Optional[str] = None,
    ) -> LLMDecision:
        """
        Ask the model for its next step.

        Args:
            messages: Conversation in chat-completions format
            available_tools: Function-calling schemas; empty forces a final answer
            model: Optional model override

        Returns:
            LLMDecision with tool calls or final content

        Raises:
            LLMError: If every model fails
        """
        models = [model or self.default_model]
        if model is None:
            models += [m for m in self.fallback_models if m not in models]

        last_error: Optional[Exception] = None
        for candidate in models:
            try:
                return await self._decide_with(candidate, messages, available_tools)
            except Exception as e:
                last_error = e
                logger.warning(
                    "llm_call_failed",
                    model=candidate,
                    error_type=type(e).__name__,
                    error=str(e),
                )

        raise LLMError(
            f"LLM completion failed: {last_error}",
            details={
                "model": models[0],
                "error_type": type(last_error).__name__,
                "fallbacks_tried": models[1:],
            },
            status_code=getattr(last_error, "status_code", None),
        ) from last_error

    async def _decide_with(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        available_tools: List[Dict[str, Any]],
    ) -> LLMDecision:
        start_time = time.perf_counter()

        completion_kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "timeout": self.timeout,
            "temperature": self.temperature,
        }
        if available_tools:
            completion_kwargs["tools"] = available_tools
        if self.max_tokens:
            completion_kwargs["max_tokens"] = self.max_tokens
        api_key = self._api_key_for(model)
        if api_key:
            completion_kwargs["api_key"] = api_key

        response = await self._acompletion(**completion_kwargs)

        message = response.choices[0].message
        tool_calls = []
        if getattr(message, "tool_calls", None):
            tool_calls = [
                ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=_parse_arguments(tc.function.arguments),
                )
                for tc in message.tool_calls
            ]

        usage = getattr(response, "usage", None)
        return LLMDecision(
            tool_calls=tool_calls,
            content=message.content or None,
            model=model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            latency_ms=(time.perf_counter() - start_time) * 1000,
        )
