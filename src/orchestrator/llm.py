"""Language-Model Gateway using LlamaIndex.

Supports multiple providers behind one interface:
- OpenAI models (``gpt-4.1-mini``, ``o3``, ...)
- OpenRouter models, selected by ids containing ``/`` or ``:``
  (``google/gemini-2.0-flash-001``, ``deepseek/deepseek-r1-0528:free``)

The LLM has no direct tool access; it only returns text or structured
tool-call requests.
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Optional

from shared.config import LLMSettings
from shared.logging import get_logger
from shared.models import ConversationMessage, LLMResponse

logger = get_logger(__name__)


class GatewayUnavailable(Exception):
    """The language model could not be reached or failed unrecoverably."""
    pass


class LLMConfigurationError(Exception):
    """The provider for a model is not configured."""
    pass


# Reasoning models reject sampling parameters
NO_SAMPLING_MODEL_PREFIXES = ("o1", "o3", "o4", "gpt-5")

SAMPLING_PARAMETERS = ("temperature", "top_p", "frequency_penalty", "presence_penalty")


def supports_sampling(model: str) -> bool:
    """Return whether the model accepts temperature/top_p/penalties."""
    name = model.split("/")[-1].lower()
    return not name.startswith(NO_SAMPLING_MODEL_PREFIXES)


def sampling_kwargs(model: str, **params: Optional[float]) -> dict[str, float]:
    """
    Keep only the sampling parameters the model supports.

    Unset values are dropped; everything is dropped for no-sampling models.
    """
    if not supports_sampling(model):
        return {}
    return {
        name: value
        for name, value in params.items()
        if name in SAMPLING_PARAMETERS and value is not None
    }


def is_openrouter_model(model: str) -> bool:
    return "/" in model or ":" in model


class LLMProvider(ABC):
    """
    Abstract base class for language-model providers.

    LLM Integration Rules:
    - LLM receives only allowed tools and context
    - LLM outputs either a structured tool call or a final user response
    - LLM must not access APIs directly
    """

    default_model: str = "gpt-4.1-mini"

    @abstractmethod
    async def complete(
        self,
        messages: list[ConversationMessage],
        tools: Optional[list[dict[str, Any]]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Prompt messages
            tools: Available tools in OpenAI function format
            model: Model identifier; provider default when omitted
            temperature: Sampling temperature, ignored by no-sampling models
            max_tokens: Maximum tokens to generate

        Returns:
            LLM response with content and/or tool calls
        """
        pass


class OpenAIProvider(LLMProvider):
    """
    OpenAI and OpenRouter provider using LlamaIndex.

    One LlamaIndex client is created lazily per model id.
    """

    def __init__(self, settings: LLMSettings) -> None:
        self.settings = settings
        self.default_model = settings.model
        self._llms: dict[str, Any] = {}

    def _get_llm(self, model: str):
        """Lazy initialization of the LlamaIndex LLM for a model."""
        if model in self._llms:
            return self._llms[model]

        if is_openrouter_model(model):
            if not self.settings.openrouter_api_key:
                raise LLMConfigurationError("Missing OpenRouter API key (LLM_OPENROUTER_API_KEY)")

            from llama_index.llms.openrouter import OpenRouter

            llm = OpenRouter(
                model=model,
                api_key=self.settings.openrouter_api_key,
                api_base=self.settings.openrouter_api_base,
                max_tokens=self.settings.max_tokens,
            )
        else:
            from llama_index.llms.openai import OpenAI

            llm = OpenAI(
                model=model,
                api_key=self.settings.api_key,
                api_base=self.settings.api_base,
                max_tokens=self.settings.max_tokens,
            )

        logger.debug(
            "LLM client created",
            model=model,
            provider="openrouter" if is_openrouter_model(model) else "openai"
        )
        self._llms[model] = llm
        return llm

    def _convert_messages(self, messages: list[ConversationMessage]) -> list:
        """Convert internal messages to LlamaIndex format."""
        from llama_index.core.llms import ChatMessage, MessageRole

        role_map = {
            "user": MessageRole.USER,
            "assistant": MessageRole.ASSISTANT,
            "system": MessageRole.SYSTEM,
            "tool": MessageRole.TOOL,
        }

        result = []
        for msg in messages:
            chat_msg = ChatMessage(
                role=role_map.get(msg.role, MessageRole.USER),
                content=msg.content,
            )

            if msg.tool_calls:
                chat_msg.additional_kwargs = {"tool_calls": msg.tool_calls}
            if msg.tool_call_id:
                chat_msg.additional_kwargs = {"tool_call_id": msg.tool_call_id}

            result.append(chat_msg)

        return result

    async def complete(
        self,
        messages: list[ConversationMessage],
        tools: Optional[list[dict[str, Any]]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """Generate completion using the provider that serves the model."""
        model = model or self.default_model
        llm = self._get_llm(model)
        chat_messages = self._convert_messages(messages)

        kwargs: dict[str, Any] = sampling_kwargs(
            model,
            temperature=temperature if temperature is not None else self.settings.temperature
        )
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if tools:
            kwargs["tools"] = tools

        try:
            response = await llm.achat(chat_messages, **kwargs)
        except Exception as e:
            logger.error("LLM completion failed", model=model, error=str(e))
            raise

        message = response.message
        raw_calls = (message.additional_kwargs or {}).get("tool_calls") if message else None

        tool_calls = None
        if raw_calls:
            tool_calls = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.function.name,
                        "arguments": tc.function.arguments
                    }
                }
                for tc in raw_calls
            ]

        return LLMResponse(
            content=message.content if message else None,
            tool_calls=tool_calls,
            finish_reason="tool_calls" if tool_calls else "stop",
            usage={}
        )


class MockLLMProvider(LLMProvider):
    """
    Mock LLM provider for testing without API calls.

    Responses queued with ``queue_response`` are returned in order; when the
    queue is empty a fixed default response is returned.
    """

    def __init__(self, settings: Optional[LLMSettings] = None) -> None:
        self.settings = settings
        self.default_model = settings.model if settings else "gpt-4.1-mini"
        self.call_history: list[dict[str, Any]] = []
        self._queue: deque[LLMResponse] = deque()

    def queue_response(self, response: LLMResponse | str) -> None:
        """Queue a response (or plain text) for a future call."""
        if isinstance(response, str):
            response = LLMResponse(content=response)
        self._queue.append(response)

    def set_next_response(self, response: LLMResponse) -> None:
        """Replace any queued responses with a single one."""
        self._queue.clear()
        self._queue.append(response)

    async def complete(
        self,
        messages: list[ConversationMessage],
        tools: Optional[list[dict[str, Any]]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """Return the next queued response."""
        model = model or self.default_model
        self.call_history.append({
            "messages": messages,
            "tools": tools,
            "model": model,
            "sampling": sampling_kwargs(model, temperature=temperature),
            "max_tokens": max_tokens
        })

        if self._queue:
            return self._queue.popleft()

        return LLMResponse(
            content="This is a mock response.",
            tool_calls=None,
            finish_reason="stop",
            usage={"prompt_tokens": 10, "completion_tokens": 5}
        )


def create_llm_provider(settings: LLMSettings) -> LLMProvider:
    """
    Factory function to create appropriate LLM provider.

    Supports:
    - openai: OpenAI API, with OpenRouter routing for vendor-prefixed ids
    - mock: Mock provider for testing

    Raises:
        ValueError: If provider is not supported
    """
    providers = {
        "openai": OpenAIProvider,
        "mock": MockLLMProvider,
    }

    provider_class = providers.get(settings.provider)
    if not provider_class:
        raise ValueError(
            f"Unsupported LLM provider: {settings.provider}. "
            f"Supported: {list(providers.keys())}"
        )

    logger.info("Creating LLM provider", provider=settings.provider, model=settings.model)
    return provider_class(settings)
