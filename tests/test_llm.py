"""Tests for the language-model gateway."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from shared.config import LLMSettings
from shared.models import ConversationMessage, LLMResponse


class TestMockProvider:
    """Tests for MockLLMProvider."""

    @pytest.mark.asyncio
    async def test_default_response(self):
        """Test the mock returns a default response when nothing is queued."""
        from orchestrator.llm import MockLLMProvider

        provider = MockLLMProvider()
        messages = [ConversationMessage(role="user", content="Hello")]

        response = await provider.complete(messages)

        assert response.content == "This is a mock response."
        assert response.finish_reason == "stop"
        assert provider.call_history[0]["model"] == "gpt-4.1-mini"

    @pytest.mark.asyncio
    async def test_queued_responses_in_order(self):
        """Test queued responses are returned first in, first out."""
        from orchestrator.llm import MockLLMProvider

        provider = MockLLMProvider()
        provider.queue_response("first")
        provider.queue_response(LLMResponse(content="second"))

        messages = [ConversationMessage(role="user", content="Hi")]

        assert (await provider.complete(messages)).content == "first"
        assert (await provider.complete(messages)).content == "second"
        assert (await provider.complete(messages)).content == "This is a mock response."

    @pytest.mark.asyncio
    async def test_set_next_response_replaces_queue(self):
        """Test set_next_response discards previously queued responses."""
        from orchestrator.llm import MockLLMProvider

        provider = MockLLMProvider()
        provider.queue_response("stale")
        provider.set_next_response(LLMResponse(
            content="Custom response",
            tool_calls=[{
                "id": "call_1",
                "type": "function",
                "function": {"name": "getEvents", "arguments": "{}"}
            }],
            finish_reason="tool_calls"
        ))

        response = await provider.complete([ConversationMessage(role="user", content="Use a tool")])

        assert response.content == "Custom response"
        assert len(response.tool_calls) == 1

    @pytest.mark.asyncio
    async def test_records_sampling_per_model(self):
        """Test the recorded sampling parameters follow the no-sampling rule."""
        from orchestrator.llm import MockLLMProvider

        provider = MockLLMProvider()
        messages = [ConversationMessage(role="user", content="Hi")]

        await provider.complete(messages, model="gpt-4.1-mini", temperature=0.3)
        await provider.complete(messages, model="o3-mini", temperature=0.3)

        assert provider.call_history[0]["sampling"] == {"temperature": 0.3}
        assert provider.call_history[1]["sampling"] == {}


class TestProviderFactory:
    """Tests for create_llm_provider."""

    def test_create_mock_provider(self):
        """Test LLM provider factory."""
        from orchestrator.llm import MockLLMProvider, create_llm_provider

        provider = create_llm_provider(LLMSettings(provider="mock", model="gpt-4o"))

        assert isinstance(provider, MockLLMProvider)
        assert provider.default_model == "gpt-4o"

    def test_create_openai_provider(self):
        """Test the OpenAI provider is built without contacting the API."""
        from orchestrator.llm import OpenAIProvider, create_llm_provider

        provider = create_llm_provider(LLMSettings(provider="openai", api_key="sk-test"))

        assert isinstance(provider, OpenAIProvider)

    def test_invalid_provider_raises(self):
        """Test that invalid provider raises error."""
        from orchestrator.llm import create_llm_provider

        with pytest.raises(ValueError, match="Unsupported"):
            create_llm_provider(LLMSettings(provider="invalid_provider"))


class TestSamplingGuard:
    """Tests for the no-sampling model rule."""

    @pytest.mark.parametrize("model", ["o1", "o1-mini", "o3", "o4-mini", "gpt-5", "gpt-5-mini", "openai/o3"])
    def test_reasoning_models_drop_sampling(self, model):
        """Test reasoning models get no sampling parameters."""
        from orchestrator.llm import sampling_kwargs, supports_sampling

        assert not supports_sampling(model)
        assert sampling_kwargs(model, temperature=0.2, top_p=0.9) == {}

    @pytest.mark.parametrize("model", ["gpt-4.1-mini", "gpt-4o", "google/gemini-2.0-flash-001"])
    def test_other_models_keep_sampling(self, model):
        """Test ordinary models keep set sampling parameters."""
        from orchestrator.llm import sampling_kwargs

        assert sampling_kwargs(model, temperature=0.2, top_p=None) == {"temperature": 0.2}


class TestOpenAIProvider:
    """Tests for OpenAIProvider routing and response conversion."""

    def test_openrouter_routing(self):
        """Test model ids with a vendor prefix or variant go to OpenRouter."""
        from orchestrator.llm import is_openrouter_model

        assert is_openrouter_model("google/gemini-2.0-flash-001")
        assert is_openrouter_model("deepseek-r1:free")
        assert not is_openrouter_model("gpt-4.1-mini")

    def test_openrouter_without_key_raises(self):
        """Test OpenRouter models need an API key."""
        from orchestrator.llm import LLMConfigurationError, OpenAIProvider

        provider = OpenAIProvider(LLMSettings(openrouter_api_key=None))

        with pytest.raises(LLMConfigurationError, match="OpenRouter"):
            provider._get_llm("deepseek/deepseek-r1-0528:free")

    @pytest.mark.asyncio
    async def test_complete_converts_tool_calls(self):
        """Test LlamaIndex tool calls are converted to OpenAI dicts."""
        from orchestrator.llm import OpenAIProvider

        tool_call = MagicMock()
        tool_call.id = "call_1"
        tool_call.function.name = "searchEvents"
        tool_call.function.arguments = '{"query": "kickoff"}'

        chat_response = MagicMock()
        chat_response.message.content = None
        chat_response.message.additional_kwargs = {"tool_calls": [tool_call]}

        llm = MagicMock()
        llm.achat = AsyncMock(return_value=chat_response)

        provider = OpenAIProvider(LLMSettings(api_key="sk-test", temperature=0.1))

        with patch.object(provider, "_get_llm", return_value=llm):
            response = await provider.complete(
                [ConversationMessage(role="user", content="Find the kickoff")],
                tools=[{"type": "function", "function": {"name": "searchEvents"}}],
                model="gpt-4.1-mini"
            )

        assert response.finish_reason == "tool_calls"
        assert response.tool_calls[0]["function"]["name"] == "searchEvents"
        kwargs = llm.achat.call_args.kwargs
        assert kwargs["temperature"] == 0.1
        assert "tools" in kwargs

    @pytest.mark.asyncio
    async def test_complete_strips_sampling_for_reasoning_models(self):
        """Test no temperature reaches a reasoning model."""
        from orchestrator.llm import OpenAIProvider

        chat_response = MagicMock()
        chat_response.message.content = "SUFFICIENT_INFO: nothing to do"
        chat_response.message.additional_kwargs = {}

        llm = MagicMock()
        llm.achat = AsyncMock(return_value=chat_response)

        provider = OpenAIProvider(LLMSettings(api_key="sk-test"))

        with patch.object(provider, "_get_llm", return_value=llm):
            response = await provider.complete(
                [ConversationMessage(role="user", content="Hi")],
                model="o3",
                temperature=0.7
            )

        assert response.content == "SUFFICIENT_INFO: nothing to do"
        assert response.tool_calls is None
        assert "temperature" not in llm.achat.call_args.kwargs
