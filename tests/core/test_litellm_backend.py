"""
Unit tests for the LiteLLM backend.
"""

import litellm
import pytest

from agentrelay.exceptions import ProviderError, ProviderFatalError, RateLimitError
from agentrelay.models.enums import ErrorKind
from agentrelay.providers.base import ModelBackend
from agentrelay.providers.litellm_backend import LiteLLMBackend, map_litellm_error, parse_completion

MESSAGES = [{"role": "user", "content": "hi"}]


class TestLiteLLMBackend:
    """Tests for request building and response parsing."""

    def test_satisfies_protocol(self):
        assert isinstance(LiteLLMBackend(), ModelBackend)

    @pytest.mark.asyncio
    async def test_complete_basic(self, mocker, mock_litellm_response):
        acompletion = mocker.patch.object(
            litellm, "acompletion", new=mocker.AsyncMock(return_value=mock_litellm_response)
        )
        backend = LiteLLMBackend(api_base="http://localhost:4000", default_settings={"temperature": 0})

        response = await backend.complete("openai/gpt-4o-mini", MESSAGES, [], {"max_tokens": 64})

        assert response.content == "Mocked response"
        assert response.usage.input_tokens == 1000
        assert response.usage.output_tokens == 50
        assert response.finish_reason == "stop"

        kwargs = acompletion.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o-mini"
        assert kwargs["temperature"] == 0
        assert kwargs["max_tokens"] == 64
        assert kwargs["api_base"] == "http://localhost:4000"
        assert "tools" not in kwargs

    @pytest.mark.asyncio
    async def test_tools_are_forwarded(self, mocker, mock_litellm_response):
        acompletion = mocker.patch.object(
            litellm, "acompletion", new=mocker.AsyncMock(return_value=mock_litellm_response)
        )
        tools = [{"type": "function", "function": {"name": "search", "parameters": {}}}]

        await LiteLLMBackend().complete("openai/gpt-4o-mini", MESSAGES, tools, {})

        assert acompletion.call_args.kwargs["tools"] == tools

    def test_parse_tool_calls(self, mock_litellm_tool_response):
        response = parse_completion(mock_litellm_tool_response, "fallback-model")

        good, broken = response.tool_calls
        assert good.id == "call_abc"
        assert good.arguments == {"query": "circuit breakers"}
        assert good.argument_error is None
        assert broken.id == "call_1"
        assert broken.arguments == {}
        assert broken.argument_error.startswith("Invalid JSON in tool arguments")
        assert response.usage.total_tokens == 0

    @pytest.mark.asyncio
    async def test_errors_are_mapped(self, mocker):
        mocker.patch.object(
            litellm, "acompletion", new=mocker.AsyncMock(side_effect=Exception("Service Unavailable"))
        )

        with pytest.raises(ProviderError) as exc_info:
            await LiteLLMBackend().complete("openai/gpt-4o-mini", MESSAGES, [], {})

        assert exc_info.value.kind == ErrorKind.SERVER_ERROR


class TestMapLiteLLMError:
    def test_authentication(self):
        error = map_litellm_error(
            litellm.exceptions.AuthenticationError(
                message="Invalid API key", llm_provider="openai", model="gpt-4o-mini"
            )
        )

        assert isinstance(error, ProviderFatalError)
        assert error.kind == ErrorKind.AUTHENTICATION

    def test_rate_limit(self):
        error = map_litellm_error(
            litellm.exceptions.RateLimitError(
                message="Too many requests", llm_provider="openai", model="gpt-4o-mini"
            )
        )

        assert isinstance(error, RateLimitError)
        assert error.kind == ErrorKind.RATE_LIMIT

    def test_unknown_exception_is_classified(self):
        error = map_litellm_error(ConnectionResetError("connection reset by peer"))

        assert error.kind == ErrorKind.NETWORK
