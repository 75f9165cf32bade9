"""Tests for the provider backends and the provider factory."""

import json

import httpx
import pytest
from unittest.mock import patch

from claude_agent_sdk import ResultMessage, AssistantMessage, TextBlock


def _chat_payload(content: str, prompt_tokens: int = 12, completion_tokens: int = 8) -> dict:
    return {
        "model": "gpt-test",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def _provider(handler, api_key="sk-test"):
    from providers.openai_compat import OpenAICompatibleProvider
    return OpenAICompatibleProvider(
        api_key=api_key,
        model="gpt-test",
        base_url="https://llm.example/v1/",
        transport=httpx.MockTransport(handler),
    )


def _messages():
    from providers.base import Message
    return [Message("system", "You translate."), Message("user", "Hello")]


def _make_result_message(result_text: str, is_error: bool = False) -> ResultMessage:
    """Helper to create a ResultMessage with required fields."""
    return ResultMessage(
        subtype="result",
        duration_ms=100,
        duration_api_ms=80,
        is_error=is_error,
        num_turns=1,
        session_id="test-session",
        total_cost_usd=0.001,
        usage={"input_tokens": 10, "output_tokens": 20},
        result=result_text,
        structured_output=None,
    )


class TestOpenAICompatibleProvider:
    @pytest.mark.asyncio
    async def test_complete_sends_request_and_reads_usage(self):
        from providers.base import CompletionOptions
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_chat_payload("Привет"))

        result = await _provider(handler).complete(
            _messages(), CompletionOptions(temperature=0.2, max_tokens=100)
        )

        assert result.content == "Привет"
        assert result.usage.total_tokens == 20
        assert result.finish_reason == "stop"
        assert seen["url"] == "https://llm.example/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["temperature"] == 0.2
        assert seen["body"]["max_tokens"] == 100
        assert seen["body"]["messages"][0] == {"role": "system", "content": "You translate."}
        assert "response_format" not in seen["body"]

    @pytest.mark.asyncio
    async def test_complete_structured_requests_json_mode(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_chat_payload('```json\n{"mood": "tense"}\n```'))

        result = await _provider(handler).complete_structured(_messages())
        assert result.data == {"mood": "tense"}
        assert seen["body"]["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_unparseable_structured_reply_raises_parse_error(self):
        from config.exceptions import ParseError

        def handler(request):
            return httpx.Response(200, json=_chat_payload("not json at all"))

        with pytest.raises(ParseError) as exc_info:
            await _provider(handler).complete_structured(_messages())
        assert exc_info.value.raw_response == "not json at all"

    @pytest.mark.asyncio
    async def test_missing_key_is_configuration_error(self):
        from config.exceptions import ConfigurationError
        with pytest.raises(ConfigurationError):
            await _provider(lambda r: httpx.Response(200), api_key=None).complete(_messages())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_rejected_credentials_are_configuration_errors(self, status):
        from config.exceptions import ConfigurationError

        def handler(request):
            return httpx.Response(status, json={"error": {"message": "bad key"}})

        with pytest.raises(ConfigurationError, match="bad key"):
            await _provider(handler).complete(_messages())

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self):
        from config.exceptions import LLMRateLimitError

        def handler(request):
            return httpx.Response(429, headers={"retry-after": "7"}, json={"error": "slow down"})

        with pytest.raises(LLMRateLimitError) as exc_info:
            await _provider(handler).complete(_messages())
        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_server_error_is_transport_error(self):
        from config.exceptions import TransportError

        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        with pytest.raises(TransportError) as exc_info:
            await _provider(handler).complete(_messages())
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_timeout_is_timeout_error(self):
        from config.exceptions import LLMTimeoutError

        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(LLMTimeoutError):
            await _provider(handler).complete(_messages())

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_error(self):
        from config.exceptions import TransportError

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError):
            await _provider(handler).complete(_messages())

    @pytest.mark.asyncio
    async def test_non_json_body_is_parse_error(self):
        from config.exceptions import ParseError

        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(ParseError):
            await _provider(handler).complete(_messages())

    @pytest.mark.asyncio
    async def test_empty_choices_is_parse_error(self):
        from config.exceptions import ParseError

        def handler(request):
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(ParseError):
            await _provider(handler).complete(_messages())

    @pytest.mark.asyncio
    async def test_is_available(self):
        def handler(request):
            assert request.url.path.endswith("/models")
            return httpx.Response(200, json={"data": []})

        assert await _provider(handler).is_available() is True
        assert await _provider(handler, api_key=None).is_available() is False

    def test_estimate_tokens(self):
        provider = _provider(lambda r: httpx.Response(200))
        assert provider.estimate_tokens("abcdefgh") == 2


class TestAgentSDKProvider:
    @pytest.mark.asyncio
    async def test_complete_returns_result_and_usage(self):
        seen = {}

        async def mock_query(*args, **kwargs):
            seen["prompt"] = kwargs["prompt"]
            seen["options"] = kwargs["options"]
            yield _make_result_message("Привет")

        with patch("providers.agent_sdk.query", mock_query):
            from providers.agent_sdk import AgentSDKProvider
            provider = AgentSDKProvider(model="claude-test")
            result = await provider.complete(_messages())

        assert result.content == "Привет"
        assert result.usage.total_tokens == 30
        assert seen["prompt"] == "Hello"
        assert seen["options"].system_prompt == "You translate."
        assert seen["options"].model == "claude-test"

    @pytest.mark.asyncio
    async def test_complete_structured_parses_json(self):
        async def mock_query(*args, **kwargs):
            yield _make_result_message('{"paragraphs": []}')

        with patch("providers.agent_sdk.query", mock_query):
            from providers.agent_sdk import AgentSDKProvider
            result = await AgentSDKProvider(model="m").complete_structured(_messages())
        assert result.data == {"paragraphs": []}

    @pytest.mark.asyncio
    async def test_complete_structured_raises_parse_error(self):
        from config.exceptions import ParseError

        async def mock_query(*args, **kwargs):
            yield _make_result_message("not valid json at all")

        with patch("providers.agent_sdk.query", mock_query):
            from providers.agent_sdk import AgentSDKProvider
            with pytest.raises(ParseError):
                await AgentSDKProvider(model="m").complete_structured(_messages())

    @pytest.mark.asyncio
    async def test_query_exception_becomes_transport_error(self):
        from config.exceptions import TransportError

        async def mock_query(*args, **kwargs):
            raise RuntimeError("Connection failed")
            yield  # Make it an async generator

        with patch("providers.agent_sdk.query", mock_query):
            from providers.agent_sdk import AgentSDKProvider
            with pytest.raises(TransportError, match="Connection failed"):
                await AgentSDKProvider(model="m").complete(_messages())

    @pytest.mark.asyncio
    async def test_error_result_becomes_transport_error(self):
        from config.exceptions import TransportError

        async def mock_query(*args, **kwargs):
            yield _make_result_message("overloaded", is_error=True)

        with patch("providers.agent_sdk.query", mock_query):
            from providers.agent_sdk import AgentSDKProvider
            with pytest.raises(TransportError):
                await AgentSDKProvider(model="m").complete(_messages())

    @pytest.mark.asyncio
    async def test_falls_back_to_assistant_message(self):
        async def mock_query(*args, **kwargs):
            yield AssistantMessage(
                content=[TextBlock(text="Fallback text")],
                model="claude-test",
                parent_tool_use_id=None,
                error=None,
            )

        with patch("providers.agent_sdk.query", mock_query):
            from providers.agent_sdk import AgentSDKProvider
            result = await AgentSDKProvider(model="m").complete(_messages())
        assert result.content == "Fallback text"


class TestCreateProvider:
    def test_openai_backend(self, settings):
        from providers import OpenAICompatibleProvider, create_provider
        provider = create_provider(settings, "analyze")
        assert isinstance(provider, OpenAICompatibleProvider)
        assert provider.model == settings.model_analysis
        assert provider.api_key == "test-key"

    def test_claude_agent_backend(self, settings):
        from providers import create_provider
        from providers.agent_sdk import AgentSDKProvider
        settings.provider_backend = "claude_agent"
        provider = create_provider(settings, "edit", model="override")
        assert isinstance(provider, AgentSDKProvider)
        assert provider.model == "override"

    def test_stage_providers_cover_every_stage(self, settings):
        from providers import STAGES, create_stage_providers
        providers = create_stage_providers(settings)
        assert set(providers) == set(STAGES)
        assert providers["translate"].model == settings.model_translation

    def test_backends_satisfy_protocol(self, settings):
        from providers import LLMProvider, create_provider
        assert isinstance(create_provider(settings), LLMProvider)
