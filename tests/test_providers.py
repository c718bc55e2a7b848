"""Tests for the provider adapters."""
import httpx
import pytest

from ai.adapters import (
    PROVIDER_TYPES,
    AnthropicProvider,
    GeminiProvider,
    OpenAIProvider,
    PerplexityProvider,
    create_provider,
)
from core.config import ProviderConfig
from core.errors import ConfigError, UpstreamError, UpstreamParseError
from core.memory import Message

from conftest import ProviderStub, anthropic_reply, gemini_reply, openai_reply


TRANSCRIPT = [
    Message(role="system", text="Be brief."),
    Message(role="user", text="hi"),
    Message(role="ai", text="hello"),
    Message(role="user", text="again"),
]


def make_provider(name, stub, api_key="test-key", **settings):
    defaults = {
        "gemini": ("https://gemini.test/v1beta", "gemini-2.0-flash", "GEMINI_API_KEY"),
        "llama": ("https://perplexity.test", "llama-3-sonar-small-32k-online", "LLAMA_API_KEY"),
        "claude": ("https://anthropic.test/v1", "claude-3-opus-20240229", "CLAUDE_API_KEY"),
        "chatgpt": ("https://openai.test/v1", "gpt-4o", "CHATGPT_API_KEY"),
    }
    base_url, model, env = defaults[name]
    config = ProviderConfig(base_url=base_url, model=model, api_key_env=env, **settings)
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return create_provider(name, config, api_key, client)


class TestGeminiProvider:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        stub = ProviderStub(body=gemini_reply("Gemini says hi"))
        provider = make_provider(
            "gemini", stub,
            generation={"temperature": 0.7, "topP": 0.95, "topK": 40, "maxOutputTokens": 1024},
        )

        result = await provider.complete(TRANSCRIPT)

        assert result == "Gemini says hi"
        request = stub.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://gemini.test/v1beta/models/gemini-2.0-flash:generateContent"
        assert request.headers["x-goog-api-key"] == "test-key"
        assert request.headers["content-type"] == "application/json"
        assert stub.last_json == {
            "contents": [
                {"role": "user", "parts": [{"text": "Be brief."}]},
                {"role": "user", "parts": [{"text": "hi"}]},
                {"role": "model", "parts": [{"text": "hello"}]},
                {"role": "user", "parts": [{"text": "again"}]},
            ],
            "generationConfig": {"temperature": 0.7, "topP": 0.95, "topK": 40, "maxOutputTokens": 1024},
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"candidates": []},
        {"candidates": [{"content": {"parts": []}}]},
        {"promptFeedback": {"blockReason": "SAFETY"}},
        {"candidates": [{"content": {"parts": [{"text": None}]}}]},
    ])
    async def test_unexpected_shape_is_parse_error(self, body):
        provider = make_provider("gemini", ProviderStub(body=body))
        with pytest.raises(UpstreamParseError):
            await provider.complete(TRANSCRIPT)


class TestOpenAICompatibleProviders:

    @pytest.mark.asyncio
    async def test_chatgpt_request_shape(self):
        stub = ProviderStub(body=openai_reply("GPT says hi"))
        provider = make_provider("chatgpt", stub)

        result = await provider.complete(TRANSCRIPT)

        assert result == "GPT says hi"
        request = stub.requests[0]
        assert str(request.url) == "https://openai.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer test-key"
        assert stub.last_json == {
            "model": "gpt-4o",
            "messages": [
                {"role": "user", "content": "Be brief."},
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
                {"role": "user", "content": "again"},
            ],
        }

    @pytest.mark.asyncio
    async def test_llama_uses_perplexity_endpoint(self):
        stub = ProviderStub(body=openai_reply("Llama says hi"))
        provider = make_provider("llama", stub)

        assert isinstance(provider, PerplexityProvider)
        assert await provider.complete(TRANSCRIPT) == "Llama says hi"
        assert str(stub.requests[0].url) == "https://perplexity.test/chat/completions"
        assert stub.last_json["model"] == "llama-3-sonar-small-32k-online"
        # Only real turns are sent, no placeholder entries.
        assert len(stub.last_json["messages"]) == len(TRANSCRIPT)

    @pytest.mark.asyncio
    async def test_empty_choices_is_parse_error(self):
        provider = make_provider("chatgpt", ProviderStub(body={"choices": []}))
        with pytest.raises(UpstreamParseError):
            await provider.complete(TRANSCRIPT)


class TestAnthropicProvider:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        stub = ProviderStub(body=anthropic_reply("Claude says hi"))
        provider = make_provider("claude", stub, generation={"max_tokens": 1024})

        result = await provider.complete(TRANSCRIPT)

        assert result == "Claude says hi"
        request = stub.requests[0]
        assert str(request.url) == "https://anthropic.test/v1/messages"
        assert request.headers["x-api-key"] == "test-key"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert stub.last_json == {
            "model": "claude-3-opus-20240229",
            "max_tokens": 1024,
            "messages": [
                {"role": "user", "content": "Be brief."},
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
                {"role": "user", "content": "again"},
            ],
        }

    @pytest.mark.asyncio
    async def test_max_tokens_defaults_without_generation_config(self):
        stub = ProviderStub(body=anthropic_reply("ok"))
        provider = make_provider("claude", stub)
        await provider.complete(TRANSCRIPT)
        assert stub.last_json["max_tokens"] == 1024

    @pytest.mark.asyncio
    async def test_empty_content_is_parse_error(self):
        provider = make_provider("claude", ProviderStub(body={"content": []}))
        with pytest.raises(UpstreamParseError):
            await provider.complete(TRANSCRIPT)


class TestCommonContract:

    @pytest.mark.parametrize("name", sorted(PROVIDER_TYPES))
    def test_role_mapping_is_total_and_skips_unknown(self, name):
        provider = make_provider(name, ProviderStub())
        transcript = [
            Message(role="system", text="s"),
            Message(role="user", text="u"),
            Message(role="ai", text="a"),
            Message(role="tool", text="dropped"),
            Message(role="", text="dropped too"),
        ]

        mapped = provider.map_roles(transcript)

        assert [text for _, text in mapped] == ["s", "u", "a"]
        assert mapped[0][0] == "user"
        assert mapped[1][0] == "user"
        assert mapped[2][0] == ("model" if name == "gemini" else "assistant")
        assert provider.map_roles(transcript) == mapped

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", sorted(PROVIDER_TYPES))
    async def test_missing_api_key_fails_before_network(self, name):
        stub = ProviderStub()
        provider = make_provider(name, stub, api_key=None)

        with pytest.raises(ConfigError):
            await provider.complete(TRANSCRIPT)
        assert stub.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", sorted(PROVIDER_TYPES))
    async def test_http_error_keeps_status_and_body(self, name):
        stub = ProviderStub(status_code=500, body='{"error": "overloaded"}')
        provider = make_provider(name, stub)

        with pytest.raises(UpstreamError) as excinfo:
            await provider.complete(TRANSCRIPT)

        assert excinfo.value.status == 500
        assert excinfo.value.body == '{"error": "overloaded"}'
        assert "overloaded" in str(excinfo.value)
        assert len(stub.requests) == 1

    @pytest.mark.asyncio
    async def test_transport_failure_is_upstream_error_without_status(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider("chatgpt", refuse)
        with pytest.raises(UpstreamError) as excinfo:
            await provider.complete(TRANSCRIPT)
        assert excinfo.value.status is None
        assert "connection refused" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_non_json_body_is_parse_error(self):
        provider = make_provider("gemini", ProviderStub(body="<html>oops</html>"))
        with pytest.raises(UpstreamParseError):
            await provider.complete(TRANSCRIPT)

    def test_create_provider(self):
        assert isinstance(make_provider("gemini", ProviderStub()), GeminiProvider)
        assert isinstance(make_provider("llama", ProviderStub()), PerplexityProvider)
        assert isinstance(make_provider("claude", ProviderStub()), AnthropicProvider)
        assert isinstance(make_provider("chatgpt", ProviderStub()), OpenAIProvider)

        config = ProviderConfig(base_url="https://x.test", model="m", api_key_env="X")
        with pytest.raises(ConfigError):
            create_provider("unknown", config, "key", httpx.AsyncClient())
