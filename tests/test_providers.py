"""
Tests for Zulu Pilot providers.

HTTP providers run against httpx.MockTransport; the OpenAI provider runs
against a mocked SDK client.
"""
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from zulu_pilot.config import ProviderConfiguration
from zulu_pilot.errors import (
    InvalidApiKeyError,
    ModelNotFoundError,
    ProviderConnectionError,
    RateLimitError,
    ValidationError,
)
from zulu_pilot.providers import (
    SYSTEM_PROMPT,
    FileContext,
    GeminiProvider,
    ModelCatalog,
    ModelProvider,
    OllamaProvider,
    OpenAIProvider,
    as_model_catalog,
    build_messages,
)


def sse(*events):
    """Encode SSE data events."""
    return "".join(f"data: {event}\n\n" for event in events).encode()


def openai_delta(text):
    return json.dumps({"choices": [{"delta": {"content": text}}]})


def gemini_chunk(text):
    return json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}]})


class TrackingStream(httpx.AsyncByteStream):
    """Response body that records whether it was closed."""

    def __init__(self, chunks):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self):
        self.closed = True


class AsyncIter:
    """Minimal async iterable over a list."""

    def __init__(self, items):
        self.items = list(items)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self.items:
            yield item


# =============================================================================
# Contract Helpers
# =============================================================================


class TestBuildMessages:
    def test_without_context(self):
        messages = build_messages("hi", [])
        assert messages == [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "hi"},
        ]

    def test_embeds_context_files(self, sample_context):
        system = build_messages("hi", sample_context)[0]["content"]
        assert "Here is the codebase context:" in system
        assert "File: src/main.py\nprint('hi')" in system
        assert "File: README.md\n# Demo" in system


class TestCapabilities:
    def test_concrete_providers_offer_catalog(self):
        provider = OllamaProvider()
        assert isinstance(provider, ModelProvider)
        assert as_model_catalog(provider) is provider

    def test_plain_provider_has_no_catalog(self):
        class Minimal:
            name = "minimal"

            async def generate_response(self, prompt, context, *, model=None):
                return "x"

            async def stream_response(self, prompt, context, *, model=None):
                yield "x"

        provider = Minimal()
        assert isinstance(provider, ModelProvider)
        assert not isinstance(provider, ModelCatalog)
        assert as_model_catalog(provider) is None


# =============================================================================
# Ollama
# =============================================================================


class TestOllamaProvider:
    """Tests for OllamaProvider."""

    def test_defaults(self):
        provider = OllamaProvider()
        assert provider.name == "ollama"
        assert provider.base_url == "http://localhost:11434"
        assert provider.get_model() == "qwen2.5-coder"
        assert provider.timeout_ms == 5000

    def test_from_config(self):
        config = ProviderConfiguration(
            type="ollama", name="local", base_url="http://gpu-box:11434/", model="codellama"
        )
        provider = OllamaProvider.from_config(config)
        assert provider.name == "local"
        assert provider.base_url == "http://gpu-box:11434"
        assert provider.get_model() == "codellama"
        assert provider.timeout_ms == 5000

    def test_construction_performs_no_io(self):
        handler = MagicMock()
        OllamaProvider(transport=httpx.MockTransport(handler))
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_generate(self, sample_context):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "hello"}}]})

        provider = OllamaProvider("local", transport=httpx.MockTransport(handler))
        result = await provider.generate_response("hi", sample_context)

        assert result == "hello"
        assert seen["path"] == "/v1/chat/completions"
        assert seen["body"]["model"] == "qwen2.5-coder"
        assert seen["body"]["stream"] is False
        assert seen["body"]["temperature"] == 0.7
        assert seen["body"]["max_tokens"] == 4096
        assert seen["body"]["messages"][1] == {"role": "user", "content": "hi"}
        await provider.close()

    @pytest.mark.asyncio
    async def test_generate_empty_content_returns_empty_text(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        provider = OllamaProvider(transport=httpx.MockTransport(handler))
        assert await provider.generate_response("hi", []) == ""

    @pytest.mark.asyncio
    async def test_stream(self):
        body = sse(openai_delta("hel"), "", openai_delta("lo"), "[DONE]", openai_delta("late"))

        def handler(request):
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(
                200, content=body, headers={"content-type": "text/event-stream"}
            )

        provider = OllamaProvider(transport=httpx.MockTransport(handler))
        fragments = [f async for f in provider.stream_response("hi", [])]

        assert fragments == ["hel", "lo"]

    @pytest.mark.asyncio
    async def test_stream_model_bound_at_call(self):
        models = []

        def handler(request):
            models.append(json.loads(request.content)["model"])
            return httpx.Response(200, content=sse(openai_delta("ok"), "[DONE]"))

        provider = OllamaProvider(transport=httpx.MockTransport(handler))
        stream = provider.stream_response("hi", [], model="codellama")
        provider.set_model("llama3")

        assert [f async for f in stream] == ["ok"]
        assert models == ["codellama"]

    @pytest.mark.asyncio
    async def test_stream_skips_malformed_chunks(self):
        body = sse("{not json", openai_delta("ok"), "[DONE]")
        provider = OllamaProvider(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=body))
        )
        assert [f async for f in provider.stream_response("hi", [])] == ["ok"]

    @pytest.mark.asyncio
    async def test_stream_early_close_releases_response(self):
        body = TrackingStream([sse(openai_delta("a")), sse(openai_delta("b")), sse("[DONE]")])
        provider = OllamaProvider(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=body))
        )

        stream = provider.stream_response("hi", [])
        assert await stream.__anext__() == "a"
        await stream.aclose()

        assert body.closed

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        provider = OllamaProvider("ollama", transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderConnectionError) as exc_info:
            await provider.generate_response("hi", [])

        assert exc_info.value.provider == "ollama"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert "Ollama is running locally" in exc_info.value.get_user_message()

    @pytest.mark.asyncio
    async def test_stream_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        provider = OllamaProvider(transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderConnectionError):
            [f async for f in provider.stream_response("hi", [])]

    @pytest.mark.asyncio
    async def test_unknown_model(self):
        def handler(request):
            return httpx.Response(404, json={"error": "model 'nope' not found"})

        provider = OllamaProvider(model="nope", transport=httpx.MockTransport(handler))
        with pytest.raises(ModelNotFoundError) as exc_info:
            [f async for f in provider.stream_response("hi", [])]

        assert exc_info.value.model == "nope"

    @pytest.mark.asyncio
    async def test_list_models(self):
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(
                200, json={"models": [{"name": "qwen2.5-coder:latest"}, {"name": "llama3"}]}
            )

        provider = OllamaProvider(transport=httpx.MockTransport(handler))
        assert await provider.list_models() == ["qwen2.5-coder:latest", "llama3"]
        assert await provider.has_model("llama3")
        assert not await provider.has_model("mistral")

    @pytest.mark.asyncio
    async def test_has_model_false_when_listing_fails(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        provider = OllamaProvider(transport=httpx.MockTransport(handler))
        assert await provider.has_model("llama3") is False

    def test_set_model(self):
        provider = OllamaProvider()
        provider.set_model("llama3")
        assert provider.get_model() == "llama3"


# =============================================================================
# Gemini
# =============================================================================


class TestGeminiProvider:
    """Tests for GeminiProvider."""

    def test_requires_api_key(self):
        with pytest.raises(ValidationError) as exc_info:
            GeminiProvider(api_key="")
        assert exc_info.value.field == "api_key"

    def test_from_config_reads_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-env")
        provider = GeminiProvider.from_config(ProviderConfiguration(type="gemini", name="google"))
        assert provider.name == "google"
        assert provider.get_model() == "gemini-pro"
        assert provider.timeout_ms == 30000

    @pytest.mark.asyncio
    async def test_generate(self, sample_context):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=gemini_chunk("hello"))

        provider = GeminiProvider(api_key="g-key", transport=httpx.MockTransport(handler))
        assert await provider.generate_response("hi", sample_context) == "hello"

        assert seen["path"] == "/v1beta/models/gemini-pro:generateContent"
        assert seen["key"] == "g-key"
        body = seen["body"]
        assert body["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
        assert "File: src/main.py" in body["systemInstruction"]["parts"][0]["text"]
        assert body["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 4096}

    @pytest.mark.asyncio
    async def test_stream(self):
        def handler(request):
            assert request.url.path.endswith(":streamGenerateContent")
            assert request.url.params["alt"] == "sse"
            return httpx.Response(200, content=sse(gemini_chunk("hel"), gemini_chunk("lo")))

        provider = GeminiProvider(api_key="g", transport=httpx.MockTransport(handler))
        assert [f async for f in provider.stream_response("hi", [])] == ["hel", "lo"]

    @pytest.mark.asyncio
    async def test_request_model_overrides_current(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, content=gemini_chunk("ok"))

        provider = GeminiProvider(api_key="g", transport=httpx.MockTransport(handler))
        await provider.generate_response("hi", [], model="gemini-1.5-flash")

        assert paths == ["/v1beta/models/gemini-1.5-flash:generateContent"]
        assert provider.get_model() == "gemini-pro"

    @pytest.mark.asyncio
    async def test_generate_empty_candidates_returns_empty_text(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": []})

        provider = GeminiProvider(api_key="g", transport=httpx.MockTransport(handler))
        assert await provider.generate_response("hi", []) == ""

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        def handler(request):
            return httpx.Response(
                429,
                headers={"Retry-After": "2"},
                json={"error": {"code": 429, "message": "Resource has been exhausted"}},
            )

        provider = GeminiProvider(api_key="g", transport=httpx.MockTransport(handler))
        with pytest.raises(RateLimitError) as exc_info:
            await provider.generate_response("hi", [])

        assert exc_info.value.retry_after == 2.0
        assert exc_info.value.message == "Resource has been exhausted"

    @pytest.mark.asyncio
    async def test_server_error_is_connection_error(self):
        provider = GeminiProvider(
            api_key="g",
            transport=httpx.MockTransport(lambda request: httpx.Response(503, text="busy")),
        )
        with pytest.raises(ProviderConnectionError):
            await provider.generate_response("hi", [])

    @pytest.mark.asyncio
    async def test_list_models_strips_prefix(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"models": [{"name": "models/gemini-pro"}, {"name": "models/gemini-1.5-flash"}]},
            )

        provider = GeminiProvider(api_key="g", transport=httpx.MockTransport(handler))
        assert await provider.list_models() == ["gemini-pro", "gemini-1.5-flash"]


# =============================================================================
# OpenAI
# =============================================================================


def make_openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.close = AsyncMock()
    return client


def completion(text):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = text
    return response


def chunk(text):
    item = MagicMock()
    item.choices = [MagicMock()]
    item.choices[0].delta.content = text
    return item


class FakeSDKStream:
    """Async iterable chunk stream with close()."""

    def __init__(self, chunks):
        self.chunks = chunks
        self.close = AsyncMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self.chunks:
            yield item


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    def test_requires_api_key(self):
        with pytest.raises(ValidationError):
            OpenAIProvider(api_key="")

    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        provider = OpenAIProvider.from_config(
            ProviderConfiguration(
                type="openai",
                name="cloud",
                model="gpt-4o-mini",
                provider_specific={"organization": "org-1"},
            )
        )
        assert provider.name == "cloud"
        assert provider.get_model() == "gpt-4o-mini"
        assert provider.base_url == "https://api.openai.com/v1"
        assert provider._organization == "org-1"

    def test_client_disables_sdk_retries(self):
        provider = OpenAIProvider(api_key="sk-test", timeout_ms=1500)
        with patch("openai.AsyncOpenAI") as client_cls:
            provider._get_client()
        kwargs = client_cls.call_args.kwargs
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"] == 1.5
        assert kwargs["api_key"] == "sk-test"

    @pytest.mark.asyncio
    async def test_generate(self, sample_context):
        client = make_openai_client()
        client.chat.completions.create.return_value = completion("hello")
        provider = OpenAIProvider(api_key="sk-test")

        with patch.object(provider, "_get_client", return_value=client):
            result = await provider.generate_response("hi", sample_context)

        assert result == "hello"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4"
        assert kwargs["stream"] is False
        assert kwargs["messages"][1] == {"role": "user", "content": "hi"}

    @pytest.mark.asyncio
    async def test_generate_with_request_model(self):
        client = make_openai_client()
        client.chat.completions.create.return_value = completion("hello")
        provider = OpenAIProvider(api_key="sk-test")

        with patch.object(provider, "_get_client", return_value=client):
            await provider.generate_response("hi", [], model="gpt-4o-mini")

        assert client.chat.completions.create.call_args.kwargs["model"] == "gpt-4o-mini"
        assert provider.get_model() == "gpt-4"

    @pytest.mark.asyncio
    async def test_generate_empty_content_returns_empty_text(self):
        client = make_openai_client()
        client.chat.completions.create.return_value = completion(None)
        provider = OpenAIProvider(api_key="sk-test")

        with patch.object(provider, "_get_client", return_value=client):
            assert await provider.generate_response("hi", []) == ""

    @pytest.mark.asyncio
    async def test_stream(self):
        sdk_stream = FakeSDKStream([chunk("hel"), chunk(None), chunk("lo")])
        client = make_openai_client()
        client.chat.completions.create.return_value = sdk_stream
        provider = OpenAIProvider(api_key="sk-test")

        with patch.object(provider, "_get_client", return_value=client):
            fragments = [f async for f in provider.stream_response("hi", [])]

        assert fragments == ["hel", "lo"]
        sdk_stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_early_close(self):
        sdk_stream = FakeSDKStream([chunk("a"), chunk("b"), chunk("c")])
        client = make_openai_client()
        client.chat.completions.create.return_value = sdk_stream
        provider = OpenAIProvider(api_key="sk-test")

        with patch.object(provider, "_get_client", return_value=client):
            stream = provider.stream_response("hi", [])
            assert await stream.__anext__() == "a"
            await stream.aclose()

        sdk_stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_models_filters_chat_models(self):
        client = make_openai_client()
        models = [MagicMock(id=i) for i in ("whisper-1", "gpt-4o", "o1-mini", "gpt-4", "dall-e-3")]
        client.models.list = MagicMock(return_value=AsyncIter(models))
        provider = OpenAIProvider(api_key="sk-test")

        with patch.object(provider, "_get_client", return_value=client):
            assert await provider.list_models() == ["gpt-4", "gpt-4o", "o1-mini"]

    @pytest.mark.asyncio
    async def test_close(self):
        provider = OpenAIProvider(api_key="sk-test")
        client = make_openai_client()
        provider._client = client

        await provider.close()

        client.close.assert_awaited_once()
        assert provider._client is None


class TestOpenAIErrorMapping:
    """Tests for SDK exception mapping."""

    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

    def status_error(self, cls, status, headers=None):
        response = httpx.Response(status, headers=headers or {}, request=self.request)
        return cls("upstream message", response=response, body=None)

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        import openai

        provider = OpenAIProvider(api_key="sk-test")
        client = make_openai_client()
        client.chat.completions.create.side_effect = self.status_error(
            openai.RateLimitError, 429, {"retry-after": "5"}
        )

        with patch.object(provider, "_get_client", return_value=client):
            with pytest.raises(RateLimitError) as exc_info:
                await provider.generate_response("hi", [])

        assert exc_info.value.retry_after == 5.0
        assert isinstance(exc_info.value.__cause__, openai.RateLimitError)

    @pytest.mark.asyncio
    async def test_authentication(self):
        import openai

        provider = OpenAIProvider(api_key="sk-test")
        client = make_openai_client()
        client.chat.completions.create.side_effect = self.status_error(
            openai.AuthenticationError, 401
        )

        with patch.object(provider, "_get_client", return_value=client):
            with pytest.raises(InvalidApiKeyError):
                await provider.generate_response("hi", [])

    @pytest.mark.asyncio
    async def test_model_not_found(self):
        import openai

        provider = OpenAIProvider(api_key="sk-test", model="gpt-9")
        client = make_openai_client()
        client.chat.completions.create.side_effect = self.status_error(openai.NotFoundError, 404)

        with patch.object(provider, "_get_client", return_value=client):
            with pytest.raises(ModelNotFoundError) as exc_info:
                [f async for f in provider.stream_response("hi", [])]

        assert exc_info.value.model == "gpt-9"

    @pytest.mark.asyncio
    async def test_connection(self):
        import openai

        provider = OpenAIProvider(api_key="sk-test")
        client = make_openai_client()
        client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=self.request
        )

        with patch.object(provider, "_get_client", return_value=client):
            with pytest.raises(ProviderConnectionError):
                await provider.generate_response("hi", [])

    @pytest.mark.asyncio
    async def test_timeout(self):
        import openai

        provider = OpenAIProvider(api_key="sk-test")
        client = make_openai_client()
        client.chat.completions.create.side_effect = openai.APITimeoutError(request=self.request)

        with patch.object(provider, "_get_client", return_value=client):
            with pytest.raises(ProviderConnectionError, match="timed out"):
                await provider.generate_response("hi", [])
