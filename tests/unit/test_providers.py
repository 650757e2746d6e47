"""Tests for provider adapters, transport retry and provider selection."""

import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from scenario_engine.config.settings import Settings
from scenario_engine.exceptions import (
    GenerationError,
    ProviderTransportError,
    ProviderUnavailableError,
)
from scenario_engine.generation.provider_factory import (
    create_fallback_provider,
    create_provider,
    is_provider_available,
)
from scenario_engine.generation.providers.claude_cli_provider import ClaudeCliProvider
from scenario_engine.generation.providers.gemini_provider import GeminiProvider
from scenario_engine.generation.providers.ollama_provider import OllamaProvider
from scenario_engine.generation.providers.openai_provider import OpenAIProvider
from scenario_engine.generation.retry import call_with_retry
from scenario_engine.models.domain import ChatMessage, GenerationOptions

MESSAGES = [
    ChatMessage(role="system", content="system prompt"),
    ChatMessage(role="user", content="user prompt"),
]
OPTIONS = GenerationOptions(temperature=0.3, max_tokens=500, model="llama3")


def ollama_reply(content='{"scenarios": []}'):
    return httpx.Response(
        200,
        json={
            "model": "llama3",
            "message": {"role": "assistant", "content": content},
            "prompt_eval_count": 12,
            "eval_count": 8,
        },
    )


def ollama_with(handler, settings):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaProvider(settings, client=client)


@pytest.fixture
def no_cloud_settings(tmp_dir):
    return Settings(
        _env_file=None,
        openai_api_key="",
        google_api_key="",
        claude_cli_path=f"{tmp_dir}/missing-claude",
        provider_retry_base_s=0.0,
        provider_max_retries=3,
    )


@pytest.mark.asyncio
async def test_ollama_success(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, json.loads(request.content)))
        return ollama_reply()

    provider = ollama_with(handler, settings)
    result = await provider.generate(MESSAGES, OPTIONS)
    await provider.aclose()

    assert result.content == '{"scenarios": []}'
    assert result.model == "llama3"
    assert result.usage.total_tokens == 20
    path, payload = seen[0]
    assert path == "/api/chat"
    assert payload["stream"] is False
    assert payload["format"] == "json"
    assert payload["options"] == {"temperature": 0.3, "num_predict": 500}
    assert payload["messages"][0] == {"role": "system", "content": "system prompt"}


@pytest.mark.asyncio
async def test_ollama_retries_server_errors(settings):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) == 1:
            return httpx.Response(500, text="overloaded")
        return ollama_reply()

    provider = ollama_with(handler, settings)
    result = await provider.generate(MESSAGES, OPTIONS)

    assert len(calls) == 2
    assert result.content == '{"scenarios": []}'


@pytest.mark.asyncio
async def test_ollama_gives_up_after_max_retries(no_cloud_settings):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        raise httpx.ConnectError("connection refused")

    provider = ollama_with(handler, no_cloud_settings)
    with pytest.raises(ProviderTransportError):
        await provider.generate(MESSAGES, OPTIONS)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_ollama_client_error_is_not_retried(settings):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(400, text="bad model")

    provider = ollama_with(handler, settings)
    with pytest.raises(GenerationError) as exc_info:
        await provider.generate(MESSAGES, OPTIONS)

    assert not isinstance(exc_info.value, ProviderTransportError)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_ollama_empty_content(settings):
    provider = ollama_with(lambda request: ollama_reply(""), settings)
    with pytest.raises(GenerationError, match="Empty response from Ollama"):
        await provider.generate(MESSAGES, OPTIONS)


def test_ollama_profiles(settings):
    provider = OllamaProvider(settings, client=httpx.AsyncClient())
    assert provider.primary_profile().temperature == settings.ollama_temperature_primary
    fallback = provider.fallback_profile()
    assert fallback.temperature == 0.0
    assert fallback.model == settings.ollama_model_primary
    assert fallback.system_prompt_suffix


def test_claude_parse_cli_output():
    out = json.dumps(
        {
            "type": "result",
            "subtype": "success",
            "is_error": False,
            "result": '```json\n{"scenarios": []}\n```',
            "usage": {"input_tokens": 10, "cache_read_input_tokens": 5, "output_tokens": 7},
        }
    )
    result = ClaudeCliProvider.parse_cli_output(out, "sonnet")
    assert result.content == '{"scenarios": []}'
    assert result.model == "sonnet"
    assert result.usage.prompt_tokens == 15
    assert result.usage.completion_tokens == 7
    assert result.usage.total_tokens == 22


def test_claude_parse_cli_errors():
    with pytest.raises(GenerationError, match="returned error"):
        ClaudeCliProvider.parse_cli_output(
            json.dumps({"subtype": "error_max_turns", "is_error": True, "result": "nope"}), "sonnet"
        )
    with pytest.raises(GenerationError, match="Failed to parse"):
        ClaudeCliProvider.parse_cli_output("not json", "sonnet")


def test_claude_unavailable_raises(no_cloud_settings):
    with pytest.raises(ProviderUnavailableError):
        ClaudeCliProvider(no_cloud_settings)


def test_factory_falls_back_to_ollama(no_cloud_settings):
    assert isinstance(create_provider("unknown", no_cloud_settings), OllamaProvider)
    assert isinstance(create_provider("openai", no_cloud_settings), OllamaProvider)
    assert isinstance(create_provider("gemini", no_cloud_settings), OllamaProvider)
    assert isinstance(create_provider("claude", no_cloud_settings), OllamaProvider)


def test_factory_creates_configured_provider():
    settings = Settings(
        _env_file=None,
        llm_provider="ollama",
        llm_fallback_provider="OpenAI",
        openai_api_key="sk-test",
    )
    assert isinstance(create_provider(settings.llm_provider, settings), OllamaProvider)
    assert isinstance(create_fallback_provider(settings), OpenAIProvider)


def test_is_provider_available(no_cloud_settings):
    assert is_provider_available("ollama", no_cloud_settings)
    assert not is_provider_available("openai", no_cloud_settings)
    assert not is_provider_available("claude", no_cloud_settings)
    assert not is_provider_available("does-not-exist", no_cloud_settings)


@pytest.mark.asyncio
async def test_retry_times_out_each_attempt_and_retries():
    settings = Settings(
        _env_file=None, provider_timeout_s=0.1, provider_retry_base_s=0.0, provider_max_retries=3
    )
    calls = []

    async def call():
        calls.append(1)
        if len(calls) == 1:
            await asyncio.sleep(5)
        return "ok"

    assert await call_with_retry(call, settings, "test") == "ok"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_retry_gives_up_when_every_attempt_times_out():
    settings = Settings(
        _env_file=None, provider_timeout_s=0.05, provider_retry_base_s=0.0, provider_max_retries=2
    )
    calls = []

    async def call():
        calls.append(1)
        await asyncio.sleep(5)

    with pytest.raises(ProviderTransportError, match="timed out"):
        await call_with_retry(call, settings, "test")
    assert len(calls) == 2


OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def openai_status_error(cls, status):
    return cls(
        f"status {status}", response=httpx.Response(status, request=OPENAI_REQUEST), body=None
    )


def openai_raising(settings, error):
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        raise error

    provider = OpenAIProvider(settings)
    provider._client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create))
    )
    return provider, calls


@pytest.fixture
def openai_settings(settings):
    return settings.model_copy(update={"openai_api_key": "sk-test", "provider_max_retries": 3})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        openai.APIConnectionError(request=OPENAI_REQUEST),
        openai_status_error(openai.RateLimitError, 429),
        openai_status_error(openai.InternalServerError, 503),
    ],
)
async def test_openai_transient_errors_are_retried(openai_settings, error):
    provider, calls = openai_raising(openai_settings, error)

    with pytest.raises(ProviderTransportError, match="OpenAI request failed"):
        await provider.generate(MESSAGES, OPTIONS)
    assert len(calls) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        openai_status_error(openai.BadRequestError, 400),
        openai_status_error(openai.AuthenticationError, 401),
    ],
)
async def test_openai_request_errors_are_not_retried(openai_settings, error):
    provider, calls = openai_raising(openai_settings, error)

    with pytest.raises(GenerationError, match="OpenAI generation failed") as exc_info:
        await provider.generate(MESSAGES, OPTIONS)
    assert not isinstance(exc_info.value, ProviderTransportError)
    assert len(calls) == 1


def gemini_error(cls, code, status):
    return cls(code, {"error": {"code": code, "message": status.lower(), "status": status}})


def gemini_raising(settings, error):
    calls = []

    async def generate_content(**kwargs):
        calls.append(kwargs)
        raise error

    provider = GeminiProvider(settings)
    provider._client = SimpleNamespace(
        aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
    )
    return provider, calls


@pytest.fixture
def gemini_settings(settings):
    return settings.model_copy(update={"google_api_key": "g-test", "provider_max_retries": 3})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        gemini_error(genai_errors.ServerError, 503, "UNAVAILABLE"),
        gemini_error(genai_errors.ClientError, 429, "RESOURCE_EXHAUSTED"),
        gemini_error(genai_errors.ClientError, 408, "DEADLINE_EXCEEDED"),
        ConnectionResetError("connection reset"),
    ],
)
async def test_gemini_transient_errors_are_retried(gemini_settings, error):
    provider, calls = gemini_raising(gemini_settings, error)

    with pytest.raises(ProviderTransportError, match="Gemini request failed"):
        await provider.generate(MESSAGES, OPTIONS)
    assert len(calls) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        gemini_error(genai_errors.ClientError, 400, "INVALID_ARGUMENT"),
        gemini_error(genai_errors.ClientError, 403, "PERMISSION_DENIED"),
    ],
)
async def test_gemini_request_errors_are_not_retried(gemini_settings, error):
    provider, calls = gemini_raising(gemini_settings, error)

    with pytest.raises(GenerationError, match="Gemini generation failed") as exc_info:
        await provider.generate(MESSAGES, OPTIONS)
    assert not isinstance(exc_info.value, ProviderTransportError)
    assert len(calls) == 1
