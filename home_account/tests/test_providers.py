"""
Tests for the vendor adapters against mocked HTTP endpoints.
"""

import httpx
import pytest
import respx

from home_account.config import AISettings
from home_account.core.ai.errors import (
    MalformedResponse,
    ProviderAuthError,
    ProviderUnreachable,
    RateLimited,
    UpstreamError,
)
from home_account.core.ai.providers import (
    ClaudeProvider,
    GeminiProvider,
    GroqProvider,
    OllamaProvider,
    create_provider,
)
from home_account.core.ai.providers.groq import normalize_base_url

SETTINGS = AISettings(
    {
        "AI_ENABLED": "true",
        "CLAUDE_API_KEY": "claude-key",
        "GEMINI_API_KEY": "gemini-key",
        "GROQ_API_KEY": "groq-key",
    }
)

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"


def config(kind: str):
    return SETTINGS.provider_config(kind)


def test_create_provider_dispatch():
    assert isinstance(create_provider(config("claude")), ClaudeProvider)
    assert isinstance(create_provider(config("gemini")), GeminiProvider)
    assert isinstance(create_provider(config("groq")), GroqProvider)
    assert isinstance(create_provider(config("ollama")), OllamaProvider)
    assert create_provider(config("none")) is None


def test_availability_requires_key():
    """Hosted vendors need a key; Ollama never does."""
    no_keys = AISettings({"AI_ENABLED": "true"})

    assert not ClaudeProvider(no_keys.provider_config("claude")).is_available()
    assert OllamaProvider(no_keys.provider_config("ollama")).is_available()
    assert GroqProvider(config("groq")).is_available()


def test_normalize_groq_base_url():
    assert normalize_base_url("https://api.groq.com") == "https://api.groq.com/openai/v1"
    assert normalize_base_url("https://api.groq.com/openai/v1/") == "https://api.groq.com/openai/v1"


@respx.mock
async def test_claude_request():
    route = respx.post("https://api.anthropic.com/v1/messages").mock(
        return_value=httpx.Response(200, json={"content": [{"type": "text", "text": "  hola  "}]})
    )

    assert await ClaudeProvider(config("claude")).send_prompt("hi") == "hola"

    request = route.calls.last.request
    assert request.headers["x-api-key"] == "claude-key"
    assert request.headers["anthropic-version"] == "2023-06-01"


@respx.mock
async def test_claude_unexpected_block():
    respx.post("https://api.anthropic.com/v1/messages").mock(
        return_value=httpx.Response(200, json={"content": [{"type": "tool_use"}]})
    )

    with pytest.raises(MalformedResponse):
        await ClaudeProvider(config("claude")).send_prompt("hi")


@respx.mock
async def test_gemini_request():
    route = respx.post(
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    ).mock(
        return_value=httpx.Response(
            200, json={"candidates": [{"content": {"parts": [{"text": "respuesta"}]}}]}
        )
    )

    assert await GeminiProvider(config("gemini")).send_prompt("hi") == "respuesta"
    assert route.calls.last.request.url.params["key"] == "gemini-key"


@respx.mock
async def test_gemini_without_candidates():
    respx.post(url__startswith="https://generativelanguage.googleapis.com/").mock(
        return_value=httpx.Response(200, json={"candidates": []})
    )

    with pytest.raises(MalformedResponse):
        await GeminiProvider(config("gemini")).send_prompt("hi")


@respx.mock
async def test_groq_request():
    route = respx.post(GROQ_URL).mock(
        return_value=httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})
    )

    assert await GroqProvider(config("groq")).send_prompt("hi") == "ok"
    assert route.calls.last.request.headers["Authorization"] == "Bearer groq-key"


@pytest.mark.parametrize(
    "status,error",
    [(401, ProviderAuthError), (429, RateLimited), (500, UpstreamError), (503, UpstreamError)],
)
@respx.mock
async def test_groq_status_mapping(status, error):
    """Test that vendor status codes map onto the error taxonomy."""
    respx.post(GROQ_URL).mock(
        return_value=httpx.Response(status, json={"error": {"message": "nope"}})
    )

    with pytest.raises(error):
        await GroqProvider(config("groq")).send_prompt("hi")


@respx.mock
async def test_upstream_error_carries_status():
    respx.post(GROQ_URL).mock(return_value=httpx.Response(502, text="bad gateway"))

    with pytest.raises(UpstreamError) as exc_info:
        await GroqProvider(config("groq")).send_prompt("hi")
    assert exc_info.value.status == 502
    assert "HTTP 502" in exc_info.value.message


@respx.mock
async def test_ollama_request():
    route = respx.post("http://localhost:11434/api/generate").mock(
        return_value=httpx.Response(200, json={"response": "local answer"})
    )

    assert await OllamaProvider(config("ollama")).send_prompt("hi") == "local answer"
    assert route.calls.last.request.content


@respx.mock
async def test_ollama_unreachable():
    respx.post("http://localhost:11434/api/generate").mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(ProviderUnreachable):
        await OllamaProvider(config("ollama")).send_prompt("hi")


@respx.mock
async def test_ollama_error_field():
    respx.post("http://localhost:11434/api/generate").mock(
        return_value=httpx.Response(200, json={"error": "model not loaded"})
    )

    with pytest.raises(UpstreamError):
        await OllamaProvider(config("ollama")).send_prompt("hi")


@respx.mock
async def test_ollama_check_health():
    respx.get("http://localhost:11434/api/tags").mock(
        return_value=httpx.Response(200, json={"models": [{"name": "llama2:latest"}]})
    )

    assert await OllamaProvider(config("ollama")).check_health() == {"ok": True}


@respx.mock
async def test_ollama_check_health_missing_model():
    respx.get("http://localhost:11434/api/tags").mock(
        return_value=httpx.Response(200, json={"models": [{"name": "mistral:7b"}]})
    )

    health = await OllamaProvider(config("ollama")).check_health()

    assert health["ok"] is False
    assert "mistral:7b" in health["error"]


@respx.mock
async def test_ollama_check_health_down():
    respx.get("http://localhost:11434/api/tags").mock(side_effect=httpx.ConnectError("refused"))

    health = await OllamaProvider(config("ollama")).check_health()

    assert health["ok"] is False
    assert health["error"]
