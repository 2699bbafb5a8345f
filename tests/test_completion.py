"""
Tests for the provider relays' response shaping and error mapping.
"""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from lina.core.errors import UpstreamError
from lina.core.topics import BREVITY_PROMPT
from lina.services.completion import GeminiRelay, OpenAIRelay, build_relay

from conftest import make_settings

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def openai_completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def openai_status_error(cls, status_code):
    response = httpx.Response(status_code, request=httpx.Request("POST", OPENAI_URL))
    return cls("provider said no", response=response, body=None)


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


class TestOpenAIRelay:
    def test_returns_trimmed_reply(self, openai_client):
        openai_client.chat.completions.create.return_value = openai_completion("  Receta lista.  ")
        relay = OpenAIRelay("sk-test", "gpt-4o-mini", client=openai_client)

        reply = asyncio.run(relay.complete("system", "hola"))

        assert reply == "Receta lista."
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.6
        assert kwargs["max_tokens"] == 600
        assert kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "system", "content": BREVITY_PROMPT},
            {"role": "user", "content": "hola"},
        ]

    def test_empty_completion_is_an_upstream_error(self, openai_client):
        openai_client.chat.completions.create.return_value = openai_completion("   ")
        relay = OpenAIRelay("sk-test", "gpt-4o-mini", client=openai_client)

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(relay.complete("system", "hola"))
        assert exc_info.value.rate_limited is False

    def test_rate_limit_is_flagged(self, openai_client):
        openai_client.chat.completions.create.side_effect = openai_status_error(openai.RateLimitError, 429)
        relay = OpenAIRelay("sk-test", "gpt-4o-mini", client=openai_client)

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(relay.complete("system", "hola"))

        assert exc_info.value.rate_limited is True
        assert exc_info.value.status_code == 429
        assert "429" in exc_info.value.detail

    def test_auth_error_is_generic_upstream_error(self, openai_client):
        openai_client.chat.completions.create.side_effect = openai_status_error(openai.AuthenticationError, 401)
        relay = OpenAIRelay("sk-test", "gpt-4o-mini", client=openai_client)

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(relay.complete("system", "hola"))

        assert exc_info.value.status_code == 502
        assert exc_info.value.rate_limited is False


class TestGeminiRelay:
    def gemini_client(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock()
        return client

    def test_returns_text(self):
        client = self.gemini_client()
        client.aio.models.generate_content.return_value = SimpleNamespace(text="Hola desde Gemini")
        relay = GeminiRelay("key", "gemini-2.0-flash", client=client)

        assert asyncio.run(relay.complete("system", "hola")) == "Hola desde Gemini"
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["contents"] == "hola"

    def test_resource_exhausted_is_flagged(self):
        client = self.gemini_client()
        client.aio.models.generate_content.side_effect = genai_errors.ClientError(
            429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}}
        )
        relay = GeminiRelay("key", "gemini-2.0-flash", client=client)

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(relay.complete("system", "hola"))
        assert exc_info.value.rate_limited is True


class TestBuildRelay:
    def test_openai_is_default(self):
        relay = build_relay(make_settings())
        assert isinstance(relay, OpenAIRelay)
        assert relay.model == "gpt-4o-mini"

    def test_gemini_provider(self):
        relay = build_relay(make_settings(llm_provider="gemini", gemini_api_key="g-key", model="gemini-2.0-flash"))
        assert isinstance(relay, GeminiRelay)
