"""
Tests for the HTTP provider adapters, run against httpx.MockTransport.
"""

import json

import httpx
import pytest

from conftest import FakeClock
from domain import ProviderState
from errors import (
    AuthenticationError,
    ProviderTimeoutError,
    RateLimitedError,
    UpstreamError,
)
from inference import GeminiProvider, OpenAICompatProvider, ProviderStatusBoard, RespondOptions
from inference.gemini import to_gemini_payload

MESSAGES = [
    {"role": "system", "content": "You are a coach."},
    {"role": "user", "content": "How many rest days?"},
    {"role": "assistant", "content": "Two."},
    {"role": "user", "content": "Why?"},
]

OPTIONS = RespondOptions(timeout=2, intent="general")


def _openai(handler, board=None, **kwargs):
    return OpenAICompatProvider(
        "groq", "https://api.groq.test/openai/v1/", "llama-3.1-8b-instant",
        api_key=kwargs.pop("api_key", "gsk-secret-key"),
        status=board or ProviderStatusBoard(),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _gemini(handler, board=None):
    return GeminiProvider(
        "gemini", "https://gemini.test/v1beta", "gemini-1.5-flash",
        api_key="gem-secret-key",
        status=board or ProviderStatusBoard(),
        transport=httpx.MockTransport(handler),
    )


def _openai_body(content="Rest lets muscles repair."):
    return {
        "model": "llama-3.1-8b-instant",
        "choices": [{"message": {"role": "assistant", "content": content},
                     "finish_reason": "stop"}],
        "usage": {"total_tokens": 57},
    }


class TestOpenAICompat:

    @pytest.mark.asyncio
    async def test_request_and_normalized_response(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["referer"] = request.headers.get("http-referer")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_openai_body())

        provider = _openai(handler, headers={"HTTP-Referer": "https://nimbus.test"})
        response = await provider.respond(MESSAGES, OPTIONS)

        assert seen["url"] == "https://api.groq.test/openai/v1/chat/completions"
        assert seen["auth"] == "Bearer gsk-secret-key"
        assert seen["referer"] == "https://nimbus.test"
        assert seen["body"]["model"] == "llama-3.1-8b-instant"
        assert seen["body"]["messages"] == MESSAGES

        assert response.content == "Rest lets muscles repair."
        assert response.provider == "groq"
        assert response.intent == "general"
        assert response.metadata.model == "llama-3.1-8b-instant"
        assert response.metadata.tokens_used == 57
        assert response.metadata.extra["finish_reason"] == "stop"
        assert response.metadata.latency_ms is not None

    @pytest.mark.asyncio
    async def test_success_reported_to_board(self):
        board = ProviderStatusBoard()
        states = []
        board.add_listener(lambda rec: states.append(rec.state))
        provider = _openai(lambda r: httpx.Response(200, json=_openai_body()), board)
        await provider.respond(MESSAGES, OPTIONS)
        assert states == [ProviderState.TRYING, ProviderState.SUCCESS]
        assert board.get("groq").total_attempts == 1

    @pytest.mark.asyncio
    async def test_missing_key_never_sends(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_openai_body())

        provider = _openai(handler, api_key="")
        with pytest.raises(AuthenticationError):
            await provider.respond(MESSAGES, OPTIONS)
        assert calls == []

    @pytest.mark.parametrize("code", [401, 403])
    @pytest.mark.asyncio
    async def test_rejected_credential(self, code):
        provider = _openai(lambda r: httpx.Response(code, json={"error": "nope"}))
        with pytest.raises(AuthenticationError):
            await provider.respond(MESSAGES, OPTIONS)

    @pytest.mark.asyncio
    async def test_rate_limited_opens_window(self):
        clock = FakeClock()
        board = ProviderStatusBoard(clock=clock)
        provider = _openai(lambda r: httpx.Response(429, headers={"retry-after": "12"}), board)
        with pytest.raises(RateLimitedError) as exc:
            await provider.respond(MESSAGES, OPTIONS)
        assert exc.value.retry_after == 12.0
        assert board.get("groq").rate_limited_until == clock.now + 12

    @pytest.mark.asyncio
    async def test_rate_limited_without_header_uses_default(self):
        import config

        clock = FakeClock()
        board = ProviderStatusBoard(clock=clock)
        provider = _openai(lambda r: httpx.Response(429), board)
        with pytest.raises(RateLimitedError):
            await provider.respond(MESSAGES, OPTIONS)
        assert board.get("groq").rate_limited_until == clock.now + config.DEFAULT_RATE_LIMIT_SECONDS

    @pytest.mark.asyncio
    async def test_server_error(self):
        board = ProviderStatusBoard()
        provider = _openai(lambda r: httpx.Response(503), board)
        with pytest.raises(UpstreamError) as exc:
            await provider.respond(MESSAGES, OPTIONS)
        assert exc.value.status_code == 503
        record = board.get("groq")
        assert record.state == ProviderState.FAILED
        assert record.consecutive_failures == 1
        assert record.last_error == "HTTP 503"

    @pytest.mark.parametrize("body", [
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": "   "}}]},
    ])
    @pytest.mark.asyncio
    async def test_malformed_body(self, body):
        provider = _openai(lambda r: httpx.Response(200, json=body))
        with pytest.raises(UpstreamError):
            await provider.respond(MESSAGES, OPTIONS)

    @pytest.mark.asyncio
    async def test_transport_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        provider = _openai(handler)
        with pytest.raises(ProviderTimeoutError):
            await provider.respond(MESSAGES, OPTIONS)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = _openai(handler)
        with pytest.raises(UpstreamError, match="Transport error"):
            await provider.respond(MESSAGES, OPTIONS)

    def test_repr_redacts_key(self):
        provider = _openai(lambda r: httpx.Response(200))
        assert "gsk-secret-key" not in repr(provider)
        assert "...-key" in repr(provider)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            RespondOptions(timeout=0)


class TestGemini:

    def test_payload_shape(self):
        payload = to_gemini_payload(MESSAGES, OPTIONS)
        assert payload["systemInstruction"] == {"parts": [{"text": "You are a coach."}]}
        assert [c["role"] for c in payload["contents"]] == ["user", "model", "user"]
        assert payload["generationConfig"]["maxOutputTokens"] == OPTIONS.max_tokens

    @pytest.mark.asyncio
    async def test_request_and_normalized_response(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            return httpx.Response(200, json={
                "candidates": [{
                    "content": {"parts": [{"text": "Two rest days "}, {"text": "a week."}]},
                    "finishReason": "STOP",
                }],
                "usageMetadata": {"totalTokenCount": 31},
            })

        response = await _gemini(handler).respond(MESSAGES, OPTIONS)
        assert seen["path"] == "/v1beta/models/gemini-1.5-flash:generateContent"
        assert seen["key"] == "gem-secret-key"
        # the key travels in a header so request-URL logging never shows it
        assert "gem-secret-key" not in seen["url"]
        assert response.content == "Two rest days a week."
        assert response.metadata.tokens_used == 31
        assert response.metadata.extra == {"finish_reason": "STOP"}

    @pytest.mark.asyncio
    async def test_no_candidates(self):
        provider = _gemini(lambda r: httpx.Response(200, json={"candidates": []}))
        with pytest.raises(UpstreamError, match="Malformed"):
            await provider.respond(MESSAGES, OPTIONS)
