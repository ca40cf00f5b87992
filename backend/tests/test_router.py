"""
Tests for the ProviderRouter fallback chain and the selection policies.
"""

import asyncio
import time

import httpx
import pytest

from conftest import FakeClock, ScriptedProvider
from core.classification import classify
from domain import IntentResult, RequestContext
from inference import (
    PriorityWithPenaltyPolicy,
    ProviderRouter,
    ProviderStatusBoard,
    RoundRobinPolicy,
    StaticPolicy,
    build_policy,
)


def _request(text="how should I warm up?", **kwargs):
    return RequestContext.create(text=text, **kwargs)


def _general():
    return IntentResult("general")


def _status_error(code: int, headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://provider.test/v1/chat/completions")
    response = httpx.Response(code, headers=headers or {}, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class TestToolFirst:

    @pytest.mark.asyncio
    async def test_deterministic_intent_answered_by_tool(self, registry, board):
        groq = ScriptedProvider("groq", status=board)
        router = ProviderRouter([groq], registry, status=board)
        text = "generate a 45 minute strength workout with dumbbells"
        outcome = await router.route(_request(text), classify(text))

        assert outcome.response.provider == "tools"
        assert outcome.response.tools_used == ["plan_workout"]
        assert outcome.response.confidence >= 0.9
        assert outcome.tool_result.success
        assert outcome.response.content.startswith("45-minute strength workout")
        assert groq.calls == []

    @pytest.mark.asyncio
    async def test_failed_tool_falls_through_to_provider(self, registry, board):
        groq = ScriptedProvider("groq", reply="Try eggs and oats.", status=board)
        router = ProviderRouter([groq], registry, status=board)
        intent = IntentResult("nutrition", "analyze_nutrition", {"food": "mystery stew"})
        outcome = await router.route(_request("I ate mystery stew"), intent)

        assert outcome.response.provider == "groq"
        assert outcome.response.intent == "nutrition"
        assert outcome.attempts[0].kind == "tool"
        assert not outcome.attempts[0].ok
        assert outcome.attempts[1].ok

    @pytest.mark.asyncio
    async def test_invalid_tool_params_fall_through(self, registry, board):
        groq = ScriptedProvider("groq", status=board)
        router = ProviderRouter([groq], registry, status=board)
        intent = IntentResult("planning", "plan_workout", {"goal": "strength"})  # no duration
        outcome = await router.route(_request("plan a strength workout"), intent)

        assert outcome.response.provider == "groq"
        assert outcome.attempts[0].error_type == "InvalidParametersError"

    def test_tool_params_filled_from_context(self, registry):
        router = ProviderRouter([], registry)
        request = _request("check this", binary_payload=b"img",
                           domain_state={"current_exercise": "squats"})
        params = router.tool_params(request, IntentResult("form", "analyze_form"))
        assert params == {"exercise": "squats", "media": b"img"}


class TestProviderChain:

    @pytest.mark.asyncio
    async def test_failures_move_to_next_provider(self, registry, board):
        groq = ScriptedProvider("groq", error=httpx.ConnectError("refused"), status=board)
        gemini = ScriptedProvider("gemini", reply="Stretch first.", status=board)
        router = ProviderRouter([groq, gemini], registry, policy=StaticPolicy(), status=board)
        outcome = await router.route(_request(), _general())

        assert outcome.response.provider == "gemini"
        assert outcome.response.content == "Stretch first."
        assert [a.candidate for a in outcome.attempts] == ["groq", "gemini"]
        assert outcome.attempts[0].error_type == "UpstreamError"
        assert board.get("groq").consecutive_failures == 1
        assert board.get("gemini").state.value == "success"

    @pytest.mark.asyncio
    async def test_missing_credential_skipped(self, registry, board):
        groq = ScriptedProvider("groq", api_key="", status=board)
        gemini = ScriptedProvider("gemini", status=board)
        router = ProviderRouter([groq, gemini], registry, policy=StaticPolicy(), status=board)
        outcome = await router.route(_request(), _general())

        assert outcome.response.provider == "gemini"
        assert outcome.attempts[0].error_type == "AuthenticationError"
        assert groq.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_adapter_error_is_contained(self, registry, board):
        groq = ScriptedProvider("groq", error=RuntimeError("boom"), status=board)
        gemini = ScriptedProvider("gemini", status=board)
        router = ProviderRouter([groq, gemini], registry, policy=StaticPolicy(), status=board)
        outcome = await router.route(_request(), _general())
        assert outcome.response.provider == "gemini"
        assert outcome.attempts[0].error_type == "UpstreamError"

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self, registry, board):
        slow = ScriptedProvider("slow", delay=5, status=board)
        fast = ScriptedProvider("fast", status=board)
        router = ProviderRouter([slow, fast], registry, policy=StaticPolicy(), status=board,
                                attempt_timeout=0.05)
        start = time.monotonic()
        outcome = await router.route(_request(), _general())

        assert outcome.response.provider == "fast"
        assert outcome.attempts[0].error_type == "ProviderTimeoutError"
        assert time.monotonic() - start < 1

    @pytest.mark.asyncio
    async def test_all_fail_returns_fallback(self, registry, board):
        providers = [
            ScriptedProvider("groq", error=_status_error(500), status=board),
            ScriptedProvider("gemini", error=_status_error(401), status=board),
        ]
        router = ProviderRouter(providers, registry, policy=StaticPolicy(), status=board)
        outcome = await router.route(_request(), _general())
        response = outcome.response

        assert response.is_fallback
        assert response.content
        assert response.confidence < 0.9
        assert response.metadata.extra["fallback"] is True
        assert response.metadata.extra["fallback_reason"].startswith("All providers failed")
        assert [a["error_type"] for a in response.metadata.extra["attempts"]] == [
            "UpstreamError", "AuthenticationError"]

    @pytest.mark.asyncio
    async def test_no_providers(self, registry):
        outcome = await ProviderRouter([], registry).route(_request(), _general())
        assert outcome.response.is_fallback
        assert outcome.response.metadata.extra["fallback_reason"] == "No reasoning providers available"

    @pytest.mark.asyncio
    async def test_overall_deadline_bounds_the_chain(self, registry, board):
        providers = [ScriptedProvider(f"p{i}", delay=5, status=board) for i in range(3)]
        router = ProviderRouter(providers, registry, policy=StaticPolicy(), status=board,
                                attempt_timeout=1, overall_deadline=0.1)
        start = time.monotonic()
        outcome = await router.route(_request(), _general())

        assert time.monotonic() - start < 1
        assert outcome.response.is_fallback
        assert outcome.response.metadata.extra["fallback_reason"].startswith("Deadline exceeded")

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, registry, board):
        slow = ScriptedProvider("slow", delay=5, status=board)
        router = ProviderRouter([slow], registry, status=board)
        task = asyncio.ensure_future(router.route(_request(), _general()))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert board.get("slow").last_error == "cancelled"

    def test_duplicate_provider_ids(self, registry, board):
        with pytest.raises(ValueError):
            ProviderRouter([ScriptedProvider("a", status=board),
                            ScriptedProvider("a", status=board)], registry)

    @pytest.mark.asyncio
    async def test_summary_reaches_prompt(self, registry, board):
        from domain import ConversationSummary

        groq = ScriptedProvider("groq", status=board)
        router = ProviderRouter([groq], registry, status=board)
        summary = ConversationSummary("c1", 2, ["plan_workout"], ["plan_workout"], "planning")
        await router.route(_request(), _general(), summary)
        system = groq.calls[0][0]["content"]
        assert "Recent topics: plan_workout" in system


class TestPolicies:

    def _providers(self, board, *ids):
        return [ScriptedProvider(pid, status=board) for pid in ids]

    def test_static_keeps_order(self, board):
        providers = self._providers(board, "a", "b", "c")
        assert StaticPolicy().order(providers, board) == providers

    def test_penalized_provider_moves_last(self):
        clock = FakeClock()
        board = ProviderStatusBoard(clock=clock)
        a, b, c = self._providers(board, "a", "b", "c")
        policy = PriorityWithPenaltyPolicy(failure_threshold=2, penalty_seconds=30)
        for _ in range(2):
            board.mark_failure("a", "HTTP 500")
        assert [p.provider_id for p in policy.order([a, b, c], board)] == ["b", "c", "a"]

        clock.advance(31)
        assert [p.provider_id for p in policy.order([a, b, c], board)] == ["a", "b", "c"]

    def test_rate_limit_window(self):
        clock = FakeClock()
        board = ProviderStatusBoard(clock=clock)
        a, b = self._providers(board, "a", "b")
        board.mark_failure("a", "Rate limited (429)", rate_limited_for=10)
        policy = PriorityWithPenaltyPolicy()
        assert [p.provider_id for p in policy.order([a, b], board)] == ["b", "a"]
        clock.advance(11)
        assert [p.provider_id for p in policy.order([a, b], board)] == ["a", "b"]

    def test_round_robin_rotates(self, board):
        providers = self._providers(board, "a", "b", "c")
        policy = RoundRobinPolicy()
        firsts = [policy.order(providers, board)[0].provider_id for _ in range(4)]
        assert firsts == ["a", "b", "c", "a"]

    def test_policy_never_drops_providers(self, board):
        providers = self._providers(board, "a", "b", "c")
        for _ in range(5):
            board.mark_failure("b", "down")
        for policy in (StaticPolicy(), PriorityWithPenaltyPolicy(), RoundRobinPolicy()):
            assert sorted(p.provider_id for p in policy.order(providers, board)) == ["a", "b", "c"]

    def test_build_policy(self):
        assert isinstance(build_policy("static"), StaticPolicy)
        assert isinstance(build_policy("round_robin"), RoundRobinPolicy)
        assert isinstance(build_policy("nonsense"), PriorityWithPenaltyPolicy)

    @pytest.mark.asyncio
    async def test_rate_limited_provider_deprioritized_next_time(self, registry, board):
        groq = ScriptedProvider("groq", error=_status_error(429, {"retry-after": "20"}), status=board)
        gemini = ScriptedProvider("gemini", status=board)
        router = ProviderRouter([groq, gemini], registry, status=board)

        first = await router.route(_request(), _general())
        assert first.attempts[0].error_type == "RateLimitedError"
        assert [p.provider_id for p in router.ordered_providers()] == ["gemini", "groq"]

    def test_intent_priorities(self, registry, board):
        providers = self._providers(board, "groq", "openrouter", "gemini")
        router = ProviderRouter(providers, registry, policy=StaticPolicy(), status=board,
                                intent_priorities={"form": ["openrouter"]})
        assert [p.provider_id for p in router.ordered_providers("form")] == [
            "openrouter", "groq", "gemini"]
        assert [p.provider_id for p in router.ordered_providers("general")] == [
            "groq", "openrouter", "gemini"]
