"""
ProviderRouter — the fallback chain behind every coaching answer.

For one request the router tries, in order:
  1. the tool the classifier picked (deterministic, offline),
  2. a cached provider answer to the same question, when a cache is set,
  3. each reasoning provider in the order chosen by the SelectionPolicy,
  4. the FallbackResponder.
Each candidate's failure is recorded as an AttemptRecord and the chain moves
on; the overall deadline bounds the whole chain and each attempt's timeout.
route() never raises except asyncio.CancelledError.

Usage:
    router = ProviderRouter(providers, registry, policy=build_policy("round_robin"))
    outcome = await router.route(request, intent, summary)
    print(outcome.response.provider, [a.candidate for a in outcome.attempts])
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

import config
from domain import (
    TOOLS_PROVIDER,
    Capability,
    ConversationSummary,
    IntentResult,
    ProviderMetadata,
    RequestContext,
    Response,
    ToolResult,
)
from errors import (
    AllProvidersExhaustedError,
    ProviderError,
    ProviderTimeoutError,
    ToolError,
    UpstreamError,
)
from inference.base import ProviderAdapter, RespondOptions
from inference.cache import ResponseCache
from inference.fallback import FallbackResponder
from inference.gemini import GeminiProvider
from inference.openai_compat import OpenAICompatProvider
from inference.prompts import build_messages
from inference.status import ProviderStatusBoard
from tools import ToolRegistry

logger = logging.getLogger(__name__)

# Outer guard on top of the adapter's own wait_for, for adapters that ignore it.
_ATTEMPT_GRACE_SECONDS = 0.05

# Tool params that can be filled from a differently named domain_state key.
_STATE_ALIASES = {"exercise": "current_exercise"}


@dataclass
class AttemptRecord:
    candidate: str
    kind: str  # "tool" | "provider"
    ok: bool
    error: Optional[str] = None
    error_type: Optional[str] = None
    elapsed_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "candidate": self.candidate,
            "kind": self.kind,
            "ok": self.ok,
            "error": self.error,
            "error_type": self.error_type,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass
class RouteOutcome:
    response: Response
    attempts: list[AttemptRecord] = field(default_factory=list)
    tool_result: Optional[ToolResult] = None

    @property
    def failed_attempts(self) -> list[AttemptRecord]:
        return [a for a in self.attempts if not a.ok]


# ── Selection Policies ──

class SelectionPolicy(ABC):
    """Orders provider candidates for one request. Never drops a provider."""

    name = "base"

    @abstractmethod
    def order(self, providers: list[ProviderAdapter],
              status: ProviderStatusBoard) -> list[ProviderAdapter]:
        ...


class StaticPolicy(SelectionPolicy):
    """Configured order, always."""

    name = "static"

    def order(self, providers, status):
        return list(providers)


class PriorityWithPenaltyPolicy(SelectionPolicy):
    """Configured order, with recently failing or rate-limited providers moved last.

    A provider is penalized while it is inside a rate-limit window, or after
    `failure_threshold` consecutive failures for `penalty_seconds` since the
    last one. Relative order inside each group is preserved.
    """

    name = "priority_with_penalty"

    def __init__(self, failure_threshold: int = config.FAILURE_THRESHOLD,
                 penalty_seconds: float = config.PENALTY_SECONDS):
        self.failure_threshold = failure_threshold
        self.penalty_seconds = penalty_seconds

    def _partition(self, providers, status):
        now = status.now()
        healthy, penalized = [], []
        for p in providers:
            if status.is_penalized(p.provider_id, self.failure_threshold,
                                   self.penalty_seconds, now=now):
                penalized.append(p)
            else:
                healthy.append(p)
        return healthy + penalized

    def order(self, providers, status):
        return self._partition(list(providers), status)


class RoundRobinPolicy(PriorityWithPenaltyPolicy):
    """Rotates the starting provider on every call, then applies the penalty."""

    name = "round_robin"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._next = 0

    def order(self, providers, status):
        providers = list(providers)
        if not providers:
            return []
        start = self._next % len(providers)
        self._next += 1
        rotated = providers[start:] + providers[:start]
        return self._partition(rotated, status)


_POLICY_CLASSES: dict[str, type[SelectionPolicy]] = {
    "static": StaticPolicy,
    "priority_with_penalty": PriorityWithPenaltyPolicy,
    "round_robin": RoundRobinPolicy,
}


# ── Provider construction ──

_PROVIDER_CLASSES: dict[str, type[ProviderAdapter]] = {
    "openai": OpenAICompatProvider,
    "openrouter": OpenAICompatProvider,
    "groq": OpenAICompatProvider,
    "gemini": GeminiProvider,
}


def build_provider(cfg, status: ProviderStatusBoard,
                   transport=None) -> Optional[ProviderAdapter]:
    """Instantiate an adapter from a profile ProviderConfig. None if the type is unknown."""
    provider_type = (cfg.type or "").lower()
    adapter_cls = _PROVIDER_CLASSES.get(provider_type)
    if adapter_cls is None:
        logger.error("Unknown provider type '%s' for provider '%s'. Supported types: %s",
                     provider_type, cfg.id, ", ".join(_PROVIDER_CLASSES))
        return None

    try:
        capability = Capability(cfg.capability)
    except ValueError:
        logger.warning("Unknown capability '%s' for provider '%s' — using fast",
                       cfg.capability, cfg.id)
        capability = Capability.FAST

    kwargs = dict(
        provider_id=cfg.id,
        endpoint=cfg.endpoint,
        model=cfg.model,
        api_key=cfg.api_key,
        capability=capability,
        confidence=cfg.confidence,
        status=status,
        transport=transport,
    )
    if adapter_cls is OpenAICompatProvider:
        headers = dict(cfg.headers or {})
        if provider_type == "openrouter":
            headers = {**config.OPENROUTER_HEADERS, **headers}
        kwargs["headers"] = headers

    adapter = adapter_cls(**kwargs)
    if not adapter.has_credentials:
        logger.warning("Provider '%s' has no credential (set %s) — it will be skipped at runtime",
                       cfg.id, cfg.api_key_env or "api_key_env")
    logger.info("Registered provider '%s' (%s) model=%s", cfg.id, provider_type, cfg.model)
    return adapter


def build_providers(configs, status: ProviderStatusBoard, transport=None) -> list[ProviderAdapter]:
    providers = []
    for cfg in configs:
        if not cfg.enabled:
            logger.info("Skipping disabled provider: %s", cfg.id)
            continue
        adapter = build_provider(cfg, status, transport=transport)
        if adapter is not None:
            providers.append(adapter)
    return providers


def build_policy(name: str = config.DEFAULT_POLICY,
                 failure_threshold: int = config.FAILURE_THRESHOLD,
                 penalty_seconds: float = config.PENALTY_SECONDS) -> SelectionPolicy:
    policy_cls = _POLICY_CLASSES.get((name or "").lower())
    if policy_cls is None:
        logger.error("Unknown routing policy '%s'. Supported: %s — using %s",
                     name, ", ".join(_POLICY_CLASSES), config.DEFAULT_POLICY)
        policy_cls = _POLICY_CLASSES[config.DEFAULT_POLICY]
    if policy_cls is StaticPolicy:
        return StaticPolicy()
    return policy_cls(failure_threshold=failure_threshold, penalty_seconds=penalty_seconds)


# ── Router ──

def format_tool_response(result: ToolResult) -> str:
    data = result.data
    if isinstance(data, dict) and isinstance(data.get("summary"), str):
        return data["summary"]
    if isinstance(data, str):
        return data
    if isinstance(data, (list, tuple)):
        return "\n".join(str(item) for item in data)
    return str(data)


class ProviderRouter:

    def __init__(self, providers: list[ProviderAdapter], registry: ToolRegistry,
                 fallback: Optional[FallbackResponder] = None,
                 policy: Optional[SelectionPolicy] = None,
                 status: Optional[ProviderStatusBoard] = None,
                 attempt_timeout: float = config.ATTEMPT_TIMEOUT_SECONDS,
                 overall_deadline: float = config.OVERALL_DEADLINE_SECONDS,
                 intent_priorities: Optional[dict] = None,
                 personality: str = "",
                 cache: Optional[ResponseCache] = None,
                 clock: Callable[[], float] = time.monotonic):
        ids = [p.provider_id for p in providers]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate provider ids: {ids}")
        self.providers = list(providers)
        self.registry = registry
        self.fallback = fallback or FallbackResponder()
        self.policy = policy or PriorityWithPenaltyPolicy()
        self.status = status or (providers[0].status if providers else ProviderStatusBoard())
        self.attempt_timeout = attempt_timeout
        self.overall_deadline = overall_deadline
        self.intent_priorities = dict(intent_priorities or {})
        self.personality = personality
        self.cache = cache
        self._clock = clock

    # ── Ordering ──

    def ordered_providers(self, category: Optional[str] = None) -> list[ProviderAdapter]:
        providers = self.providers
        preferred = self.intent_priorities.get(category) if category else None
        if preferred:
            rank = {pid: i for i, pid in enumerate(preferred)}
            providers = sorted(providers, key=lambda p: rank.get(p.provider_id, len(rank)))
        return self.policy.order(providers, self.status)

    # ── Entry point ──

    async def route(self, request: RequestContext, intent: IntentResult,
                    summary: Optional[ConversationSummary] = None,
                    deadline: Optional[float] = None) -> RouteOutcome:
        """Run the chain. `deadline` is an absolute time on the router's clock."""
        if deadline is None:
            deadline = self._clock() + self.overall_deadline
        attempts: list[AttemptRecord] = []
        tool_result = None

        try:
            if intent.has_tool:
                response, tool_result = await self._try_tool(request, intent, deadline, attempts)
                if response is not None:
                    return RouteOutcome(response, attempts, tool_result)
            if self.cache is not None:
                cached = self.cache.get(request, intent.category)
                if cached is not None:
                    logger.debug("Cache hit for %s (%s)", request.id, cached.provider)
                    return RouteOutcome(cached, attempts, tool_result)
            response = await self._try_providers(request, intent, summary, deadline, attempts)
            if self.cache is not None:
                self.cache.put(request, intent.category, response)
            return RouteOutcome(response, attempts, tool_result)
        except AllProvidersExhaustedError as e:
            reason = self._exhaustion_reason(e.attempts, deadline)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Routing failed unexpectedly for %s", request.id)
            reason = f"Internal routing error: {type(e).__name__}"

        response = self.fallback.respond(request, intent.category, reason=reason)
        response.metadata.extra["attempts"] = [a.to_dict() for a in attempts]
        return RouteOutcome(response, attempts, tool_result)

    def _remaining(self, deadline: float) -> float:
        return deadline - self._clock()

    def _exhaustion_reason(self, attempts: list[AttemptRecord], deadline: float) -> str:
        if self._remaining(deadline) <= 0:
            return "Deadline exceeded before a provider answered"
        failed = [a for a in attempts if a.kind == "provider"]
        if not failed:
            return "No reasoning providers available"
        return "All providers failed: " + "; ".join(f"{a.candidate}: {a.error}" for a in failed)

    # ── Tools ──

    def tool_params(self, request: RequestContext, intent: IntentResult) -> dict:
        params = dict(intent.params)
        if not self.registry.has(intent.tool):
            return params
        descriptor = self.registry.get(intent.tool)
        state = request.domain_state
        for pname, spec in descriptor.parameters.items():
            if params.get(pname) is not None:
                continue
            if spec.type == "binary":
                if request.binary_payload:
                    params[pname] = request.binary_payload
                continue
            key = pname if pname in state else _STATE_ALIASES.get(pname)
            if key and state.get(key) is not None:
                params[pname] = state[key]
        return params

    async def _try_tool(self, request, intent, deadline, attempts):
        name = intent.tool
        remaining = self._remaining(deadline)
        if remaining <= 0:
            attempts.append(AttemptRecord(name, "tool", False, "deadline exceeded", "TimeoutError"))
            return None, None

        start = time.monotonic()
        result = None
        try:
            params = self.tool_params(request, intent)
            result = await asyncio.wait_for(self.registry.execute(name, params), timeout=remaining)
        except ToolError as e:
            self._record(attempts, name, "tool", start, e)
            return None, None
        except asyncio.TimeoutError:
            self._record(attempts, name, "tool", start,
                         ProviderTimeoutError(TOOLS_PROVIDER, remaining))
            return None, None

        if not result.success:
            attempts.append(AttemptRecord(name, "tool", False, result.error, "ToolFailure",
                                          _elapsed_ms(start)))
            logger.info("Tool %s could not answer: %s", name, result.error)
            return None, result

        attempts.append(AttemptRecord(name, "tool", True, elapsed_ms=_elapsed_ms(start)))
        response = Response(
            content=format_tool_response(result),
            provider=TOOLS_PROVIDER,
            confidence=config.TOOL_CONFIDENCE,
            tools_used=[name],
            intent=intent.category,
            metadata=ProviderMetadata(
                latency_ms=result.metadata.get("elapsed_ms"),
                extra={"tool": name, "data": result.data},
            ),
        )
        return response, result

    # ── Providers ──

    async def _try_providers(self, request, intent, summary, deadline, attempts) -> Response:
        messages = build_messages(request, intent, summary, self.personality)
        for provider in self.ordered_providers(intent.category):
            remaining = self._remaining(deadline)
            if remaining <= 0:
                logger.info("Deadline reached, skipping remaining providers for %s", request.id)
                break
            timeout = min(self.attempt_timeout, remaining)
            options = RespondOptions(timeout=timeout, intent=intent.category)
            start = time.monotonic()
            try:
                response = await asyncio.wait_for(
                    provider.respond(messages, options),
                    timeout=timeout + _ATTEMPT_GRACE_SECONDS,
                )
            except asyncio.CancelledError:
                raise
            except ProviderError as e:
                self._record(attempts, provider.provider_id, "provider", start, e)
                continue
            except asyncio.TimeoutError:
                self._record(attempts, provider.provider_id, "provider", start,
                             ProviderTimeoutError(provider.provider_id, timeout))
                continue
            except Exception as e:
                logger.exception("Provider %s raised unexpectedly", provider.provider_id)
                err = UpstreamError(provider.provider_id, f"Unexpected error: {type(e).__name__}")
                self._record(attempts, provider.provider_id, "provider", start, err)
                continue

            attempts.append(AttemptRecord(provider.provider_id, "provider", True,
                                          elapsed_ms=_elapsed_ms(start)))
            response.intent = intent.category
            return response

        raise AllProvidersExhaustedError(attempts)

    def _record(self, attempts, candidate, kind, start, err):
        message = getattr(err, "message", str(err))
        attempts.append(AttemptRecord(candidate, kind, False, message, type(err).__name__,
                                      _elapsed_ms(start)))
        logger.info("%s %s failed: %s", kind.capitalize(), candidate, message)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
