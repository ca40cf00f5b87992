"""
Inference package — reasoning provider adapters and the fallback chain.

Provides adapters for OpenAI-compatible providers (OpenRouter, Groq, ...)
and Gemini, a polling-safe provider status board, the offline fallback
responder, a response cache, and the router that ties them together.

Quick start:
    from inference import ProviderRouter, build_providers, build_policy
    providers = build_providers(profile.providers, board)
    router = ProviderRouter(providers, registry, policy=build_policy("static"))
"""

from inference.base import ProviderAdapter, RespondOptions
from inference.cache import ResponseCache
from inference.fallback import FallbackResponder
from inference.gemini import GeminiProvider
from inference.openai_compat import OpenAICompatProvider
from inference.router import (
    AttemptRecord,
    PriorityWithPenaltyPolicy,
    ProviderRouter,
    RoundRobinPolicy,
    RouteOutcome,
    SelectionPolicy,
    StaticPolicy,
    build_policy,
    build_provider,
    build_providers,
)
from inference.status import ProviderStatusBoard

__all__ = [
    "ProviderAdapter",
    "RespondOptions",
    "OpenAICompatProvider",
    "GeminiProvider",
    "ProviderStatusBoard",
    "FallbackResponder",
    "ResponseCache",
    "ProviderRouter",
    "RouteOutcome",
    "AttemptRecord",
    "SelectionPolicy",
    "StaticPolicy",
    "PriorityWithPenaltyPolicy",
    "RoundRobinPolicy",
    "build_policy",
    "build_provider",
    "build_providers",
]
