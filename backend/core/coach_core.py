"""
CoachCore — the orchestration facade behind every coaching request.

Pipeline for one request:
  1. reserve a commit slot on the conversation (acceptance order)
  2. classify intent (rule-based, offline)
  3. summarize the conversation for provider prompts
  4. route: tool → providers by policy → fallback, bounded by the deadline
  5. attach follow-up suggestions for the intent
  6. commit the turn (or release the slot if the request was cancelled)

orchestrate() always produces an answer for a well-formed request; the only
exception that reaches callers is InvalidRequestError.

Usage:
    core = build_core(get_profile())
    await core.start()
    response = await core.ask("generate a 45 minute strength workout with dumbbells")
    stream = await core.orchestrate(request, stream=True)
"""

import asyncio
import logging
import time
from typing import Callable, Optional, Union

import config
from core.classification import GENERAL, IntentClassifier
from core.conversation import ConversationStore
from core.streaming import ResponseStream
from domain import (
    ConversationTurn,
    IntentResult,
    RequestContext,
    Response,
    ToolDescriptor,
    TurnRequest,
    utcnow,
)
from errors import InvalidRequestError
from inference import (
    FallbackResponder,
    ProviderRouter,
    ProviderStatusBoard,
    ResponseCache,
    build_policy,
    build_providers,
)
from tools import ToolHandler, ToolRegistry, register_builtin_tools

logger = logging.getLogger(__name__)


# ── Follow-up suggestions ──

_INSTRUCTION = [
    "Show me common mistakes to avoid",
    "What are the variations of this exercise?",
    "How do I progress this movement?",
]
_PROGRAMMING = [
    "Create a weekly workout schedule",
    "How do I track progress?",
    "What about rest and recovery?",
]
_NUTRITION = [
    "What are good protein sources?",
    "How should I time my meals?",
    "Calculate my daily calorie needs",
]
_SAFETY = [
    "What are safe alternatives?",
    "How long should recovery take?",
    "When should I see a doctor?",
]
_DEFAULT = [
    "Tell me more about this topic",
    "Give me a practical example",
    "What are the key principles?",
]

SUGGESTIONS = {
    "form": _INSTRUCTION,
    "exercise": _INSTRUCTION,
    "planning": _PROGRAMMING,
    "progress": _PROGRAMMING,
    "nutrition": _NUTRITION,
    "biometrics": _SAFETY,
    "recovery": _SAFETY,
    "motivation": [
        "Give me a quick workout for today",
        "How do I build a consistent habit?",
        "Help me set a realistic goal",
    ],
}


def suggestions_for(category: Optional[str]) -> list[str]:
    return list(SUGGESTIONS.get(category or GENERAL, _DEFAULT))


class CoachCore:
    """Wires classifier, router, conversation store and streaming together."""

    def __init__(self, registry: ToolRegistry, router: ProviderRouter,
                 store: Optional[ConversationStore] = None,
                 classifier: Optional[IntentClassifier] = None,
                 status: Optional[ProviderStatusBoard] = None,
                 chunk_delay: tuple[float, float] = (0.0, 0.0),
                 overall_deadline: float = config.OVERALL_DEADLINE_SECONDS,
                 plugins: Optional[list[str]] = None,
                 sweep_interval: float = config.SWEEP_INTERVAL_SECONDS,
                 stream_grace: float = config.STREAM_ABANDON_GRACE_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.registry = registry
        self.router = router
        self.store = store or ConversationStore(clock=clock)
        self.classifier = classifier or IntentClassifier()
        self.status = status or router.status
        self.chunk_delay = chunk_delay
        self.overall_deadline = overall_deadline
        self.plugin_names = list(plugins or [])
        self.sweep_interval = sweep_interval
        self.stream_grace = stream_grace
        self._clock = clock
        self._plugins: list = []
        self._sweeper: Optional[asyncio.Task] = None
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    # ── Lifecycle ──

    async def start(self):
        """Load enabled plugins and start the idle-conversation sweeper."""
        await self._start_plugins()
        if self.sweep_interval > 0 and self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_loop())
        self._ready = True
        logger.info("Core ready: %d tools, providers=%s",
                    len(self.registry), [p.provider_id for p in self.router.providers])

    async def _start_plugins(self):
        if not self.plugin_names:
            return
        from plugins import load_enabled_plugins, register_plugin

        for plugin in load_enabled_plugins(self.plugin_names):
            try:
                names = await register_plugin(self.registry, plugin)
            except Exception as e:
                logger.error("Plugin '%s' start failed: %s", plugin.plugin_id, e)
                continue
            for rule in plugin.rules:
                self.classifier.add_rule(rule, before="biometrics")
            self._plugins.append(plugin)
            logger.info("Plugin '%s' registered tools: %s", plugin.plugin_id, names)

    async def _stop_plugins(self):
        for plugin in self._plugins:
            try:
                await plugin.shutdown()
            except Exception as e:
                logger.error("Plugin '%s' stop failed: %s", plugin.plugin_id, e)
        self._plugins = []

    async def _sweep_loop(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.store.sweep()

    async def shutdown(self):
        """Stop the sweeper and plugins."""
        self._ready = False
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        await self._stop_plugins()

    # ── Tools ──

    def register_tool(self, descriptor: ToolDescriptor, handler: ToolHandler):
        self.registry.register(descriptor, handler)

    # ── Orchestration ──

    async def orchestrate(self, request: RequestContext, stream: bool = False,
                          timeout: Optional[float] = None) -> Union[Response, ResponseStream]:
        """Answer one request, as a Response or as a ResponseStream."""
        if not isinstance(request, RequestContext):
            raise InvalidRequestError("orchestrate() expects a RequestContext",
                                      got=type(request).__name__)
        budget = self.overall_deadline if timeout is None else timeout
        if budget <= 0:
            raise InvalidRequestError("timeout must be positive", timeout=timeout)
        deadline = self._clock() + budget

        cid = request.conversation_id
        ticket = self.store.reserve(cid) if cid else None
        work = self._answer(request, deadline)

        if stream:
            return ResponseStream(
                work,
                chunk_delay=self.chunk_delay,
                deadline=deadline,
                on_complete=lambda response: self._commit(request, response, ticket),
                on_cancel=lambda: self._release(cid, ticket),
                abandon_grace=self.stream_grace,
                clock=self._clock,
            )

        try:
            response = await work
            await self._commit(request, response, ticket)
        except BaseException:
            await self._release(cid, ticket)
            raise
        return response

    async def ask(self, text: str, conversation_id: Optional[str] = None,
                  domain_state: Optional[dict] = None, binary_payload: Optional[bytes] = None,
                  timeout: Optional[float] = None) -> Response:
        request = RequestContext.create(
            text=text,
            binary_payload=binary_payload,
            conversation_id=conversation_id,
            domain_state=domain_state,
        )
        return await self.orchestrate(request, timeout=timeout)

    async def _answer(self, request: RequestContext, deadline: float) -> Response:
        intent = IntentResult(GENERAL)
        try:
            intent = self.classifier.classify_request(request)
            summary = None
            if request.conversation_id:
                summary = self.store.summarize(request.conversation_id)
            outcome = await self.router.route(request, intent, summary, deadline=deadline)
            response = outcome.response
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Orchestration failed for %s", request.id)
            response = self.router.fallback.respond(
                request, intent.category, reason=f"Internal error: {type(e).__name__}")

        if response.intent is None:
            response.intent = intent.category
        response.suggestions = suggestions_for(response.intent)
        logger.info("Request %s answered by %s (intent=%s, confidence=%.2f)",
                    request.id, response.provider, response.intent, response.confidence)
        return response

    async def _commit(self, request: RequestContext, response: Response, ticket: Optional[int]):
        if ticket is None:
            return
        turn = ConversationTurn(
            timestamp=utcnow(),
            request=TurnRequest.from_request(request),
            response=response,
            tools_used=list(response.tools_used),
            intent=response.intent,
        )
        await self.store.append(request.conversation_id, turn, ticket=ticket)

    async def _release(self, conversation_id: Optional[str], ticket: Optional[int]):
        if ticket is None:
            return
        await self.store.release(conversation_id, ticket)


def build_core(profile, transport=None, clock: Callable[[], float] = time.monotonic) -> CoachCore:
    """Assemble a CoachCore from a Profile. `transport` is passed to every adapter."""
    status = ProviderStatusBoard(clock=clock)
    registry = ToolRegistry()
    register_builtin_tools(registry)

    routing = profile.routing
    providers = build_providers(profile.enabled_providers(), status, transport=transport)
    router = ProviderRouter(
        providers,
        registry,
        fallback=FallbackResponder(confidence=config.FALLBACK_CONFIDENCE),
        policy=build_policy(routing.policy, routing.failure_threshold, routing.penalty_seconds),
        status=status,
        attempt_timeout=routing.attempt_timeout_seconds,
        overall_deadline=routing.overall_deadline_seconds,
        intent_priorities=routing.intent_priorities,
        personality=profile.prompts.personality or config.DEFAULT_PERSONALITY,
        cache=ResponseCache(routing.cache_max_entries, routing.cache_ttl_seconds, clock=clock)
        if routing.cache_enabled else None,
        clock=clock,
    )
    conv = profile.conversation
    store = ConversationStore(
        history_cap=conv.history_cap,
        idle_ttl=conv.idle_ttl_seconds,
        summary_turns=conv.summary_turns,
        clock=clock,
    )
    streaming = profile.streaming
    return CoachCore(
        registry,
        router,
        store=store,
        status=status,
        chunk_delay=(streaming.min_chunk_delay, streaming.max_chunk_delay),
        overall_deadline=routing.overall_deadline_seconds,
        plugins=profile.plugins.enabled,
        sweep_interval=conv.sweep_interval_seconds,
        clock=clock,
    )
