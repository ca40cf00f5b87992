"""
Core data model for the coaching orchestration layer.

RequestContext and Response are owned by CoachCore for the duration of one
call. ConversationState is owned by the ConversationStore. Everything here is
a plain dataclass; the pydantic bodies used by the HTTP routes live in
models.py.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from errors import InvalidRequestError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Requests ──

@dataclass(frozen=True)
class RequestMetadata:
    timestamp: datetime = field(default_factory=utcnow)
    domain_state: dict = field(default_factory=dict)  # e.g. current_exercise, biometrics
    extra: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RequestContext:
    """One inbound orchestration request. Immutable once constructed."""

    id: str
    text: Optional[str] = None
    binary_payload: Optional[bytes] = None
    conversation_id: Optional[str] = None
    metadata: RequestMetadata = field(default_factory=RequestMetadata)

    def __post_init__(self):
        has_text = bool(self.text and self.text.strip())
        if not has_text and not self.binary_payload:
            raise InvalidRequestError("Request needs text or a media payload")

    @classmethod
    def create(cls, text: str = None, binary_payload: bytes = None,
               conversation_id: str = None, domain_state: dict = None,
               extra: dict = None) -> "RequestContext":
        return cls(
            id=uuid.uuid4().hex,
            text=text,
            binary_payload=binary_payload,
            conversation_id=conversation_id or None,
            metadata=RequestMetadata(
                domain_state=dict(domain_state or {}),
                extra=dict(extra or {}),
            ),
        )

    @property
    def has_media(self) -> bool:
        return bool(self.binary_payload)

    @property
    def domain_state(self) -> dict:
        return self.metadata.domain_state


# ── Tools ──

PARAM_TYPES = ("string", "number", "integer", "boolean", "array", "object", "binary")


@dataclass(frozen=True)
class ParamSpec:
    type: str
    required: bool = False
    enum: Optional[tuple] = None
    description: str = ""

    def __post_init__(self):
        if self.type not in PARAM_TYPES:
            raise ValueError(f"Unsupported parameter type: {self.type}")
        if self.enum is not None and not isinstance(self.enum, tuple):
            object.__setattr__(self, "enum", tuple(self.enum))


@dataclass(frozen=True)
class ToolDescriptor:
    """Static registration record for a tool."""

    name: str
    description: str
    parameters: dict = field(default_factory=dict)  # name -> ParamSpec

    def required_params(self) -> list[str]:
        return [n for n, p in self.parameters.items() if p.required]

    def to_schema(self) -> dict:
        """OpenAI function-calling style schema, for providers and the UI."""
        properties = {}
        for pname, spec in self.parameters.items():
            prop = {"type": "string" if spec.type == "binary" else spec.type}
            if spec.type == "binary":
                prop["format"] = "binary"
            if spec.enum:
                if spec.type == "array":
                    prop["items"] = {"type": "string", "enum": list(spec.enum)}
                else:
                    prop["enum"] = list(spec.enum)
            if spec.description:
                prop["description"] = spec.description
            properties[pname] = prop
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": self.required_params(),
                },
            },
        }


@dataclass
class ToolResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any, **metadata) -> "ToolResult":
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata) -> "ToolResult":
        return cls(success=False, error=error or "Tool execution failed", metadata=metadata)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "metadata": self.metadata,
        }


# ── Providers ──

class ProviderState(Enum):
    IDLE = "idle"
    TRYING = "trying"
    SUCCESS = "success"
    FAILED = "failed"


class Capability(Enum):
    FAST = "fast"
    QUALITY = "quality"


@dataclass
class ProviderRecord:
    provider_id: str
    capability: Capability = Capability.FAST
    state: ProviderState = ProviderState.IDLE
    last_latency: Optional[float] = None  # seconds
    last_error: Optional[str] = None
    last_failure_at: Optional[float] = None  # monotonic
    consecutive_failures: int = 0
    rate_limited_until: Optional[float] = None  # monotonic
    total_attempts: int = 0
    total_failures: int = 0

    def to_dict(self) -> dict:
        return {
            "provider_id": self.provider_id,
            "capability": self.capability.value,
            "state": self.state.value,
            "last_latency_ms": round(self.last_latency * 1000) if self.last_latency is not None else None,
            "last_error": self.last_error,
            "consecutive_failures": self.consecutive_failures,
            "total_attempts": self.total_attempts,
            "total_failures": self.total_failures,
        }


# ── Responses ──

@dataclass
class ProviderMetadata:
    """Provider-specific details, normalized at the adapter boundary."""

    model: Optional[str] = None
    tokens_used: Optional[int] = None
    latency_ms: Optional[int] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "tokens_used": self.tokens_used,
            "latency_ms": self.latency_ms,
            **self.extra,
        }


FALLBACK_PROVIDER = "fallback"
TOOLS_PROVIDER = "tools"


@dataclass
class Response:
    content: str
    provider: str
    confidence: float = 0.0
    tools_used: list[str] = field(default_factory=list)
    is_complete: bool = True
    intent: Optional[str] = None
    suggestions: list[str] = field(default_factory=list)
    metadata: ProviderMetadata = field(default_factory=ProviderMetadata)

    def __post_init__(self):
        self.confidence = min(1.0, max(0.0, float(self.confidence)))

    @property
    def is_fallback(self) -> bool:
        return self.provider == FALLBACK_PROVIDER

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "provider": self.provider,
            "confidence": self.confidence,
            "tools_used": list(self.tools_used),
            "is_complete": self.is_complete,
            "is_fallback": self.is_fallback,
            "intent": self.intent,
            "suggestions": list(self.suggestions),
            "metadata": self.metadata.to_dict(),
        }


# ── Intent ──

@dataclass(frozen=True)
class IntentResult:
    category: str
    tool: Optional[str] = None
    params: dict = field(default_factory=dict)
    rule: Optional[str] = None

    @property
    def has_tool(self) -> bool:
        return self.tool is not None


# ── Conversations ──

@dataclass(frozen=True)
class TurnRequest:
    """What a turn keeps of its RequestContext. Never the raw media."""

    request_id: str
    text: Optional[str]
    has_media: bool
    timestamp: datetime

    @classmethod
    def from_request(cls, request: RequestContext) -> "TurnRequest":
        return cls(
            request_id=request.id,
            text=request.text,
            has_media=request.has_media,
            timestamp=request.metadata.timestamp,
        )


@dataclass
class ConversationTurn:
    timestamp: datetime
    request: TurnRequest
    response: Response
    tools_used: list[str] = field(default_factory=list)
    intent: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "request_id": self.request.request_id,
            "text": self.request.text,
            "has_media": self.request.has_media,
            "response": self.response.content,
            "provider": self.response.provider,
            "tools_used": list(self.tools_used),
            "intent": self.intent,
        }


@dataclass
class ConversationState:
    id: str
    turns: list[ConversationTurn] = field(default_factory=list)
    total_tool_calls: int = 0
    intent_counts: dict = field(default_factory=dict)
    primary_intent: Optional[str] = None
    last_intent: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ConversationSummary:
    conversation_id: str
    turn_count: int
    recent_topics: list
    tools_used: list
    primary_intent: Optional[str] = None
    last_intent: Optional[str] = None

    def to_prompt(self) -> str:
        """Compact memory block for provider prompts. Never the raw history."""
        lines = [f"Turns so far: {self.turn_count}"]
        if self.primary_intent:
            lines.append(f"Main focus: {self.primary_intent}")
        if self.recent_topics:
            lines.append(f"Recent topics: {', '.join(self.recent_topics)}")
        if self.tools_used:
            lines.append(f"Tools used: {', '.join(self.tools_used)}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "conversation_id": self.conversation_id,
            "turn_count": self.turn_count,
            "recent_topics": list(self.recent_topics),
            "tools_used": list(self.tools_used),
            "primary_intent": self.primary_intent,
            "last_intent": self.last_intent,
        }
