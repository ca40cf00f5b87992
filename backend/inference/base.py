"""
Abstract base class for all reasoning provider adapters.

Every provider (OpenAI-compatible endpoints, Gemini) implements _call() and
_normalize(); the shared respond() wraps them with the credential check,
status reporting, the per-attempt timeout and the HTTP error mapping, so the
ProviderRouter can treat adapters interchangeably. Adapters never retry;
retry and fallback belong to the router.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

import config
from domain import Capability, ProviderMetadata, Response
from errors import (
    AuthenticationError,
    ProviderTimeoutError,
    RateLimitedError,
    UpstreamError,
)
from inference.status import ProviderStatusBoard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RespondOptions:
    timeout: float
    max_tokens: int = config.DEFAULT_MAX_TOKENS
    temperature: float = config.DEFAULT_TEMPERATURE
    intent: Optional[str] = None

    def __post_init__(self):
        if self.timeout is None or self.timeout <= 0:
            raise ValueError("RespondOptions.timeout must be a positive number of seconds")


def _redact(key: str) -> str:
    return f"...{key[-4:]}" if len(key) > 8 else "***"


def _retry_after(resp: httpx.Response) -> Optional[float]:
    value = resp.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ProviderAdapter(ABC):
    """Abstract reasoning provider.

    Concrete adapters implement the HTTP-specific request and response shape
    for their provider while exposing the uniform respond() operation.
    """

    def __init__(self, provider_id: str, endpoint: str, model: str, api_key: str = "",
                 capability: Capability = Capability.FAST,
                 confidence: float = config.DEFAULT_PROVIDER_CONFIDENCE,
                 status: Optional[ProviderStatusBoard] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.provider_id = provider_id
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.api_key = api_key or ""
        self.capability = capability
        self.confidence = confidence
        self.status = status or ProviderStatusBoard()
        self._transport = transport
        self.status.register(provider_id, capability)

    def __repr__(self):
        key = _redact(self.api_key) if self.api_key else "none"
        return f"<{type(self).__name__} {self.provider_id} model={self.model} key={key}>"

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    # ── Provider-specific ──

    @abstractmethod
    async def _call(self, messages: list[dict], options: RespondOptions) -> dict:
        """POST the request and return the decoded JSON body.

        May raise httpx errors; respond() maps them onto the error taxonomy.
        """
        ...

    @abstractmethod
    def _normalize(self, body: dict) -> tuple[str, Optional[int], dict]:
        """Extract (content, tokens_used, extra metadata) from a response body.

        Raises KeyError/IndexError/TypeError on a malformed body.
        """
        ...

    # ── Shared ──

    async def respond(self, messages: list[dict], options: RespondOptions) -> Response:
        """One attempt against this provider, bounded by options.timeout."""
        if not self.api_key:
            self.status.mark_failure(self.provider_id, "missing credential")
            raise AuthenticationError(self.provider_id, "No API key configured")

        self.status.mark_trying(self.provider_id)
        start = time.monotonic()
        try:
            body = await asyncio.wait_for(self._call(messages, options), timeout=options.timeout)
            content, tokens, extra = self._parse(body)
        except asyncio.TimeoutError:
            err = ProviderTimeoutError(self.provider_id, options.timeout)
            self._record_failure(err, start)
            raise err from None
        except asyncio.CancelledError:
            self.status.mark_failure(self.provider_id, "cancelled", time.monotonic() - start)
            raise
        except httpx.HTTPStatusError as e:
            err = self._map_status(e.response)
            self._record_failure(err, start)
            raise err from e
        except httpx.TimeoutException as e:
            err = ProviderTimeoutError(self.provider_id, options.timeout)
            self._record_failure(err, start)
            raise err from e
        except httpx.HTTPError as e:
            err = UpstreamError(self.provider_id, f"Transport error: {type(e).__name__}")
            self._record_failure(err, start)
            raise err from e
        except UpstreamError as err:
            self._record_failure(err, start)
            raise

        latency = time.monotonic() - start
        self.status.mark_success(self.provider_id, latency)
        logger.info("Provider %s answered in %.0fms", self.provider_id, latency * 1000)
        return Response(
            content=content,
            provider=self.provider_id,
            confidence=self.confidence,
            intent=options.intent,
            metadata=ProviderMetadata(
                model=self.model,
                tokens_used=tokens,
                latency_ms=int(latency * 1000),
                extra=extra,
            ),
        )

    def _parse(self, body) -> tuple[str, Optional[int], dict]:
        try:
            content, tokens, extra = self._normalize(body)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise UpstreamError(self.provider_id, f"Malformed response body: {e!r}") from e
        if not isinstance(content, str) or not content.strip():
            raise UpstreamError(self.provider_id, "Empty response content")
        return content.strip(), tokens, extra

    def _map_status(self, resp: httpx.Response):
        code = resp.status_code
        if code in (401, 403):
            return AuthenticationError(self.provider_id, f"Credential rejected ({code})")
        if code == 429:
            return RateLimitedError(self.provider_id, "Rate limited (429)",
                                    retry_after=_retry_after(resp))
        return UpstreamError(self.provider_id, f"HTTP {code}", status_code=code)

    def _record_failure(self, err, start: float):
        rate_limited_for = None
        if isinstance(err, RateLimitedError):
            rate_limited_for = err.retry_after or config.DEFAULT_RATE_LIMIT_SECONDS
        self.status.mark_failure(
            self.provider_id, err.message,
            latency=time.monotonic() - start,
            rate_limited_for=rate_limited_for,
        )
        logger.warning("Provider %s failed: %s", self.provider_id, err.message)
