"""
Error taxonomy for the coaching orchestration layer.

Only InvalidRequestError is ever meant to reach a caller. Tool and provider
errors are raised by the registry and the adapters, then absorbed by the
ProviderRouter, which turns them into attempt records and, ultimately, a
fallback answer.

Usage:
    from errors import UpstreamError, RateLimitedError
    raise RateLimitedError("groq", "429 from upstream", retry_after=12)
"""

from typing import Any, Optional


class CoachError(Exception):
    """Base exception for the orchestration layer.

    Attributes:
        message: Human-readable error message
        recoverable: Whether retrying later can succeed
        context: Additional debugging information
    """

    recoverable: bool = False

    def __init__(self, message: str, recoverable: Optional[bool] = None, **context: Any):
        self.message = message
        self.context = context if context else None
        if recoverable is not None:
            self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class InvalidRequestError(CoachError, ValueError):
    """Caller misuse, e.g. a request with neither text nor media."""


# ── Tool registry ──

class ToolError(CoachError):
    """Base for tool registration and dispatch errors."""


class DuplicateToolError(ToolError):
    """A tool with this name is already registered. Fatal at start-up."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' is already registered", tool=name)
        self.name = name


class UnknownToolError(ToolError):
    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' is not registered", tool=name)
        self.name = name


class InvalidParametersError(ToolError):
    recoverable = True

    def __init__(self, tool: str, message: str, parameter: Optional[str] = None):
        super().__init__(f"{tool}: {message}", tool=tool, parameter=parameter)
        self.tool = tool
        self.parameter = parameter


# ── Provider adapters ──

class ProviderError(CoachError):
    """Base for upstream reasoning provider failures."""

    def __init__(self, provider_id: str, message: str, **context: Any):
        super().__init__(message, provider=provider_id, **context)
        self.provider_id = provider_id


class AuthenticationError(ProviderError):
    """Missing or rejected credential. The router moves on without backoff."""

    recoverable = False


class RateLimitedError(ProviderError):
    recoverable = True

    def __init__(self, provider_id: str, message: str, retry_after: Optional[float] = None):
        super().__init__(provider_id, message, retry_after=retry_after)
        self.retry_after = retry_after


class UpstreamError(ProviderError):
    recoverable = True

    def __init__(self, provider_id: str, message: str, status_code: Optional[int] = None):
        super().__init__(provider_id, message, status_code=status_code)
        self.status_code = status_code


class ProviderTimeoutError(ProviderError, TimeoutError):
    recoverable = True

    def __init__(self, provider_id: str, timeout: float):
        super().__init__(provider_id, f"No response within {timeout:.1f}s", timeout=timeout)
        self.timeout = timeout


class AllProvidersExhaustedError(CoachError):
    """Internal signal from the fallback chain. Never surfaced to callers."""

    def __init__(self, attempts: list):
        super().__init__(f"All {len(attempts)} candidates failed")
        self.attempts = attempts
