"""
Test fixtures for the Nimbus coaching test suite.
"""

import asyncio
import os
import sys
from pathlib import Path

import pytest

# Add backend to path
BACKEND_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_DIR))

# Set up the example profile before importing anything that reads config
os.environ["PROFILE_PATH"] = str(BACKEND_DIR.parent / "profile.yaml.example")

from inference.base import ProviderAdapter  # noqa: E402
from inference.status import ProviderStatusBoard  # noqa: E402
from tools import ToolRegistry, register_builtin_tools  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ScriptedProvider(ProviderAdapter):
    """Provider whose upstream call is scripted instead of sent over HTTP.

    `reply` is returned as the answer text; `error` (an exception instance)
    is raised from the upstream call; `delay` sleeps first so timeouts and
    cancellation can be exercised.
    """

    def __init__(self, provider_id: str, reply: str = "", error: Exception = None,
                 delay: float = 0.0, api_key: str = "test-key", **kwargs):
        super().__init__(provider_id, f"https://{provider_id}.test/v1", f"{provider_id}-model",
                         api_key=api_key, **kwargs)
        self.reply = reply or f"Answer from {provider_id}"
        self.error = error
        self.delay = delay
        self.calls = []

    async def _call(self, messages, options):
        self.calls.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"text": self.reply, "tokens": 42}

    def _normalize(self, body):
        return body["text"], body.get("tokens"), {}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def board():
    return ProviderStatusBoard()


@pytest.fixture
def registry():
    reg = ToolRegistry()
    register_builtin_tools(reg)
    return reg


@pytest.fixture
def no_provider_keys(monkeypatch):
    """Make sure no real credential leaks into tests."""
    for name in ("GROQ_API_KEY", "OPENROUTER_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
