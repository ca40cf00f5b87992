"""
OpenAI-compatible provider adapter.

Covers any endpoint that implements the /chat/completions contract:
  - OpenRouter (extra HTTP-Referer / X-Title headers)
  - Groq
  - Any other hosted or self-hosted OpenAI-compatible server
"""

import logging
from typing import Optional

from inference.base import ProviderAdapter, RespondOptions

logger = logging.getLogger(__name__)


class OpenAICompatProvider(ProviderAdapter):
    """Adapter for /chat/completions style providers."""

    def __init__(self, *args, headers: Optional[dict] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.extra_headers = dict(headers or {})

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            **self.extra_headers,
        }

    async def _call(self, messages: list[dict], options: RespondOptions) -> dict:
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        async with self._client(options.timeout) as client:
            resp = await client.post(
                f"{self.endpoint}/chat/completions",
                json=payload,
                headers=self._headers(),
            )
            resp.raise_for_status()
            return resp.json()

    def _normalize(self, body: dict) -> tuple[str, Optional[int], dict]:
        choice = body["choices"][0]
        content = choice["message"]["content"]
        usage = body.get("usage") or {}
        extra = {}
        if choice.get("finish_reason"):
            extra["finish_reason"] = choice["finish_reason"]
        if body.get("model"):
            extra["upstream_model"] = body["model"]
        return content, usage.get("total_tokens"), extra
