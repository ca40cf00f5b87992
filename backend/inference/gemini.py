"""
Google Gemini provider adapter.

Talks to models/{model}:generateContent. OpenAI-format messages are folded
into Gemini's shape: system messages become systemInstruction, assistant
turns become role "model".
"""

import logging
from typing import Optional

from inference.base import ProviderAdapter, RespondOptions

logger = logging.getLogger(__name__)


def to_gemini_payload(messages: list[dict], options: RespondOptions) -> dict:
    system_parts = []
    contents = []
    for msg in messages:
        role = msg.get("role", "user")
        text = msg.get("content") or ""
        if role == "system":
            system_parts.append({"text": text})
            continue
        contents.append({
            "role": "model" if role == "assistant" else "user",
            "parts": [{"text": text}],
        })

    payload = {
        "contents": contents,
        "generationConfig": {
            "temperature": options.temperature,
            "maxOutputTokens": options.max_tokens,
        },
    }
    if system_parts:
        payload["systemInstruction"] = {"parts": system_parts}
    return payload


class GeminiProvider(ProviderAdapter):

    async def _call(self, messages: list[dict], options: RespondOptions) -> dict:
        url = f"{self.endpoint}/models/{self.model}:generateContent"
        async with self._client(options.timeout) as client:
            resp = await client.post(
                url,
                headers={"x-goog-api-key": self.api_key},
                json=to_gemini_payload(messages, options),
            )
            resp.raise_for_status()
            return resp.json()

    def _normalize(self, body: dict) -> tuple[str, Optional[int], dict]:
        candidate = body["candidates"][0]
        parts = candidate["content"]["parts"]
        content = "".join(p.get("text", "") for p in parts)
        usage = body.get("usageMetadata") or {}
        extra = {}
        if candidate.get("finishReason"):
            extra["finish_reason"] = candidate["finishReason"]
        return content, usage.get("totalTokenCount"), extra
