"""
Anthropic Messages API provider — the high-capability tier.
"""

from __future__ import annotations

import logging

import httpx

from andy.backends.base import BaseProvider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):

    def __init__(self, name: str = "claude", url: str = "https://api.anthropic.com", **kwargs):
        kwargs.setdefault("confidence", 0.9)
        super().__init__(name=name, url=url, **kwargs)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _endpoint(self) -> str:
        return f"{self.url}/v1/messages"

    def _build_body(self, prompt: str, system_prompt: str, params: dict) -> dict:
        body = {
            "model": params.get("model", self.model),
            "max_tokens": params.get("max_tokens", self.max_tokens),
            "temperature": params.get("temperature", self.temperature),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            body["system"] = system_prompt
        return body

    def _parse(self, data: dict) -> tuple[str, float | None]:
        blocks = data["content"]
        text = "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")
        # A reply not attributed to the assistant role is trusted less
        confidence = self.confidence if data.get("role", "assistant") == "assistant" else 0.7
        return text, confidence

    async def health_check(self) -> bool:
        if not self.api_key:
            return False
        try:
            async with httpx.AsyncClient(timeout=5) as client:
                resp = await client.get(f"{self.url}/v1/models", headers=self._headers())
                return resp.status_code == 200
        except Exception as e:
            logger.debug("Anthropic health check failed: %s", e)
            return False
