"""
OpenAI chat-completions provider — the baseline tier.
Works with any endpoint that speaks the OpenAI /v1/chat/completions format.
"""

from __future__ import annotations

import logging

import httpx

from andy.backends.base import BaseProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProvider):

    def __init__(self, name: str = "gpt4", url: str = "https://api.openai.com", **kwargs):
        super().__init__(name=name, url=url, **kwargs)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _endpoint(self) -> str:
        return f"{self.url}/v1/chat/completions"

    def _build_body(self, prompt: str, system_prompt: str, params: dict) -> dict:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": params.get("model", self.model),
            "temperature": params.get("temperature", self.temperature),
            "max_tokens": params.get("max_tokens", self.max_tokens),
            "messages": messages,
            "presence_penalty": params.get("presence_penalty", 0.1),
            "frequency_penalty": params.get("frequency_penalty", 0.1),
            "stream": False,
        }

    def _parse(self, data: dict) -> tuple[str, float | None]:
        content = data["choices"][0]["message"].get("content") or ""
        return content, self.confidence

    async def health_check(self) -> bool:
        if not self.api_key:
            return False
        try:
            async with httpx.AsyncClient(timeout=5) as client:
                resp = await client.get(f"{self.url}/v1/models", headers=self._headers())
                return resp.status_code == 200
        except Exception as e:
            logger.debug("OpenAI health check failed: %s", e)
            return False
