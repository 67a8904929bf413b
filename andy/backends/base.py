"""
Base provider abstraction.
Every upstream LLM implements this interface so the orchestrator can treat
the high-capability and baseline tiers uniformly.
"""

from __future__ import annotations

import abc
import logging
import time
from dataclasses import dataclass

import httpx

from andy.errors import ProviderError

logger = logging.getLogger(__name__)

# 408: upstream timeout, 409: conflict/overloaded, 429: rate limited, 5xx: server error.
# Anthropic uses 529 for "overloaded".
RETRYABLE_STATUS = frozenset({408, 409, 429, 500, 502, 503, 504, 529})


@dataclass
class ProviderResponse:
    """Standardized completion from any provider."""
    text: str
    provider: str = ""
    model: str = ""
    latency_ms: float = 0.0
    confidence: float | None = None


class BaseProvider(abc.ABC):
    """
    Abstract base for LLM providers.
    Subclasses build the request body and parse the reply; transport,
    timing and error classification live here.
    """

    def __init__(
        self,
        name: str,
        url: str,
        api_key: str = "",
        model: str = "",
        system_prompt: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.7,
        timeout: float = 60,
        confidence: float | None = None,
    ):
        self.name = name
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.confidence = confidence

    @abc.abstractmethod
    def _headers(self) -> dict:
        ...

    @abc.abstractmethod
    def _endpoint(self) -> str:
        ...

    @abc.abstractmethod
    def _build_body(self, prompt: str, system_prompt: str, params: dict) -> dict:
        ...

    @abc.abstractmethod
    def _parse(self, data: dict) -> tuple[str, float | None]:
        """Return (text, confidence) from a decoded reply. May raise KeyError/IndexError."""
        ...

    @abc.abstractmethod
    async def health_check(self) -> bool:
        """Check the provider is reachable and the key is accepted."""
        ...

    @staticmethod
    def _is_retryable(status_code: int) -> bool:
        return status_code in RETRYABLE_STATUS

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        params: dict | None = None,
    ) -> ProviderResponse:
        """
        Send one completion request.
        Raises ProviderError on timeout, HTTP error or malformed reply.
        """
        body = self._build_body(prompt, system_prompt or self.system_prompt, params or {})
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self._endpoint(), headers=self._headers(), json=body)
        except httpx.TimeoutException as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Provider '%s' timed out after %.0fms", self.name, latency)
            raise ProviderError(f"Timeout after {self.timeout}s", provider=self.name) from e
        except httpx.HTTPError as e:
            logger.warning("Provider '%s' transport error: %s", self.name, e)
            raise ProviderError(f"Transport error: {e}", provider=self.name) from e

        latency = (time.monotonic() - t0) * 1000
        if resp.status_code >= 400:
            raise ProviderError(
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                provider=self.name,
                status_code=resp.status_code,
                retryable=self._is_retryable(resp.status_code),
            )

        try:
            text, confidence = self._parse(resp.json())
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError(f"Malformed response: {e}", provider=self.name) from e

        logger.debug("Provider '%s' answered in %.0fms", self.name, latency)
        return ProviderResponse(
            text=text or "",
            provider=self.name,
            model=body.get("model", self.model),
            latency_ms=latency,
            confidence=confidence,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} url={self.url!r} model={self.model!r}>"
