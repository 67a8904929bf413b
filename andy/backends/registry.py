"""
Provider registry — maps routing tiers ("claude", "gpt4") to providers.

Built once at startup from the providers: section of config.yaml. A provider
without an API key is a fatal startup error: better to refuse to boot than
to fail every request later.
"""

from __future__ import annotations

import logging

from andy.backends.anthropic import AnthropicProvider
from andy.backends.base import BaseProvider
from andy.backends.openai import OpenAIProvider
from andy.errors import ServiceInitError

logger = logging.getLogger(__name__)

# Provider kind -> class
PROVIDERS: dict[str, type[BaseProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}

_OPTIONAL_KEYS = ("model", "system_prompt", "max_tokens", "temperature", "timeout", "confidence")

DEFAULT_SYSTEM_PROMPT = (
    "You are Andy AI, a sophisticated financial assistant specializing in tax "
    "preparation, financial analysis, and document processing. Focus on providing "
    "accurate, actionable financial advice. When analyzing documents, highlight key "
    "financial implications and potential tax considerations. When the user needs a "
    "form, a calculation or a verification, add a directive such as "
    "[ACTION:FORM_REQUEST:<form>], [ACTION:CALCULATION:<what>] or "
    "[ACTION:VERIFICATION:<what>] to your reply."
)


class ProviderRegistry:

    def __init__(self, providers: dict[str, BaseProvider]):
        self.providers = dict(providers)
        logger.info("Providers registered: %s", ", ".join(
            f"{name}={p.model or p.__class__.__name__}" for name, p in self.providers.items()
        ))

    @classmethod
    def from_config(cls, cfg: dict) -> "ProviderRegistry":
        """Instantiate every configured provider. Raises ServiceInitError on bad config."""
        providers_cfg = cfg.get("providers", {})
        if not providers_cfg:
            raise ServiceInitError("No providers configured")

        providers: dict[str, BaseProvider] = {}
        missing: list[str] = []
        for name, p_cfg in providers_cfg.items():
            kind = p_cfg.get("kind", "openai")
            provider_cls = PROVIDERS.get(kind)
            if provider_cls is None:
                raise ServiceInitError(f"Unknown provider kind '{kind}' for '{name}'")
            if not p_cfg.get("api_key"):
                missing.append(name)
                continue

            kwargs = {
                "name": name,
                "api_key": p_cfg["api_key"],
                "system_prompt": DEFAULT_SYSTEM_PROMPT,
            }
            if p_cfg.get("url"):
                kwargs["url"] = p_cfg["url"]
            for key in _OPTIONAL_KEYS:
                if key in p_cfg:
                    kwargs[key] = p_cfg[key]
            providers[name] = provider_cls(**kwargs)

        if missing:
            raise ServiceInitError(
                f"Missing required API keys for providers: {', '.join(missing)}"
            )
        return cls(providers)

    def get(self, name: str) -> BaseProvider:
        provider = self.providers.get(name)
        if provider is None:
            raise KeyError(f"No provider registered for '{name}'")
        return provider

    def names(self) -> list[str]:
        return list(self.providers)

    async def health(self) -> dict:
        """Health check all providers."""
        results = {}
        for name, provider in self.providers.items():
            try:
                results[name] = {"healthy": await provider.health_check(), "model": provider.model}
            except Exception as e:
                results[name] = {"healthy": False, "error": str(e)}
        return results
