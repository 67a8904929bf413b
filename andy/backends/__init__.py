"""
LLM providers for Andy.
A high-capability tier (Anthropic) and a baseline tier (OpenAI), selected
per request by the model router.
"""
from andy.backends.base import BaseProvider, ProviderResponse
from andy.backends.anthropic import AnthropicProvider
from andy.backends.openai import OpenAIProvider
from andy.backends.registry import ProviderRegistry

__all__ = [
    "BaseProvider",
    "ProviderResponse",
    "AnthropicProvider",
    "OpenAIProvider",
    "ProviderRegistry",
]
