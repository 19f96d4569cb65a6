"""
LLM provider adapters.

One adapter per vendor; ``create_provider`` is the only place that dispatches
on the provider kind.
"""

from typing import Optional

from home_account.core.ai.providers.base import ProviderAdapter
from home_account.core.ai.providers.claude import ClaudeProvider
from home_account.core.ai.providers.gemini import GeminiProvider
from home_account.core.ai.providers.groq import GroqProvider
from home_account.core.ai.providers.ollama import OllamaProvider
from home_account.core.ai.types import ProviderConfig

PROVIDER_CLASSES = {
    "claude": ClaudeProvider,
    "gemini": GeminiProvider,
    "groq": GroqProvider,
    "ollama": OllamaProvider,
}


def create_provider(config: ProviderConfig) -> Optional[ProviderAdapter]:
    """Build the adapter for ``config.provider``; ``none`` and unknown kinds give None."""
    provider_class = PROVIDER_CLASSES.get(config.provider)
    if provider_class is None:
        return None
    return provider_class(config)


__all__ = [
    "ProviderAdapter",
    "ClaudeProvider",
    "GeminiProvider",
    "GroqProvider",
    "OllamaProvider",
    "PROVIDER_CLASSES",
    "create_provider",
]
