"""
AI provider configuration types and vendor defaults.
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional

from home_account.config import AISettings

NONE = "none"


@dataclass(frozen=True)
class ProviderConfig:
    """Resolved configuration for one provider. Immutable once built."""

    provider: str
    model: str
    temperature: float
    max_tokens: int
    timeout_ms: int
    max_retries: int
    api_key: Optional[str] = None
    base_url: Optional[str] = None

    def with_overrides(self, **changes) -> "ProviderConfig":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


PROVIDER_DEFAULTS: Dict[str, ProviderConfig] = {
    NONE: ProviderConfig(
        provider=NONE, model="", temperature=0.0, max_tokens=0, timeout_ms=0, max_retries=0
    ),
    "claude": ProviderConfig(
        provider="claude",
        model="claude-sonnet-4-20250514",
        temperature=0.1,
        max_tokens=4000,
        timeout_ms=60000,
        max_retries=2,
    ),
    "gemini": ProviderConfig(
        provider="gemini",
        model="gemini-2.0-flash",
        temperature=0.1,
        max_tokens=4000,
        timeout_ms=60000,
        max_retries=2,
    ),
    "groq": ProviderConfig(
        provider="groq",
        model="llama-3.3-70b-versatile",
        temperature=0.1,
        max_tokens=4000,
        timeout_ms=60000,
        max_retries=2,
        base_url="https://api.groq.com/openai/v1",
    ),
    "ollama": ProviderConfig(
        provider="ollama",
        model="llama2:latest",
        temperature=0.1,
        max_tokens=4000,
        timeout_ms=180000,
        max_retries=1,
        base_url="http://localhost:11434",
    ),
}


def provider_config(settings: AISettings, kind: str) -> ProviderConfig:
    """
    Build a provider's configuration from defaults plus environment values.

    Unknown kinds resolve to the ``none`` configuration.
    """
    defaults = PROVIDER_DEFAULTS.get(kind)
    if defaults is None or kind == NONE:
        return PROVIDER_DEFAULTS[NONE]

    return defaults.with_overrides(
        api_key=settings.api_keys.get(kind),
        model=settings.models.get(kind),
        base_url=settings.base_urls.get(kind),
    )
