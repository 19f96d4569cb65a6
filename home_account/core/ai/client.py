"""
Multi-provider AI client.

The client is built per logical operation. It resolves which vendor to use,
wraps that vendor's adapter with a linear-backoff retry policy and offers a
JSON-returning variant for prompts that ask the model for structured output.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from home_account.config import PROVIDER_KINDS, AISettings, ProviderSelection
from home_account.core.ai.errors import AIError, NoJSONFound, ProviderUnavailable
from home_account.core.ai.providers import ProviderAdapter, create_provider
from home_account.core.ai.providers.ollama import OllamaProvider
from home_account.core.ai.types import NONE, PROVIDER_DEFAULTS, ProviderConfig, provider_config

logger = logging.getLogger("home_account.ai")

RETRY_BASE_DELAY_SECONDS = 2.0
CONNECTION_TEST_PROMPT = "Respond with exactly: OK"

# Fallback order when nothing is configured explicitly
KEYED_PROVIDER_PRIORITY = ("groq", "gemini", "claude")

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_BRACED_OBJECT = re.compile(r"\{[\s\S]*\}")

ProviderFactory = Callable[[ProviderConfig], Optional[ProviderAdapter]]
Sleep = Callable[[float], Awaitable[Any]]


def extract_json(text: str) -> Any:
    """
    Parse JSON out of free-form model output.

    Tries, in order: the whole trimmed text, the contents of the first fenced
    code block (with or without a ``json`` tag), then the span from the first
    ``{`` to the last ``}``.

    Raises:
        NoJSONFound: If none of the three candidates parses
    """
    trimmed = text.strip()
    try:
        return json.loads(trimmed)
    except ValueError:
        pass

    fenced = _FENCED_BLOCK.search(trimmed)
    if fenced:
        try:
            return json.loads(fenced.group(1).strip())
        except ValueError:
            pass

    braced = _BRACED_OBJECT.search(trimmed)
    if braced:
        try:
            return json.loads(braced.group(0))
        except ValueError:
            pass

    raise NoJSONFound(details=trimmed[:200])


def resolve_provider(
    settings: AISettings,
    explicit: Optional[str] = None,
    selection: Optional[ProviderSelection] = None,
) -> str:
    """
    Decide which provider kind a client should use.

    Order: explicit argument, runtime override, AI_PROVIDER (when enabled and
    credentialed), then the first keyed vendor in priority order, then a
    local Ollama, else ``none``.
    """
    if not settings.enabled:
        return NONE
    if explicit:
        return explicit

    override = selection.active_override if selection else None
    if override and settings.is_provider_enabled(override):
        return override

    configured = settings.provider
    if configured in PROVIDER_KINDS and settings.is_provider_enabled(configured) and settings.has_credentials(configured):
        return configured

    for kind in KEYED_PROVIDER_PRIORITY:
        if settings.api_keys.get(kind) and settings.is_provider_enabled(kind):
            return kind
    if settings.is_provider_enabled("ollama"):
        return "ollama"
    return NONE


class AIClient:
    """
    Client over one resolved provider adapter.

    Usage:
        client = AIClient(settings.ai, selection=selection)
        if client.is_available():
            data = await client.send_prompt_json(prompt)
    """

    def __init__(
        self,
        settings: AISettings,
        provider: Optional[str] = None,
        selection: Optional[ProviderSelection] = None,
        config_overrides: Optional[Dict[str, Any]] = None,
        provider_factory: ProviderFactory = create_provider,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Resolve the provider and build its adapter.

        Args:
            settings: AI settings read from the environment
            provider: Explicit provider kind, bypasses resolution
            selection: Runtime override set through the admin API
            config_overrides: Per-call tweaks (model, timeout_ms, max_retries, ...)
            provider_factory: Builds the adapter for a config
            sleep: Awaitable used between retries
        """
        self._sleep = sleep
        self.provider: Optional[ProviderAdapter] = None

        if not settings.enabled:
            self.config = PROVIDER_DEFAULTS[NONE]
        else:
            kind = resolve_provider(settings, provider, selection)
            self.config = provider_config(settings, kind).with_overrides(**(config_overrides or {}))
            self.provider = provider_factory(self.config)

        self.enabled = self.provider is not None and self.provider.is_available()

    def is_available(self) -> bool:
        return self.enabled

    @property
    def provider_name(self) -> str:
        return self.provider.name if self.provider else "None"

    async def send_prompt(self, prompt: str) -> str:
        """
        Send a prompt, retrying failed attempts with linear backoff.

        Attempt n (1-based) that fails is followed by a ``2s * n`` pause, up
        to ``config.max_retries`` retries. The last error propagates as is.

        Raises:
            ProviderUnavailable: Immediately, if no usable provider was resolved
        """
        if not self.enabled:
            raise ProviderUnavailable()

        attempt = 0
        while True:
            start = time.monotonic()
            logger.info("[AI:%s] Sending prompt (%d chars)...", self.provider_name, len(prompt))
            try:
                response = await self.provider.send_prompt(prompt)
            except Exception as e:
                logger.warning("[AI:%s] Attempt %d failed: %s", self.provider_name, attempt + 1, e)
                if attempt >= self.config.max_retries:
                    raise
                attempt += 1
                logger.info("[AI:%s] Retrying... (%d/%d)", self.provider_name, attempt, self.config.max_retries)
                await self._sleep(RETRY_BASE_DELAY_SECONDS * attempt)
                continue

            elapsed_ms = (time.monotonic() - start) * 1000
            logger.info("[AI:%s] Response received in %.0fms", self.provider_name, elapsed_ms)
            return response

    async def send_prompt_json(self, prompt: str) -> Any:
        """Send a prompt and parse the reply with ``extract_json``."""
        return extract_json(await self.send_prompt(prompt))


async def get_ai_status(
    settings: AISettings,
    selection: Optional[ProviderSelection] = None,
    check_health: bool = False,
) -> Dict[str, Any]:
    """
    Describe every provider's configuration and the one a new client would use.

    Args:
        settings: AI settings
        selection: Runtime override, if any
        check_health: Also probe the Ollama server

    Returns:
        {"enabled", "activeProvider", "providers": {kind: {...}}}
    """
    providers: Dict[str, Dict[str, Any]] = {}
    for kind in PROVIDER_KINDS:
        config = provider_config(settings, kind)
        configured = settings.has_credentials(kind)
        entry: Dict[str, Any] = {
            "configured": configured,
            "enabled": settings.is_provider_enabled(kind) and configured,
            "model": config.model,
        }
        if kind == "ollama":
            entry["baseUrl"] = config.base_url
            if check_health:
                health = await OllamaProvider(config).check_health()
                entry["healthy"] = health["ok"]
                if not health["ok"]:
                    entry["healthError"] = health.get("error")
        providers[kind] = entry

    return {
        "enabled": settings.enabled,
        "activeProvider": AIClient(settings, selection=selection).provider_name,
        "providers": providers,
    }


async def check_provider_connection(
    settings: AISettings,
    kind: str,
    provider_factory: ProviderFactory = create_provider,
    sleep: Sleep = asyncio.sleep,
) -> Dict[str, Any]:
    """
    Round-trip a trivial prompt through one provider.

    Never raises for provider problems; failures come back as
    ``{"success": False, "error": ...}``.
    """
    if not settings.enabled:
        return {"success": False, "error": "AI is disabled (AI_ENABLED=false)"}
    if not settings.is_provider_enabled(kind):
        return {"success": False, "error": f"Provider {kind} is disabled"}
    if not settings.has_credentials(kind):
        return {"success": False, "error": f"No API key configured for {kind}"}

    client = AIClient(settings, provider=kind, provider_factory=provider_factory, sleep=sleep)
    if not client.is_available():
        return {"success": False, "error": f"Provider {kind} not available"}

    start = time.monotonic()
    try:
        await client.send_prompt(CONNECTION_TEST_PROMPT)
    except (AIError, httpx.HTTPError) as e:
        return {"success": False, "error": str(e)}

    return {
        "success": True,
        "provider": client.provider_name,
        "model": client.config.model,
        "responseTime": round((time.monotonic() - start) * 1000),
    }
