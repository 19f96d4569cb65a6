"""Self-hosted Ollama adapter."""

import logging
from typing import Any, Dict

import httpx

from home_account.core.ai.errors import MalformedResponse, ProviderUnreachable, UpstreamError
from home_account.core.ai.providers.base import ProviderAdapter
from home_account.core.ai.types import PROVIDER_DEFAULTS

logger = logging.getLogger("home_account.ai")

HEALTH_TIMEOUT_SECONDS = 5.0


class OllamaProvider(ProviderAdapter):
    name = "Ollama"

    @property
    def base_url(self) -> str:
        return (self.config.base_url or PROVIDER_DEFAULTS["ollama"].base_url).rstrip("/")

    def is_available(self) -> bool:
        # No key needed; reachability is only discovered when sending
        return True

    async def _request(self, prompt: str) -> str:
        payload = {
            "model": self.config.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
            },
        }
        try:
            data = await self._post_json(f"{self.base_url}/api/generate", payload)
        except httpx.ConnectError as e:
            raise ProviderUnreachable(
                f"Ollama not reachable at {self.base_url}. Is the Ollama service running?",
                details=str(e),
            )

        if data.get("error"):
            raise UpstreamError(500, f"Ollama error: {data['error']}")
        if not data.get("response"):
            raise MalformedResponse("No response from Ollama")
        return data["response"]

    async def check_health(self) -> Dict[str, Any]:
        """
        Probe ``/api/tags`` and confirm the configured model is pulled.

        Returns:
            {"ok": True} or {"ok": False, "error": reason}
        """
        try:
            async with httpx.AsyncClient(timeout=HEALTH_TIMEOUT_SECONDS) as client:
                response = await client.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as e:
            logger.warning("Ollama health check failed: %s", e)
            return {"ok": False, "error": str(e) or type(e).__name__}

        if not response.is_success:
            return {"ok": False, "error": f"Ollama returned {response.status_code}"}

        names = [m.get("name", "") for m in response.json().get("models", [])]
        model_prefix = self.config.model.split(":")[0]
        if not any(model_prefix in name for name in names):
            return {
                "ok": False,
                "error": f"Model {self.config.model} not found. Available: {', '.join(names)}",
            }
        return {"ok": True}
