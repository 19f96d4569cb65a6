"""Groq (OpenAI-compatible chat completions) adapter."""

from home_account.core.ai.errors import MalformedResponse
from home_account.core.ai.providers.base import ProviderAdapter
from home_account.core.ai.types import PROVIDER_DEFAULTS

OPENAI_PATH = "/openai/v1"


def normalize_base_url(base_url: str) -> str:
    """Accept either the bare host or the full OpenAI-compatible prefix."""
    base = base_url.rstrip("/")
    return base if base.endswith(OPENAI_PATH) else f"{base}{OPENAI_PATH}"


class GroqProvider(ProviderAdapter):
    name = "Groq"

    @property
    def base_url(self) -> str:
        return normalize_base_url(self.config.base_url or PROVIDER_DEFAULTS["groq"].base_url)

    async def _request(self, prompt: str) -> str:
        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            {
                "model": self.config.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise MalformedResponse("No content in Groq response")
        return content
