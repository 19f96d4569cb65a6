"""Anthropic Messages API adapter."""

from home_account.core.ai.errors import MalformedResponse
from home_account.core.ai.providers.base import ProviderAdapter

CLAUDE_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(ProviderAdapter):
    name = "Claude"

    async def _request(self, prompt: str) -> str:
        data = await self._post_json(
            CLAUDE_API_URL,
            {
                "model": self.config.model,
                "max_tokens": self.config.max_tokens,
                "temperature": self.config.temperature,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": self.config.api_key or "",
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

        blocks = data.get("content") or []
        first = blocks[0] if blocks else {}
        if first.get("type") != "text" or not first.get("text"):
            raise MalformedResponse("Unexpected response type from Claude")
        return first["text"]
