"""Google Gemini generateContent adapter."""

from home_account.core.ai.errors import MalformedResponse, UpstreamError
from home_account.core.ai.providers.base import ProviderAdapter

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


class GeminiProvider(ProviderAdapter):
    name = "Gemini"

    async def _request(self, prompt: str) -> str:
        data = await self._post_json(
            f"{GEMINI_BASE_URL}/models/{self.config.model}:generateContent",
            {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": self.config.temperature,
                    "maxOutputTokens": self.config.max_tokens,
                    "topP": 0.95,
                    "topK": 40,
                },
                "safetySettings": SAFETY_SETTINGS,
            },
            params={"key": self.config.api_key or ""},
        )

        if data.get("error"):
            error = data["error"]
            raise UpstreamError(error.get("code", 500), f"Gemini error: {error.get('message')}")

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise MalformedResponse("No text response from Gemini")
        return text
