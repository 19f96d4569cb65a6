"""
Provider adapter contract.

An adapter turns one vendor's chat-completion HTTP API into
``send_prompt(text) -> text``. The shared plumbing (timeout, status mapping,
request logging) lives here; subclasses only build the request and pick the
text out of the response envelope.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from home_account.core.ai.errors import (
    MalformedResponse,
    ProviderAuthError,
    ProviderTimeout,
    RateLimited,
    UpstreamError,
)
from home_account.core.ai.types import ProviderConfig

logger = logging.getLogger("home_account.ai")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or response.reason_phrase
    if isinstance(error, str):
        return error
    return response.reason_phrase


class ProviderAdapter(ABC):
    """Base class for one LLM vendor."""

    name: str = "Provider"

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def timeout_seconds(self) -> float:
        return self.config.timeout_ms / 1000

    def is_available(self) -> bool:
        """Hosted vendors need an API key."""
        return bool(self.config.api_key)

    @abstractmethod
    async def _request(self, prompt: str) -> str:
        """Perform the vendor call and return the raw response text."""

    async def send_prompt(self, prompt: str) -> str:
        """
        Send one prompt and return the trimmed response text.

        Raises:
            ProviderTimeout: If the call exceeds ``config.timeout_ms``
            ProviderAuthError, RateLimited, UpstreamError, MalformedResponse:
                Vendor-level failures
        """
        logger.debug("[AI:%s] Sending prompt (%d chars)", self.name, len(prompt))
        start = time.monotonic()
        try:
            text = await asyncio.wait_for(self._request(prompt), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise ProviderTimeout(self.name, self.config.timeout_ms)

        logger.debug("[AI:%s] Response received in %dms", self.name, (time.monotonic() - start) * 1000)
        return text.strip()

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(url, json=payload, headers=headers, params=params)
        self._raise_for_status(response)
        try:
            return response.json()
        except ValueError:
            raise MalformedResponse(f"{self.name} returned a non-JSON body")

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        message = _error_message(response)
        if response.status_code == 401:
            raise ProviderAuthError(f"{self.name}: invalid API key", details=message)
        if response.status_code == 429:
            raise RateLimited(f"{self.name}: rate limit reached, wait a few minutes", details=message)
        raise UpstreamError(response.status_code, f"{self.name} API error: {message}")
