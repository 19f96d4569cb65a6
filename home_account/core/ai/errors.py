"""
Failure taxonomy for AI providers.

Adapters raise these instead of vendor-specific errors so callers can react by
kind. All of them are HomeAccountError subclasses, so an unhandled one still
reaches the client as ``{"success": false, "error": ...}``.
"""

from typing import Optional

from home_account.utils.error_utils import HomeAccountError


class AIError(HomeAccountError):
    """Base class for AI provider failures."""

    status_code = 502


class ProviderAuthError(AIError):
    """Missing or rejected API key (HTTP 401)."""


class RateLimited(AIError):
    """Vendor rate limit hit (HTTP 429)."""


class UpstreamError(AIError):
    """Any other non-2xx vendor response."""

    def __init__(self, status: int, message: str, details: Optional[str] = None):
        self.status = status
        super().__init__(f"{message} (HTTP {status})", details)


class ProviderTimeout(AIError):
    status_code = 504

    def __init__(self, provider: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"{provider} request timeout after {timeout_ms}ms")


class MalformedResponse(AIError):
    """2xx response without the expected text field."""


class ProviderUnreachable(AIError):
    """Connection to a self-hosted provider failed."""


class ProviderUnavailable(AIError):
    """No provider resolved, or the resolved one has no credentials."""

    status_code = 400

    def __init__(self, message: str = "AI provider not available", details: Optional[str] = None):
        super().__init__(message, details)


class NoJSONFound(AIError):
    def __init__(self, message: str = "No valid JSON found in response", details: Optional[str] = None):
        super().__init__(message, details)
