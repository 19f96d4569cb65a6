"""
AI integration: provider adapters, the retrying client and JSON extraction.
"""

from home_account.core.ai.client import (
    AIClient,
    extract_json,
    get_ai_status,
    resolve_provider,
    check_provider_connection,
)
from home_account.core.ai.errors import (
    AIError,
    MalformedResponse,
    NoJSONFound,
    ProviderAuthError,
    ProviderTimeout,
    ProviderUnavailable,
    ProviderUnreachable,
    RateLimited,
    UpstreamError,
)
from home_account.core.ai.types import PROVIDER_DEFAULTS, ProviderConfig, provider_config

__all__ = [
    "AIClient",
    "extract_json",
    "get_ai_status",
    "resolve_provider",
    "check_provider_connection",
    "AIError",
    "MalformedResponse",
    "NoJSONFound",
    "ProviderAuthError",
    "ProviderTimeout",
    "ProviderUnavailable",
    "ProviderUnreachable",
    "RateLimited",
    "UpstreamError",
    "PROVIDER_DEFAULTS",
    "ProviderConfig",
    "provider_config",
]
