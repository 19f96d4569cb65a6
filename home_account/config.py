"""
Application configuration from environment variables.

Settings are read once when the FastAPI app is built and stored on
``app.state``; request handlers receive them through dependencies so tests can
substitute their own instances.
"""

import os
from typing import Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


PROVIDER_KINDS = ("claude", "gemini", "groq", "ollama")
VALID_PROVIDERS = PROVIDER_KINDS + ("none",)


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("true", "1")


class AISettings:
    """AI integration settings: global switch, preferred provider and per-vendor credentials."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        env = os.environ if environ is None else environ

        self.enabled = _env_flag(env.get("AI_ENABLED"))
        self.provider = (env.get("AI_PROVIDER") or "").strip().lower() or None

        # Unset per-vendor flag means enabled
        self.provider_enabled = {
            kind: _env_flag(env.get(f"{kind.upper()}_ENABLED"), default=True) for kind in PROVIDER_KINDS
        }

        self.api_keys = {
            "claude": env.get("CLAUDE_API_KEY") or None,
            "gemini": env.get("GEMINI_API_KEY") or None,
            "groq": env.get("GROQ_API_KEY") or None,
            "ollama": None,
        }
        self.models = {
            "claude": env.get("CLAUDE_MODEL") or None,
            "gemini": env.get("GEMINI_MODEL") or None,
            "groq": env.get("GROQ_MODEL") or None,
            "ollama": env.get("OLLAMA_MODEL") or None,
        }
        self.base_urls = {
            "groq": env.get("GROQ_BASE_URL") or None,
            "ollama": env.get("OLLAMA_BASE_URL") or None,
        }

    def is_provider_enabled(self, kind: str) -> bool:
        if kind not in PROVIDER_KINDS:
            return False
        return self.provider_enabled[kind]

    def has_credentials(self, kind: str) -> bool:
        """Ollama is self-hosted and needs no key."""
        if kind == "ollama":
            return True
        return bool(self.api_keys.get(kind))

    def provider_config(self, kind: str):
        """Resolved ProviderConfig for `kind` (vendor defaults plus environment values)."""
        from home_account.core.ai.types import provider_config

        return provider_config(self, kind)


class Settings:
    """Top-level application settings."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        env = os.environ if environ is None else environ

        self.secret_jwt_key = env.get("SECRET_JWT_KEY") or None
        self.salt_rounds = int(env.get("SALT_ROUNDS", "10"))
        self.environment = env.get("ENVIRONMENT", "development")
        self.cookie_secure = self.environment == "production"
        self.csrf_enabled = _env_flag(env.get("CSRF_ENABLED"), default=True)

        default_origins = "http://localhost:3000"
        origins = [o.strip().rstrip("/") for o in env.get("CORS_ORIGINS", default_origins).split(",")]
        frontend_url = env.get("FRONTEND_URL")
        if frontend_url:
            origins.append(frontend_url.strip().rstrip("/"))
        self.cors_origins: List[str] = [o for o in dict.fromkeys(origins) if o]

        self.alpha_vantage_api_key = env.get("ALPHA_VANTAGE_API_KEY") or None
        self.ai = AISettings(env)


class ProviderSelection:
    """
    Runtime AI provider override.

    Set by ``PUT /api/ai/provider`` and handed explicitly to every AI client
    built afterwards. ``None`` and ``"none"`` both mean no override.
    """

    def __init__(self, override: Optional[str] = None):
        self.override = override

    def set(self, provider: str) -> None:
        if provider not in VALID_PROVIDERS:
            raise ValueError(f"Invalid provider: {provider}")
        self.override = provider

    @property
    def active_override(self) -> Optional[str]:
        if self.override and self.override != "none":
            return self.override
        return None
