"""
JWT authentication, CSRF protection and per-request service dependencies.

Token lookup order:
1. ``Authorization: Bearer <token>`` header (development clients, tests)
2. ``accessToken`` httpOnly cookie (browser sessions)

Mutating routes of protected routers also depend on ``verify_csrf``, which
compares the ``x-csrf-token`` header with the ``csrfToken`` cookie.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from home_account.api.rate_limit import LoginRateLimiter
from home_account.config import ProviderSelection, Settings
from home_account.core.ai.client import AIClient, ProviderFactory
from home_account.core.ai.providers import create_provider
from home_account.core.investment import InvestmentService
from home_account.core.market.cache import MarketCache
from home_account.core.market.feeds import MarketFeeds
from home_account.core.market.service import MarketDataService
from home_account.db.connection import get_db_session
from home_account.db.models import User
from home_account.utils.error_utils import TokenExpired, TokenInvalid
from home_account.utils.security_utils import (
    ACCESS_TOKEN_EXPIRE_DAYS,
    decode_access_token,
    validate_csrf_token,
)

logger = logging.getLogger("home_account.auth")

ACCESS_TOKEN_COOKIE = "accessToken"
CSRF_COOKIE = "csrfToken"
CSRF_HEADER = "x-csrf-token"
CSRF_TOKEN_MAX_AGE = timedelta(hours=8)

# Security scheme - optional so the cookie can be tried when no header is sent
security = HTTPBearer(auto_error=False)


# ======================
# Settings
# ======================


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider_selection(request: Request) -> ProviderSelection:
    return request.app.state.selection


def get_login_limiter(request: Request) -> LoginRateLimiter:
    return request.app.state.login_limiter


# ======================
# Cookies
# ======================


def set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict" if settings.cookie_secure else "lax",
        max_age=int(timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS).total_seconds()),
        path="/",
    )


def set_csrf_cookie(response: Response, token: str, settings: Settings) -> None:
    # Readable by the frontend, which echoes it in the x-csrf-token header
    response.set_cookie(
        key=CSRF_COOKIE,
        value=token,
        httponly=False,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=int(CSRF_TOKEN_MAX_AGE.total_seconds()),
        path="/",
    )


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_TOKEN_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")


# ======================
# Authentication
# ======================


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db_session),
) -> User:
    """
    FastAPI dependency that returns the current authenticated user.

    Raises:
        HTTPException: 401 "Token not provided", "Token expired" or "Invalid token"
        ConfigurationError: If SECRET_JWT_KEY is not set
    """
    token = get_token(request, credentials)
    if not token:
        raise _unauthorized("Token not provided")

    try:
        payload = decode_access_token(token, settings.secret_jwt_key)
    except TokenExpired:
        raise _unauthorized("Token expired")
    except TokenInvalid as e:
        logger.info("Rejected token: %s", e.details)
        raise _unauthorized("Invalid token")

    user = db.query(User).filter_by(id=payload["id"]).first()
    if user is None:
        raise _unauthorized("Invalid token")
    return user


async def verify_csrf(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """
    Double-submit CSRF check for POST, PUT, PATCH and DELETE.

    Safe methods pass through. Disabled entirely with CSRF_ENABLED=false.
    """
    if not settings.csrf_enabled or request.method in ("GET", "HEAD", "OPTIONS"):
        return

    if not validate_csrf_token(request.headers.get(CSRF_HEADER), request.cookies.get(CSRF_COOKIE)):
        logger.warning("CSRF validation failed on %s %s", request.method, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing CSRF token",
        )


# ======================
# Services
# ======================


def get_provider_factory() -> ProviderFactory:
    return create_provider


def get_ai_client(
    settings: Settings = Depends(get_settings),
    selection: ProviderSelection = Depends(get_provider_selection),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
) -> AIClient:
    return AIClient(settings.ai, selection=selection, provider_factory=provider_factory)


def get_market_feeds(settings: Settings = Depends(get_settings)) -> MarketFeeds:
    return MarketFeeds(settings.alpha_vantage_api_key)


def get_market_service(
    db: Session = Depends(get_db_session),
    feeds: MarketFeeds = Depends(get_market_feeds),
) -> MarketDataService:
    return MarketDataService(MarketCache(db), feeds)


def get_investment_service(
    db: Session = Depends(get_db_session),
    client: AIClient = Depends(get_ai_client),
    market: MarketDataService = Depends(get_market_service),
) -> InvestmentService:
    return InvestmentService(db, client, market)
