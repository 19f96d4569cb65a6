"""
Registration, login and session cookie endpoints.

Provides REST API for user authentication. Register and login are exempt from
the CSRF check; the token they return is also set as the ``accessToken``
httpOnly cookie.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from home_account.api.auth import (
    clear_auth_cookies,
    get_current_user,
    get_login_limiter,
    get_settings,
    set_auth_cookie,
    set_csrf_cookie,
)
from home_account.api.rate_limit import LoginRateLimiter
from home_account.api.schemas import (
    AuthResponse,
    CsrfTokenResponse,
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserResponse,
)
from home_account.config import Settings
from home_account.db.connection import get_db_session
from home_account.db.models import User
from home_account.db.repositories import UserRepository
from home_account.utils.error_utils import AuthenticationError
from home_account.utils.security_utils import create_access_token, generate_csrf_token

logger = logging.getLogger("home_account.auth")

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db_session),
):
    """Create a user, their default account and the owner membership."""
    repo = UserRepository(db)
    user, account = repo.create_with_account(
        email=body.email,
        password=body.password,
        name=body.name,
        account_name=body.account_name,
        salt_rounds=settings.salt_rounds,
    )
    token = create_access_token(user.id, user.email, settings.secret_jwt_key)
    db.commit()
    db.refresh(user)

    logger.info("Registered user %s with account %s", user.id, account.id)
    set_auth_cookie(response, token, settings)
    return AuthResponse(user=UserResponse.model_validate(user), access_token=token)


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    limiter: LoginRateLimiter = Depends(get_login_limiter),
    db: Session = Depends(get_db_session),
):
    """Exchange credentials for a token; only failed attempts count towards the rate limit."""
    limiter.check(request)
    try:
        user = UserRepository(db).authenticate(body.email, body.password)
    except AuthenticationError:
        limiter.record_failure(request)
        raise
    token = create_access_token(user.id, user.email, settings.secret_jwt_key)

    set_auth_cookie(response, token, settings)
    return AuthResponse(user=UserResponse.model_validate(user), access_token=token)


@router.get("/me", response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user)):
    return CurrentUserResponse(user=UserResponse.model_validate(current_user))


@router.post("/logout", response_model=MessageResponse)
def logout(response: Response):
    clear_auth_cookies(response)
    return MessageResponse(message="Logged out")


@router.get("/csrf-token", response_model=CsrfTokenResponse)
def csrf_token(response: Response, settings: Settings = Depends(get_settings)):
    """Issue a CSRF token as both a readable cookie and the response body."""
    token = generate_csrf_token()
    set_csrf_cookie(response, token, settings)
    return CsrfTokenResponse(csrf_token=token)
