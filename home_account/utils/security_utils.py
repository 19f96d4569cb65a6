"""
Security primitives: password hashing, JWT access tokens and CSRF tokens.

Tokens carry {id, email} and are signed with HS256 using SECRET_JWT_KEY.
"""

import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from home_account.utils.error_utils import ConfigurationError, TokenExpired, TokenInvalid

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = 7
CSRF_TOKEN_BYTES = 32

# Compared against when the email is unknown so login timing does not leak existence
_DUMMY_HASH = bcrypt.hashpw(b"timing-attack-prevention", bcrypt.gensalt(rounds=4))


def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """
    Check a plain password against a bcrypt hash.

    A bcrypt comparison is always performed, even when `password_hash` is None.
    """
    candidate = password_hash.encode("utf-8") if password_hash else _DUMMY_HASH
    matches = bcrypt.checkpw(password.encode("utf-8"), candidate)
    return matches and password_hash is not None


def create_access_token(
    user_id: int,
    email: str,
    secret: Optional[str],
    expires_in: timedelta = timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS),
) -> str:
    """
    Sign an access token for a user.

    Args:
        user_id: User primary key
        email: User email
        secret: Signing secret (SECRET_JWT_KEY)
        expires_in: Lifetime of the token, 7 days by default

    Returns:
        Encoded JWT string

    Raises:
        ConfigurationError: If no secret is configured
    """
    if not secret:
        raise ConfigurationError("SECRET_JWT_KEY is not configured")

    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "email": email,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, secret: Optional[str]) -> Dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        TokenExpired: If the token's exp claim has passed
        TokenInvalid: If the signature or shape is wrong
        ConfigurationError: If no secret is configured
    """
    if not secret:
        raise ConfigurationError("SECRET_JWT_KEY is not configured")

    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError as e:
        raise TokenInvalid(details=str(e))

    if not payload.get("id"):
        raise TokenInvalid(details="missing id claim")
    return payload


def generate_csrf_token() -> str:
    return secrets.token_hex(CSRF_TOKEN_BYTES)


def validate_csrf_token(token_from_header: Optional[str], token_from_cookie: Optional[str]) -> bool:
    """Double-submit check: header and cookie must both be present and equal."""
    if not token_from_header or not token_from_cookie:
        return False
    if len(token_from_header) != len(token_from_cookie):
        return False
    return hmac.compare_digest(token_from_header.encode("utf-8"), token_from_cookie.encode("utf-8"))
