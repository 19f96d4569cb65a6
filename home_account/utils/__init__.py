"""
Utility modules for Home Account.

This package contains reusable helpers for date handling, security
primitives (passwords, tokens, CSRF) and error handling.
"""

from home_account.utils.date_utils import (
    utc_now,
    parse_date,
    parse_optional_date,
    month_key,
    previous_day_iso,
)

from home_account.utils.security_utils import (
    hash_password,
    verify_password,
    create_access_token,
    decode_access_token,
    generate_csrf_token,
    validate_csrf_token,
)

from home_account.utils.error_utils import (
    HomeAccountError,
    ValidationError,
    AuthenticationError,
    TokenExpired,
    TokenInvalid,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    ConfigurationError,
    AIServiceUnavailable,
    logger,
)

__all__ = [
    # Date utilities
    "utc_now",
    "parse_date",
    "parse_optional_date",
    "month_key",
    "previous_day_iso",
    # Security
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_access_token",
    "generate_csrf_token",
    "validate_csrf_token",
    # Error handling
    "HomeAccountError",
    "ValidationError",
    "AuthenticationError",
    "TokenExpired",
    "TokenInvalid",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ConfigurationError",
    "AIServiceUnavailable",
    "logger",
]
