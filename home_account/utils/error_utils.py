"""
Error handling utilities for Home Account.

This module configures application logging and defines the domain exception
hierarchy shared by repositories, services and API routes. Each exception
carries the HTTP status the API layer answers with, so controllers translate
errors by kind instead of matching on message text.
"""

import os
import sys
import logging
from datetime import datetime

# Configure logging - skip file handler on serverless (read-only filesystem)
_handlers = [logging.StreamHandler(sys.stdout)]
if not os.getenv("VERCEL") and os.getenv("LOG_FILE"):
    _handlers.append(logging.FileHandler(os.getenv("LOG_FILE")))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=_handlers,
)

logger = logging.getLogger("home_account")


class HomeAccountError(Exception):
    """Base exception class for Home Account errors"""

    status_code = 500

    def __init__(self, message, details=None):
        self.message = message
        self.details = details
        self.timestamp = datetime.now()
        super().__init__(self.message)


class ValidationError(HomeAccountError):
    """Invalid client input."""

    status_code = 400


class AuthenticationError(HomeAccountError):
    """Missing or unusable credentials."""

    status_code = 401


class TokenExpired(AuthenticationError):
    def __init__(self, message="Token expired", details=None):
        super().__init__(message, details)


class TokenInvalid(AuthenticationError):
    def __init__(self, message="Invalid token", details=None):
        super().__init__(message, details)


class ForbiddenError(HomeAccountError):
    """Caller is authenticated but lacks the required role."""

    status_code = 403


class NotFoundError(HomeAccountError):
    """Entity absent or not visible to the caller."""

    status_code = 404


class ConflictError(HomeAccountError):
    """Unique constraint violation (duplicate email, name, membership)."""

    status_code = 409


class TooManyRequests(HomeAccountError):
    """Caller exceeded a rate limit; `retry_after` is in seconds."""

    status_code = 429

    def __init__(self, message, retry_after=None, details=None):
        super().__init__(message, details)
        self.retry_after = retry_after


class ConfigurationError(HomeAccountError):
    status_code = 500


class AIServiceUnavailable(HomeAccountError):
    status_code = 503

    def __init__(self, message="AI not available", details=None):
        super().__init__(message, details)
