"""
Failed-login rate limiting.

Only failed attempts count: after seven failed logins from one client address
inside a fifteen minute window, further attempts are refused with 429 until
the window resets. Counters live in process memory, one store per app.
"""

import logging
import time
from typing import Optional

from fastapi import Request
from limits import RateLimitItem, parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter

from home_account.utils.error_utils import TooManyRequests

logger = logging.getLogger("home_account.auth")

LOGIN_FAILURE_LIMIT = "7 per 15 minutes"
TOO_MANY_LOGIN_ATTEMPTS = "Demasiados intentos fallidos. Intenta de nuevo en 15 minutos."
LOGIN_NAMESPACE = "login"


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class LoginRateLimiter:
    """
    Counts failed logins per client address.

    Usage:
        limiter.check(request)
        try:
            user = repo.authenticate(email, password)
        except AuthenticationError:
            limiter.record_failure(request)
            raise
    """

    def __init__(self, limit: str = LOGIN_FAILURE_LIMIT, storage: Optional[Storage] = None):
        self.item: RateLimitItem = parse(limit)
        self.storage = storage or MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    def check(self, request: Request) -> None:
        """
        Raises:
            TooManyRequests: If the address has used up its failed attempts
        """
        address = client_address(request)
        if self.strategy.test(self.item, LOGIN_NAMESPACE, address):
            return

        reset_at, _ = self.strategy.get_window_stats(self.item, LOGIN_NAMESPACE, address)
        retry_after = max(int(reset_at - time.time()), 1)
        logger.warning("Login blocked for %s, retry in %ds", address, retry_after)
        raise TooManyRequests(TOO_MANY_LOGIN_ATTEMPTS, retry_after=retry_after)

    def record_failure(self, request: Request) -> None:
        self.strategy.hit(self.item, LOGIN_NAMESPACE, client_address(request))
