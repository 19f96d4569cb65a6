"""
Database-backed TTL cache for market data.

Entries live in ``market_data_cache`` keyed by (symbol, source). Reads only
see rows whose ``expires_at`` is still in the future; writes replace the key's
row. Reads and writes are best effort and run in a savepoint: a failure
rolls back only the cache statement, is logged, and is reported as a miss
or through ``CacheWriteResult`` instead of raising.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from home_account.db.repositories.market_cache_repository import MarketCacheRepository
from home_account.utils.date_utils import utc_now

logger = logging.getLogger("home_account.market")

CACHE_DURATION_SECONDS = 300
CACHE_DURATION_MS = CACHE_DURATION_SECONDS * 1000

AGGREGATE_KEY = ("aggregate", "multiple")
FULL_KEY = ("full", "multiple")


@dataclass
class CacheWriteResult:
    """Outcome of one cache write."""

    success: bool
    symbol: str
    source: str
    expires_at: Optional[datetime] = None
    error: Optional[str] = None


@dataclass
class CachedEntry:
    data: Dict[str, Any]
    cached_at: datetime
    expires_at: datetime


def cache_duration() -> Dict[str, int]:
    return {
        "ms": CACHE_DURATION_MS,
        "seconds": CACHE_DURATION_SECONDS,
        "minutes": CACHE_DURATION_SECONDS // 60,
    }


class MarketCache:
    """
    TTL cache over the market_data_cache table.

    Usage:
        cache = MarketCache(db)
        entry = cache.get("aggregate", "multiple")
        if entry is None:
            result = cache.put("aggregate", "multiple", payload)
    """

    def __init__(
        self,
        session: Session,
        clock: Callable[[], datetime] = utc_now,
        ttl_seconds: int = CACHE_DURATION_SECONDS,
    ):
        self.session = session
        self.repo = MarketCacheRepository(session)
        self.clock = clock
        self.ttl = timedelta(seconds=ttl_seconds)

    def get(self, symbol: str, source: str) -> Optional[CachedEntry]:
        """
        Unexpired entry for the key, or None.

        A failing read is logged and treated as a miss.
        """
        try:
            with self.session.begin_nested():
                row = self.repo.get_valid(symbol, source, self.clock())
        except SQLAlchemyError as e:
            logger.error("[Market:Cache] Error reading cache for %s/%s: %s", symbol, source, e)
            return None

        if row is None:
            logger.info("[Market:Cache] No cached data found for %s/%s", symbol, source)
            return None

        logger.info("[Market:Cache] Using cached %s/%s from %s", symbol, source, row.cached_at.isoformat())
        return CachedEntry(data=dict(row.data), cached_at=row.cached_at, expires_at=row.expires_at)

    def put(self, symbol: str, source: str, data: Dict[str, Any]) -> CacheWriteResult:
        """Replace the key's entry with `data`, expiring one TTL from now."""
        now = self.clock()
        expires_at = now + self.ttl
        try:
            with self.session.begin_nested():
                self.repo.replace(symbol, source, data, cached_at=now, expires_at=expires_at)
        except SQLAlchemyError as e:
            logger.error("[Market:Cache] Error caching %s/%s: %s", symbol, source, e)
            return CacheWriteResult(success=False, symbol=symbol, source=source, error=str(e))

        logger.info("[Market:Cache] Cached %s/%s, expires at %s", symbol, source, expires_at.isoformat())
        return CacheWriteResult(success=True, symbol=symbol, source=source, expires_at=expires_at)

    def get_cached_symbol(self, symbol: str, source: str) -> Optional[Dict[str, Any]]:
        entry = self.get(symbol, source)
        if entry is None:
            return None
        return {"data": entry.data, "cachedAt": entry.cached_at.isoformat()}

    def cache_symbol(self, symbol: str, source: str, data: Dict[str, Any]) -> CacheWriteResult:
        return self.put(symbol, source, data)

    def clear_expired(self) -> int:
        """Delete expired rows and return how many were removed."""
        deleted = self.repo.delete_expired(self.clock())
        if deleted:
            logger.info("[Market:Cache] Cleared %d expired cache entries", deleted)
        return deleted

    def get_stats(self) -> Dict[str, int]:
        total = self.repo.count()
        expired = self.repo.count_expired(self.clock())
        return {
            "totalEntries": total,
            "expiredEntries": expired,
            "validEntries": total - expired,
        }
