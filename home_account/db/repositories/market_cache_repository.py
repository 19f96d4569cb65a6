"""
Market data cache repository.

Rows are keyed by (symbol, source). A write removes every existing row for
the key before inserting the new one, so at most one row per key survives a
successful write.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from home_account.db.models import MarketDataCache
from home_account.db.repositories.base import BaseRepository


class MarketCacheRepository(BaseRepository[MarketDataCache]):
    """Repository for MarketDataCache rows."""

    def __init__(self, session: Session):
        """Initialize market cache repository."""
        super().__init__(MarketDataCache, session)

    def get_valid(self, symbol: str, source: str, now: datetime) -> Optional[MarketDataCache]:
        """
        Newest entry for the key that has not expired at `now`.

        Returns:
            MarketDataCache row or None on miss
        """
        return (
            self.session.query(MarketDataCache)
            .filter(
                MarketDataCache.symbol == symbol,
                MarketDataCache.source == source,
                MarketDataCache.expires_at > now,
            )
            .order_by(MarketDataCache.cached_at.desc(), MarketDataCache.id.desc())
            .first()
        )

    def replace(
        self,
        symbol: str,
        source: str,
        data: Dict[str, Any],
        cached_at: datetime,
        expires_at: datetime,
    ) -> MarketDataCache:
        """Delete the key's rows, then insert the new entry."""
        self.session.query(MarketDataCache).filter(
            MarketDataCache.symbol == symbol,
            MarketDataCache.source == source,
        ).delete(synchronize_session=False)

        entry = MarketDataCache(
            symbol=symbol,
            source=source,
            data=data,
            cached_at=cached_at,
            expires_at=expires_at,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def delete_expired(self, now: datetime) -> int:
        return (
            self.session.query(MarketDataCache)
            .filter(MarketDataCache.expires_at < now)
            .delete(synchronize_session=False)
        )

    def count_expired(self, now: datetime) -> int:
        return self.session.query(MarketDataCache).filter(MarketDataCache.expires_at < now).count()
