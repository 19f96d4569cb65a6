"""
Market data: upstream feeds, the TTL cache and the aggregator.
"""

from home_account.core.market.cache import CacheWriteResult, MarketCache, cache_duration
from home_account.core.market.feeds import MarketFeeds
from home_account.core.market.service import (
    MarketDataService,
    classify_sentiment,
    classify_trend,
)
from home_account.core.market.types import (
    CryptoPrice,
    CurrencyRate,
    MarketData,
    MarketDataContext,
    MarketIndex,
    Quote,
    QuickSummary,
)

__all__ = [
    "CacheWriteResult",
    "MarketCache",
    "cache_duration",
    "MarketFeeds",
    "MarketDataService",
    "classify_sentiment",
    "classify_trend",
    "CryptoPrice",
    "CurrencyRate",
    "MarketData",
    "MarketDataContext",
    "MarketIndex",
    "Quote",
    "QuickSummary",
]
