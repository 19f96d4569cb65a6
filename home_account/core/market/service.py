"""
Market data aggregator.

Combines the crypto, currency and index feeds into one snapshot, caching the
result for five minutes. Feed failures degrade twice: each feed returns its
own fallback values on HTTP errors, and the aggregator substitutes fallback
constants for any feed call that still raises.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, List, Optional

from home_account.core.constants import MarketTrend
from home_account.core.market.cache import AGGREGATE_KEY, FULL_KEY, CACHE_DURATION_SECONDS, MarketCache
from home_account.core.market.feeds import (
    FALLBACK_CRYPTO,
    FALLBACK_CURRENCIES,
    FALLBACK_INDICES,
    MarketFeeds,
)
from home_account.core.market.types import INDEX_SYMBOLS, MarketData, MarketDataContext, Quote, QuickSummary

logger = logging.getLogger("home_account.market")

# Aggregate-level fallbacks, used when a feed call raises
FALLBACK_CONTEXT = {
    "sp500": Quote(value=5890, change24h=0),
    "msci_world": Quote(value=3450, change24h=0),
    "nasdaq": Quote(value=19250, change24h=0),
    "btc": Quote(value=98500, change24h=0),
    "eth": Quote(value=3450, change24h=0),
    "eur_usd": 1.042,
    "eur_gbp": 0.862,
}

TREND_THRESHOLD = 0.5
SENTIMENT_THRESHOLD = 1.0


def classify_trend(avg_change: float) -> MarketTrend:
    """alcista above +0.5%, bajista below -0.5%, else neutral."""
    if avg_change > TREND_THRESHOLD:
        return MarketTrend.ALCISTA
    if avg_change < -TREND_THRESHOLD:
        return MarketTrend.BAJISTA
    return MarketTrend.NEUTRAL


def classify_sentiment(avg_change: float) -> str:
    """bullish above +1%, bearish below -1%, else neutral."""
    if avg_change > SENTIMENT_THRESHOLD:
        return "bullish"
    if avg_change < -SENTIMENT_THRESHOLD:
        return "bearish"
    return "neutral"


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _settled(result: Any, label: str) -> Any:
    """Return a gather result, or None (logged) if it is an exception."""
    if isinstance(result, Exception):
        logger.warning("[Market] %s feed failed, using fallback: %s", label, result)
        return None
    return result


class MarketDataService:
    """
    Market data for prompts and the market prices endpoint.

    Usage:
        service = MarketDataService(MarketCache(db), MarketFeeds(api_key))
        context = await service.get_market_data()
    """

    def __init__(self, cache: MarketCache, feeds: Optional[MarketFeeds] = None):
        self.cache = cache
        self.feeds = feeds or MarketFeeds()
        self.last_write = None

    def _now(self) -> datetime:
        return self.cache.clock()

    async def _fetch_all(self):
        """
        Run the three feeds concurrently; exceptions come back as values.

        Index quotes are fetched one after another inside the equity feed.
        """
        crypto, currencies, indices = await asyncio.gather(
            self.feeds.crypto_prices(),
            self.feeds.currency_rates(),
            self.feeds.index_prices(),
            return_exceptions=True,
        )
        if isinstance(indices, Exception):
            indices = dict.fromkeys(INDEX_SYMBOLS, indices)
        return crypto, currencies, indices["SP500"], indices["MSCI"], indices["NASDAQ"]

    async def get_market_data(self) -> MarketDataContext:
        """
        Cached market snapshot, refreshed from the feeds on a miss.

        Never raises for feed problems: missing values are filled from the
        fallback constants.
        """
        cached = self.cache.get(*AGGREGATE_KEY)
        if cached is not None:
            logger.info("[Market] Returning cached market data")
            context = MarketDataContext.model_validate(cached.data)
            context.last_updated = cached.cached_at.isoformat()
            return context

        logger.info("[Market] Fetching fresh market data from all APIs...")
        start = time.monotonic()
        crypto, currencies, sp500, msci, nasdaq = await self._fetch_all()

        crypto = _settled(crypto, "crypto") or {}
        currencies = _settled(currencies, "currency") or {}
        sp500 = _settled(sp500, "S&P 500")
        msci = _settled(msci, "MSCI World")
        nasdaq = _settled(nasdaq, "NASDAQ")

        bitcoin = crypto.get("bitcoin")
        ethereum = crypto.get("ethereum")
        usd = currencies.get("USD")
        gbp = currencies.get("GBP")

        context = MarketDataContext(
            sp500=Quote(value=sp500.value, change24h=sp500.change24h) if sp500 else FALLBACK_CONTEXT["sp500"],
            msci_world=Quote(value=msci.value, change24h=msci.change24h) if msci else FALLBACK_CONTEXT["msci_world"],
            nasdaq=Quote(value=nasdaq.value, change24h=nasdaq.change24h) if nasdaq else FALLBACK_CONTEXT["nasdaq"],
            btc=Quote(value=bitcoin.price, change24h=bitcoin.change24h) if bitcoin else FALLBACK_CONTEXT["btc"],
            eth=Quote(value=ethereum.price, change24h=ethereum.change24h) if ethereum else FALLBACK_CONTEXT["eth"],
            eur_usd=usd.rate if usd else FALLBACK_CONTEXT["eur_usd"],
            eur_gbp=gbp.rate if gbp else FALLBACK_CONTEXT["eur_gbp"],
            last_updated=self._now().isoformat(),
        )

        logger.info("[Market] All data fetched in %dms", (time.monotonic() - start) * 1000)
        self.last_write = self.cache.put(*AGGREGATE_KEY, context.to_dict())
        return context

    async def get_market_data_full(self) -> MarketData:
        """
        Per-instrument market data with the derived market trend.

        The trend averages every index, crypto and currency 24h change.
        """
        cached = self.cache.get(*FULL_KEY)
        if cached is not None:
            logger.info("[Market] Returning cached full market data")
            return MarketData.model_validate(cached.data)

        crypto, currencies, sp500, msci, nasdaq = await self._fetch_all()
        crypto = _settled(crypto, "crypto") or dict(FALLBACK_CRYPTO)
        currencies = _settled(currencies, "currency") or dict(FALLBACK_CURRENCIES)
        indices = [
            _settled(sp500, "S&P 500") or FALLBACK_INDICES["SP500"],
            _settled(msci, "MSCI World") or FALLBACK_INDICES["MSCI"],
            _settled(nasdaq, "NASDAQ") or FALLBACK_INDICES["NASDAQ"],
        ]

        changes = [i.change24h for i in indices]
        changes += [c.change24h for c in crypto.values()]
        changes += [c.change24h for c in currencies.values() if c.change24h is not None]

        data = MarketData(
            cryptocurrencies=list(crypto.values()),
            currencies=list(currencies.values()),
            indices=indices,
            cached_at=self._now().isoformat(),
            cache_expires_in=CACHE_DURATION_SECONDS,
            market_trend=classify_trend(_average(changes)),
        )
        self.last_write = self.cache.put(*FULL_KEY, data.to_dict())
        return data

    async def get_quick_summary(self) -> QuickSummary:
        """
        Direction, biggest mover and sentiment from the cached snapshot.

        ``trending`` uses the ±0.5% trend threshold; ``marketSentiment`` uses
        the stricter ±1% threshold over the same changes.
        """
        data = await self.get_market_data()
        avg_change = _average(data.tracked_changes())

        trend = classify_trend(avg_change)
        trending = {MarketTrend.ALCISTA: "up", MarketTrend.BAJISTA: "down"}.get(trend, "neutral")

        movers = [
            {"name": "S&P 500", "change": data.sp500.change24h},
            {"name": "MSCI World", "change": data.msci_world.change24h},
            {"name": "Bitcoin", "change": data.btc.change24h},
        ]
        top_mover = movers[0]
        for item in movers[1:]:
            if abs(item["change"]) > abs(top_mover["change"]):
                top_mover = item

        return QuickSummary(
            trending=trending,
            top_mover=top_mover,
            market_sentiment=classify_sentiment(avg_change),
        )
