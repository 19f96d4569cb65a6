"""
External market data feeds.

Three free upstream APIs, each wrapped so that any HTTP or decoding problem
yields documented fallback values instead of an exception:

    CoinGecko    crypto prices in EUR (no key)
    Frankfurter  EUR exchange rates (no key)
    AlphaVantage index ETF quotes (ALPHA_VANTAGE_API_KEY, 25 calls/day)
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, Optional, Union

import httpx

from home_account.core.market.types import (
    CRYPTO_COINS,
    CURRENCY_PAIRS,
    INDEX_SYMBOLS,
    CryptoPrice,
    CurrencyRate,
    MarketIndex,
)
from home_account.utils.date_utils import previous_day_iso

logger = logging.getLogger("home_account.market")

COINGECKO_BASE = "https://api.coingecko.com/api/v3"
FRANKFURTER_BASE = "https://api.frankfurter.app"
ALPHA_VANTAGE_BASE = "https://www.alphavantage.co/query"

FEED_TIMEOUT_SECONDS = 10.0

# AlphaVantage free tier allows 5 requests per minute
INDEX_REQUEST_SPACING_SECONDS = 1.5

COIN_INFO = {
    "bitcoin": {"name": "Bitcoin", "symbol": "BTC"},
    "ethereum": {"name": "Ethereum", "symbol": "ETH"},
}

INDEX_NAMES = {
    "SP500": "S&P 500",
    "MSCI": "MSCI World",
    "NASDAQ": "NASDAQ",
}

FALLBACK_CRYPTO = {
    "bitcoin": CryptoPrice(symbol="BTC", name="Bitcoin", price=98500, change24h=0),
    "ethereum": CryptoPrice(symbol="ETH", name="Ethereum", price=3450, change24h=0),
}

FALLBACK_CURRENCIES = {
    "USD": CurrencyRate(pair="EUR/USD", rate=1.042, change24h=0.15),
    "GBP": CurrencyRate(pair="EUR/GBP", rate=0.862, change24h=-0.08),
}

FALLBACK_INDICES = {
    "SP500": MarketIndex(symbol="SP500", name="S&P 500", value=5890.25, change24h=2.3),
    "MSCI": MarketIndex(symbol="MSCI", name="MSCI World", value=3450.80, change24h=1.8),
    "NASDAQ": MarketIndex(symbol="NASDAQ", name="NASDAQ", value=19250.50, change24h=3.1),
}


async def _get_json(url: str, params: Optional[Dict[str, str]] = None):
    async with httpx.AsyncClient(timeout=FEED_TIMEOUT_SECONDS) as client:
        response = await client.get(url, params=params, headers={"Accept": "application/json"})
    response.raise_for_status()
    return response.json()


# ========================
# CoinGecko
# ========================

def fallback_crypto_prices(coins: Iterable[str] = CRYPTO_COINS) -> Dict[str, CryptoPrice]:
    logger.warning("[Market:CoinGecko] Using fallback prices")
    return {coin: FALLBACK_CRYPTO[coin] for coin in coins if coin in FALLBACK_CRYPTO}


async def get_crypto_prices(coins: Iterable[str] = CRYPTO_COINS) -> Dict[str, CryptoPrice]:
    """
    Current EUR price, 24h change, volume and market cap per coin.

    Returns:
        Dict keyed by CoinGecko coin id. Coins missing from the reply are
        omitted; any request failure returns the fallback prices.
    """
    coins = list(coins)
    params = {
        "ids": ",".join(coins),
        "vs_currencies": "eur",
        "include_24hr_change": "true",
        "include_24hr_vol": "true",
        "include_market_cap": "true",
    }

    start = time.monotonic()
    logger.info("[Market:CoinGecko] Fetching prices for: %s", ", ".join(coins))
    try:
        data = await _get_json(f"{COINGECKO_BASE}/simple/price", params)
    except (httpx.HTTPError, ValueError) as e:
        logger.error("[Market:CoinGecko] Error after %dms: %s", (time.monotonic() - start) * 1000, e)
        return fallback_crypto_prices(coins)

    logger.info("[Market:CoinGecko] Response received in %dms", (time.monotonic() - start) * 1000)

    result = {}
    for coin in coins:
        coin_data = data.get(coin) if isinstance(data, dict) else None
        if not coin_data or coin not in COIN_INFO:
            continue
        result[coin] = CryptoPrice(
            symbol=COIN_INFO[coin]["symbol"],
            name=COIN_INFO[coin]["name"],
            price=coin_data.get("eur") or 0,
            change24h=coin_data.get("eur_24h_change") or 0,
            volume24h=coin_data.get("eur_24h_vol"),
            market_cap=coin_data.get("eur_market_cap"),
        )
    return result


# ========================
# Frankfurter
# ========================

def fallback_currency_rates(currencies: Iterable[str] = CURRENCY_PAIRS) -> Dict[str, CurrencyRate]:
    logger.warning("[Market:Frankfurter] Using fallback rates")
    return {c: FALLBACK_CURRENCIES[c] for c in currencies if c in FALLBACK_CURRENCIES}


async def _currency_change_24h(currency: str, current_rate: float) -> float:
    """Percent change against the previous day's reference rate; 0 when unknown."""
    try:
        data = await _get_json(f"{FRANKFURTER_BASE}/{previous_day_iso()}", {"from": "EUR", "to": currency})
    except (httpx.HTTPError, ValueError):
        logger.warning("[Market:Frankfurter] Could not fetch 24h change for %s", currency)
        return 0.0

    previous = (data.get("rates") or {}).get(currency)
    if not previous:
        return 0.0
    return (current_rate - previous) / previous * 100


async def get_currency_rates(currencies: Iterable[str] = CURRENCY_PAIRS) -> Dict[str, CurrencyRate]:
    """EUR exchange rates with their 24h percent change, keyed by currency code."""
    currencies = list(currencies)

    start = time.monotonic()
    logger.info("[Market:Frankfurter] Fetching rates for: %s", ", ".join(currencies))
    try:
        data = await _get_json(f"{FRANKFURTER_BASE}/latest", {"from": "EUR", "to": ",".join(currencies)})
    except (httpx.HTTPError, ValueError) as e:
        logger.error("[Market:Frankfurter] Error after %dms: %s", (time.monotonic() - start) * 1000, e)
        return fallback_currency_rates(currencies)

    logger.info("[Market:Frankfurter] Response received in %dms", (time.monotonic() - start) * 1000)

    rates = data.get("rates") or {}
    result = {}
    for currency in currencies:
        rate = rates.get(currency)
        if not rate:
            continue
        result[currency] = CurrencyRate(
            pair=f"EUR/{currency}",
            rate=rate,
            change24h=await _currency_change_24h(currency, rate),
        )
    return result


# ========================
# AlphaVantage
# ========================

def fallback_index_price(index_key: str) -> MarketIndex:
    logger.warning("[Market:AlphaVantage] Using fallback price for %s", index_key)
    return FALLBACK_INDICES.get(index_key) or MarketIndex(
        symbol=index_key, name=INDEX_NAMES.get(index_key, index_key), value=0, change24h=0
    )


def _parse_percent(raw: Optional[str]) -> float:
    return float((raw or "0").replace("%", "") or 0)


async def get_index_price(index_key: str, api_key: Optional[str]) -> MarketIndex:
    """
    Quote for one tracked index, read through its ETF proxy (SPY, URTH, QQQ).

    Falls back to the documented constants when no API key is configured,
    the request fails or AlphaVantage answers without a quote (its
    rate-limit reply).
    """
    symbol = INDEX_SYMBOLS.get(index_key)
    if symbol is None:
        raise ValueError(f"Unknown index: {index_key}")
    if not api_key:
        logger.warning("[Market:AlphaVantage] API key not configured")
        return fallback_index_price(index_key)

    name = INDEX_NAMES[index_key]
    start = time.monotonic()
    logger.info("[Market:AlphaVantage] Fetching %s (%s)", name, symbol)
    try:
        data = await _get_json(
            ALPHA_VANTAGE_BASE, {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": api_key}
        )
        quote = data.get("Global Quote")
        if not quote:
            logger.warning("[Market:AlphaVantage] No data for %s", name)
            return fallback_index_price(index_key)
        value = float(quote.get("05. price") or 0)
        change = _parse_percent(quote.get("10. change percent"))
    except (httpx.HTTPError, ValueError) as e:
        logger.error("[Market:AlphaVantage] Error after %dms: %s", (time.monotonic() - start) * 1000, e)
        return fallback_index_price(index_key)

    logger.info("[Market:AlphaVantage] Response received in %dms", (time.monotonic() - start) * 1000)
    return MarketIndex(symbol=index_key, name=name, value=value, change24h=change)


class MarketFeeds:
    """
    The three upstream feeds behind one object.

    The aggregator depends on this interface only, so tests can replace any
    feed with a failing or canned one.
    """

    def __init__(self, alpha_vantage_api_key: Optional[str] = None, sleep=asyncio.sleep):
        self.alpha_vantage_api_key = alpha_vantage_api_key
        self._sleep = sleep

    async def crypto_prices(self) -> Dict[str, CryptoPrice]:
        return await get_crypto_prices(CRYPTO_COINS)

    async def currency_rates(self) -> Dict[str, CurrencyRate]:
        return await get_currency_rates(CURRENCY_PAIRS)

    async def index_price(self, index_key: str) -> MarketIndex:
        return await get_index_price(index_key, self.alpha_vantage_api_key)

    async def index_prices(self) -> Dict[str, Union[MarketIndex, Exception]]:
        """
        Quotes for every tracked index, requested one after another.

        Requests are spaced by INDEX_REQUEST_SPACING_SECONDS when an API key
        is configured. A failing index is returned as its exception so the
        caller can fall back for that index alone.
        """
        results: Dict[str, Union[MarketIndex, Exception]] = {}
        for position, index_key in enumerate(INDEX_SYMBOLS):
            if position and self.alpha_vantage_api_key:
                await self._sleep(INDEX_REQUEST_SPACING_SECONDS)
            try:
                results[index_key] = await self.index_price(index_key)
            except Exception as e:
                results[index_key] = e
        return results
