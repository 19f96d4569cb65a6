"""
Market data shapes.

``MarketDataContext`` is the compact snapshot fed to the prompt builders;
``MarketData`` is the per-instrument breakdown served by the market prices
endpoint.
"""

from typing import List, Optional

from pydantic import Field

from home_account.core.constants import MarketTrend
from home_account.core.types import CamelModel

CRYPTO_COINS = ("bitcoin", "ethereum")
CURRENCY_PAIRS = ("USD", "GBP")
INDEX_SYMBOLS = {
    "SP500": "SPY",
    "MSCI": "URTH",
    "NASDAQ": "QQQ",
}


class Quote(CamelModel):
    value: float
    change24h: float = Field(alias="change24h")


class MarketDataContext(CamelModel):
    """Market snapshot. Every field is always populated."""

    sp500: Quote
    msci_world: Quote
    nasdaq: Quote
    btc: Quote
    eth: Quote
    eur_usd: float
    eur_gbp: float
    last_updated: Optional[str] = None

    def tracked_changes(self) -> List[float]:
        return [
            self.sp500.change24h,
            self.msci_world.change24h,
            self.nasdaq.change24h,
            self.btc.change24h,
            self.eth.change24h,
        ]


class CryptoPrice(CamelModel):
    symbol: str
    name: str
    price: float
    change24h: float = Field(alias="change24h")
    volume24h: Optional[float] = Field(default=None, alias="volume24h")
    market_cap: Optional[float] = None
    source: str = "coingecko"


class CurrencyRate(CamelModel):
    pair: str
    rate: float
    change24h: Optional[float] = Field(default=None, alias="change24h")
    source: str = "frankfurter"


class MarketIndex(CamelModel):
    symbol: str
    name: str
    value: float
    change24h: float = Field(alias="change24h")
    source: str = "alphavantage"


class MarketData(CamelModel):
    cryptocurrencies: List[CryptoPrice]
    currencies: List[CurrencyRate]
    indices: List[MarketIndex]
    cached_at: str
    cache_expires_in: int
    market_trend: MarketTrend = MarketTrend.NEUTRAL


class QuickSummary(CamelModel):
    trending: str
    top_mover: dict
    market_sentiment: str
