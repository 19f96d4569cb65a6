"""
Number formatting shared by the prompt builders.
"""

from home_account.core.market.types import Quote


def format_number(value: float) -> str:
    """Thousands separators, up to three decimals: 5890.25 -> "5,890.25"."""
    text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return text or "0"


def format_change(change: float) -> str:
    """Signed percentage with two decimals: 2.3 -> "+2.30%"."""
    sign = "+" if change >= 0 else ""
    return f"{sign}{change:.2f}%"


def format_money(value: float) -> str:
    return f"{value:.2f}"


def format_quote(quote: Quote, suffix: str = "") -> str:
    """``5,890.25 (+2.30%)``, with an optional unit after the value."""
    return f"{format_number(quote.value)}{suffix} ({format_change(quote.change24h)})"
