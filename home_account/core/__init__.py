"""
Core modules for Home Account.

This package contains the AI client, the prompt builders, the market data
aggregator and the investment service.
"""

from home_account.core.constants import (
    ALLOCATION_RULES,
    ChatRole,
    Difficulty,
    ExperienceLevel,
    MarketTrend,
    RiskProfile,
    SavingsTrend,
    SessionType,
)

__all__ = [
    "ALLOCATION_RULES",
    "ChatRole",
    "Difficulty",
    "ExperienceLevel",
    "MarketTrend",
    "RiskProfile",
    "SavingsTrend",
    "SessionType",
]
