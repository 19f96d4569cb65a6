"""
Core constants and enumerations for Home Account.

This module defines the enumerations shared by the investment module, the
prompt builders and the market aggregator.
"""

from enum import Enum


class RiskProfile(str, Enum):
    """Investor risk profile stored on the investment profile."""
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    DYNAMIC = "dynamic"

    @classmethod
    def normalize(cls, label) -> "RiskProfile":
        """
        Map a model-produced label (Spanish or English) to a profile.

        Unknown labels resolve to BALANCED.
        """
        key = str(label or "").strip().lower()
        return _PROFILE_LABELS.get(key, cls.BALANCED)


_PROFILE_LABELS = {
    "conservador": RiskProfile.CONSERVATIVE,
    "conservative": RiskProfile.CONSERVATIVE,
    "equilibrado": RiskProfile.BALANCED,
    "balanced": RiskProfile.BALANCED,
    "dinámico": RiskProfile.DYNAMIC,
    "dinamico": RiskProfile.DYNAMIC,
    "dynamic": RiskProfile.DYNAMIC,
}


class ExperienceLevel(str, Enum):
    NONE = "none"
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Difficulty(str, Enum):
    """Explanation depth for the education prompt."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SavingsTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class SessionType(str, Enum):
    """Kinds of AI operations recorded in investment_sessions."""
    PROFILE_ASSESSMENT = "profile_assessment"
    RECOMMENDATION = "recommendation"
    SIMULATION = "simulation"
    EDUCATION = "education"
    CHAT = "chat"


class MarketTrend(str, Enum):
    ALCISTA = "alcista"
    BAJISTA = "bajista"
    NEUTRAL = "neutral"


# Asset allocation per risk profile, in percent of the monthly amount
ALLOCATION_RULES = {
    RiskProfile.CONSERVATIVE: {"stocks": 30, "bonds": 50, "crypto": 5, "cash": 15},
    RiskProfile.BALANCED: {"stocks": 55, "bonds": 30, "crypto": 5, "cash": 10},
    RiskProfile.DYNAMIC: {"stocks": 70, "bonds": 15, "crypto": 10, "cash": 5},
}

# Investment profile defaults
DEFAULT_INVESTMENT_PERCENTAGE = 20
DEFAULT_HORIZON_YEARS = 5
DEFAULT_EMERGENCY_FUND_MONTHS = 6

# Chat
CHAT_SESSION_IDLE_MINUTES = 30
CHAT_CONTEXT_MESSAGES = 20
CHAT_PROMPT_HISTORY_TURNS = 15
RECENT_TRANSACTIONS_LIMIT = 50
