"""
Inputs and results of the investment prompts.

Results are pydantic models validated from the JSON the model returns; their
wire names are the camelCase keys the prompts ask for.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from home_account.core.constants import ChatRole, Difficulty, ExperienceLevel, SavingsTrend
from home_account.core.market.types import MarketDataContext
from home_account.core.types import CamelModel


# ========================
# Inputs
# ========================

class JobStability(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EmergencyFundAnswer(str, Enum):
    YES = "yes"
    PARTIAL = "partial"
    NO = "no"


class HorizonAnswer(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class DropReaction(str, Enum):
    SELL = "sell"
    HOLD = "hold"
    BUY_MORE = "buy_more"


class ProfileAnswers(CamelModel):
    """Risk questionnaire answers."""

    age: int = Field(..., gt=0, lt=120)
    monthly_income: float = Field(..., gt=0)
    job_stability: JobStability
    has_emergency_fund: EmergencyFundAnswer
    horizon_years: HorizonAnswer
    reaction_to_drop: DropReaction
    experience_level: ExperienceLevel


@dataclass
class InvestmentContext:
    """Financial picture of one account, computed from its transactions."""

    account_id: int
    user_id: int
    avg_monthly_income: float = 0.0
    avg_monthly_expenses: float = 0.0
    savings_capacity: float = 0.0
    savings_rate: float = 0.0
    emergency_fund_current: float = 0.0
    emergency_fund_goal: float = 0.0
    historical_months: int = 0
    trend: str = SavingsTrend.STABLE.value
    deficit_months: int = 0
    investment_percentage: float = 20
    horizon_years: int = 5
    experience_level: str = ExperienceLevel.NONE.value
    transaction_categories: Dict[str, int] = field(default_factory=dict)
    recent_transactions: List[Dict[str, object]] = field(default_factory=list)


@dataclass
class ChatContext:
    """What the chat prompt knows about the user and the markets."""

    financial: InvestmentContext
    market: MarketDataContext
    risk_profile: Optional[str] = None


class ChatMessage(CamelModel):
    role: ChatRole
    content: str


# ========================
# Results
# ========================

class HistoricalInsights(CamelModel):
    months_analyzed: int = 0
    trend: str = ""
    best_month: str = ""
    worst_month: str = ""
    savings_consistency: str = ""


class ProfileAssessmentResult(CamelModel):
    recommended_profile: str
    confidence: float = 0
    reasoning: str = ""
    investment_percentage: float = 0
    monthly_investable: float = 0
    liquidity_reserve: float = 0
    historical_insights: HistoricalInsights = Field(default_factory=HistoricalInsights)
    warnings: List[str] = Field(default_factory=list)
    market_context: str = ""

    # Set on the placeholder returned when the reply could not be parsed
    is_fallback: bool = Field(default=False, exclude=True)


class RecommendationType(str, Enum):
    ETF = "ETF"
    BOND_FUND = "BOND_FUND"
    CRYPTO = "CRYPTO"
    STOCK = "STOCK"
    SAVINGS = "SAVINGS"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendationItem(CamelModel):
    type: RecommendationType
    symbol: str
    name: str
    percentage: float
    amount: float
    current_price: Optional[float] = None
    units: Optional[float] = None
    reason: str = ""
    risk: RiskLevel


class AssetAllocation(CamelModel):
    stocks: float = 0
    bonds: float = 0
    crypto: float = 0
    cash: float = 0


class RecommendationResult(CamelModel):
    recommendations: List[RecommendationItem]
    total_monthly: float
    asset_allocation: AssetAllocation = Field(default_factory=AssetAllocation)
    market_context: str = ""
    disclaimer: str


class ChatResult(CamelModel):
    answer: str
    related_concepts: List[str] = Field(default_factory=list)
    used_market_data: bool = False
    used_financial_data: bool = False
    needs_disclaimer: bool = False
    suggested_follow_up: Optional[str] = None


class EducationResult(CamelModel):
    concept: str
    summary: str = ""
    explanation: str
    example: str = ""
    risks: List[str] = Field(default_factory=list)
    related_concepts: List[str] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.BEGINNER
    time_to_understand: str = ""


class ParsedTransaction(CamelModel):
    """One transaction candidate extracted from free text."""

    date: Optional[str] = None
    description: str
    amount: float
    category: Optional[str] = None
    subcategory: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, value):
        """Accept "50,00" and currency symbols."""
        if isinstance(value, str):
            cleaned = value.replace("€", "").replace("$", "").strip()
            if "," in cleaned and "." not in cleaned:
                cleaned = cleaned.replace(",", ".")
            return cleaned
        return value

    @field_validator("category", "subcategory", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value
