"""
Investment advisor service.

Combines the account's financial context, the market snapshot, the prompt
builders and the AI client. Every AI operation is recorded in
``investment_sessions``; chat turns are persisted per chat session.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from home_account.core.ai.client import AIClient
from home_account.core.constants import (
    CHAT_CONTEXT_MESSAGES,
    CHAT_SESSION_IDLE_MINUTES,
    DEFAULT_EMERGENCY_FUND_MONTHS,
    DEFAULT_HORIZON_YEARS,
    DEFAULT_INVESTMENT_PERCENTAGE,
    RECENT_TRANSACTIONS_LIMIT,
    ChatRole,
    Difficulty,
    ExperienceLevel,
    RiskProfile,
    SavingsTrend,
    SessionType,
)
from home_account.core.market.service import MarketDataService
from home_account.core.prompts import (
    ChatContext,
    ChatResult,
    EducationResult,
    InvestmentContext,
    ProfileAnswers,
    ProfileAssessmentResult,
    RecommendationResult,
    build_chat_prompt,
    build_education_prompt,
    build_profile_assessment_prompt,
    build_recommendation_prompt,
    parse_chat_response,
    parse_education_response,
    parse_profile_assessment_response,
    parse_recommendation_response,
    with_system_message,
)
from home_account.db.models import AIChatSession, InvestmentProfile, Transaction
from home_account.db.repositories.investment_repository import InvestmentRepository
from home_account.db.repositories.transaction_repository import UNCATEGORIZED, TransactionRepository
from home_account.utils.date_utils import utc_now
from home_account.utils.error_utils import AIServiceUnavailable, NotFoundError, ValidationError

logger = logging.getLogger("home_account.investment")

CHAT_SESSION_NOT_FOUND = "Chat session not found"


# ========================
# Financial context
# ========================

def _category_name(transaction: Transaction) -> str:
    subcategory = transaction.subcategory
    if subcategory is not None and subcategory.category is not None:
        return subcategory.category.name
    return UNCATEGORIZED


def compute_financial_context(
    transactions: Iterable[Transaction],
    profile: Optional[InvestmentProfile],
    account_id: int,
    user_id: int,
) -> InvestmentContext:
    """
    Summarize an account's transaction history.

    Averages are per month that actually has income (or expenses). The trend
    compares the net of the latest month with the net of the earliest one.
    Emergency-fund goal is savings capacity times the profile's
    emergency-fund months; the current amount is the declared liquidity
    reserve.

    Args:
        transactions: Every transaction of the account
        profile: The account's investment profile, if any
        account_id: Account the context belongs to
        user_id: User requesting it

    Returns:
        InvestmentContext
    """
    emergency_months = (profile.emergency_fund_months if profile else None) or DEFAULT_EMERGENCY_FUND_MONTHS
    context = InvestmentContext(
        account_id=account_id,
        user_id=user_id,
        emergency_fund_current=float(profile.liquidity_reserve or 0) if profile else 0.0,
        investment_percentage=(profile.investment_percentage if profile else None) or DEFAULT_INVESTMENT_PERCENTAGE,
        horizon_years=(profile.horizon_years if profile else None) or DEFAULT_HORIZON_YEARS,
        experience_level=(profile.experience_level if profile else None) or ExperienceLevel.NONE.value,
    )

    rows = [
        {
            "date": pd.Timestamp(t.date),
            "amount": float(t.amount),
            "description": t.description,
            "category": _category_name(t),
        }
        for t in transactions
    ]
    if not rows:
        return context

    df = pd.DataFrame(rows).sort_values("date", ascending=False, kind="stable")
    df["month"] = df["date"].dt.to_period("M")

    income = df[df["amount"] > 0]
    expenses = df[df["amount"] < 0]

    avg_income = income["amount"].sum() / max(1, income["month"].nunique()) if not income.empty else 0.0
    avg_expenses = abs(expenses["amount"].sum()) / max(1, expenses["month"].nunique()) if not expenses.empty else 0.0
    savings_capacity = max(0.0, avg_income - avg_expenses)

    monthly_net = df.groupby("month")["amount"].sum().sort_index()
    trend = SavingsTrend.STABLE
    if len(monthly_net) >= 2:
        first, last = monthly_net.iloc[0], monthly_net.iloc[-1]
        if last > first:
            trend = SavingsTrend.IMPROVING
        elif last < first:
            trend = SavingsTrend.DECLINING

    categories: Dict[str, int] = {}
    if not expenses.empty:
        totals = expenses["amount"].abs().groupby(expenses["category"]).sum()
        grand_total = totals.sum()
        if grand_total > 0:
            categories = {name: int(round(total / grand_total * 100)) for name, total in totals.items()}

    context.avg_monthly_income = float(avg_income)
    context.avg_monthly_expenses = float(avg_expenses)
    context.savings_capacity = float(savings_capacity)
    context.savings_rate = float(savings_capacity / avg_income * 100) if avg_income > 0 else 0.0
    context.emergency_fund_goal = float(savings_capacity * emergency_months)
    context.historical_months = int(len(monthly_net))
    context.trend = trend.value
    context.deficit_months = int((monthly_net < 0).sum())
    context.transaction_categories = categories
    context.recent_transactions = [
        {
            "description": row.description,
            "amount": row.amount,
            "date": row.date.date().isoformat(),
            "category": row.category,
        }
        for row in df.head(RECENT_TRANSACTIONS_LIMIT).itertuples()
    ]
    return context


def default_profile_for(investment_percentage: float) -> RiskProfile:
    """≤10% conservative, ≥30% dynamic, otherwise balanced."""
    if investment_percentage <= 10:
        return RiskProfile.CONSERVATIVE
    if investment_percentage >= 30:
        return RiskProfile.DYNAMIC
    return RiskProfile.BALANCED


def financial_summary(context: InvestmentContext) -> Dict[str, Any]:
    """Overview figures rounded to cents."""
    return {
        "avgMonthlyIncome": round(context.avg_monthly_income, 2),
        "avgMonthlyExpenses": round(context.avg_monthly_expenses, 2),
        "savingsCapacity": round(context.savings_capacity, 2),
        "savingsRate": round(context.savings_rate, 2),
        "emergencyFundStatus": round(context.emergency_fund_current, 2),
        "emergencyFundGoal": round(context.emergency_fund_goal, 2),
        "historicalMonths": context.historical_months,
        "trend": context.trend,
        "deficitMonths": context.deficit_months,
    }


def profile_to_dict(profile: Optional[InvestmentProfile]) -> Optional[Dict[str, Any]]:
    if profile is None:
        return None
    return {
        "riskProfile": profile.risk_profile,
        "horizonYears": profile.horizon_years,
        "hasEmergencyFund": profile.has_emergency_fund,
        "investmentPercentage": profile.investment_percentage,
        "experienceLevel": profile.experience_level,
        "monthlyInvestable": float(profile.monthly_investable) if profile.monthly_investable is not None else None,
        "liquidityReserve": float(profile.liquidity_reserve or 0),
        "emergencyFundMonths": profile.emergency_fund_months,
    }


# ========================
# Service
# ========================

class InvestmentService:
    """
    Investment advisor operations for one request.

    Callers are expected to have checked the caller's access to the account;
    ``financial_context`` re-checks it through the transaction repository.
    """

    def __init__(
        self,
        db: Session,
        client: AIClient,
        market: MarketDataService,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.client = client
        self.market = market
        self.clock = clock
        self.repo = InvestmentRepository(db)
        self.transactions = TransactionRepository(db)

    def is_available(self) -> bool:
        return self.client.is_available()

    @property
    def provider_name(self) -> str:
        return self.client.provider_name

    def _require_ai(self) -> None:
        if not self.client.is_available():
            raise AIServiceUnavailable()

    def _log_session(self, account_id: int, user_id: int, session_type: SessionType, started: float) -> None:
        """Record one AI call; failures are logged and do not affect the caller."""
        elapsed_ms = int((time.monotonic() - started) * 1000)
        try:
            # Savepoint: a failed insert must not discard the operation's own writes
            with self.db.begin_nested():
                self.repo.log_session(
                    account_id=account_id,
                    user_id=user_id,
                    type=session_type.value,
                    provider_used=self.provider_name,
                    response_time_ms=elapsed_ms,
                )
        except SQLAlchemyError as e:
            logger.error("[InvestmentAI] Error logging session: %s", e)

    # ---- context and profile ----

    def financial_context(self, account_id: int, user_id: int) -> InvestmentContext:
        self.transactions.require_access(account_id, user_id)
        transactions = self.transactions.get_all_for_account(account_id)
        profile = self.repo.get_profile(account_id)
        return compute_financial_context(transactions, profile, account_id, user_id)

    async def overview(self, account_id: int, user_id: int) -> Dict[str, Any]:
        market = await self.market.get_market_data()
        context = self.financial_context(account_id, user_id)
        return {
            "accountId": account_id,
            "financialSummary": financial_summary(context),
            "profile": profile_to_dict(self.repo.get_profile(account_id)),
            "marketPrices": market.to_dict(),
            "aiEnabled": self.client.is_available(),
            "activeProvider": self.provider_name,
        }

    def update_emergency_fund_months(self, account_id: int, months: int) -> InvestmentProfile:
        if not 1 <= months <= 60:
            raise ValidationError("months must be between 1 and 60")
        return self.repo.upsert_profile(account_id, emergency_fund_months=months)

    def update_liquidity_reserve(self, account_id: int, amount: float) -> InvestmentProfile:
        if amount < 0:
            raise ValidationError("amount must be zero or positive")
        return self.repo.upsert_profile(account_id, liquidity_reserve=amount)

    # ---- AI operations ----

    async def assess_profile(self, account_id: int, user_id: int, answers: ProfileAnswers) -> ProfileAssessmentResult:
        """
        Ask the model for a risk profile and store it.

        The recommended label is normalized to conservative, balanced or
        dynamic before saving. A placeholder result (unparseable reply) is
        returned without touching the stored profile.
        """
        self._require_ai()
        started = time.monotonic()

        market = await self.market.get_market_data()
        context = self.financial_context(account_id, user_id)
        prompt = build_profile_assessment_prompt(answers, context, market)

        result = parse_profile_assessment_response(await self.client.send_prompt(prompt))
        if result.is_fallback:
            self._log_session(account_id, user_id, SessionType.PROFILE_ASSESSMENT, started)
            return result

        profile = RiskProfile.normalize(result.recommended_profile)
        result.recommended_profile = profile.value
        self.repo.upsert_profile(
            account_id,
            risk_profile=profile.value,
            investment_percentage=int(round(result.investment_percentage)) or None,
            monthly_investable=result.monthly_investable or None,
            has_emergency_fund=answers.has_emergency_fund != "no",
            experience_level=answers.experience_level,
        )
        self._log_session(account_id, user_id, SessionType.PROFILE_ASSESSMENT, started)
        return result

    async def recommendations(
        self,
        account_id: int,
        user_id: int,
        profile: Optional[RiskProfile] = None,
        monthly_amount: Optional[float] = None,
    ) -> RecommendationResult:
        """
        Product recommendations for a profile and monthly amount.

        Without an explicit profile one is derived from the investment
        percentage; without an amount, savings capacity times that
        percentage is used.

        Raises:
            RecommendationParseError: If the reply cannot be parsed
        """
        self._require_ai()
        started = time.monotonic()

        market = await self.market.get_market_data()
        context = self.financial_context(account_id, user_id)

        chosen = RiskProfile(profile) if profile else default_profile_for(context.investment_percentage)
        amount = monthly_amount or context.savings_capacity * context.investment_percentage / 100
        prompt = build_recommendation_prompt(chosen, amount, context, market)

        result = parse_recommendation_response(await self.client.send_prompt(prompt))
        self._log_session(account_id, user_id, SessionType.RECOMMENDATION, started)
        return result

    async def explain_concept(
        self,
        account_id: int,
        user_id: int,
        concept: str,
        level: Difficulty = Difficulty.BEGINNER,
    ) -> EducationResult:
        self._require_ai()
        started = time.monotonic()

        market = await self.market.get_market_data()
        prompt = build_education_prompt(concept, level, market)

        result = parse_education_response(await self.client.send_prompt(prompt))
        self._log_session(account_id, user_id, SessionType.EDUCATION, started)
        return result

    # ---- chat ----

    def _is_idle(self, chat: AIChatSession) -> bool:
        if chat.last_message_at is None:
            return True
        return self.clock() - chat.last_message_at > timedelta(minutes=CHAT_SESSION_IDLE_MINUTES)

    def get_chat_session(self, account_id: int, session_id: int) -> AIChatSession:
        chat = self.repo.get_chat_session(session_id, account_id)
        if chat is None:
            raise NotFoundError(CHAT_SESSION_NOT_FOUND)
        return chat

    def resolve_chat_session(self, account_id: int, user_id: int, session_id: Optional[int] = None) -> AIChatSession:
        """
        Session a new message belongs to.

        The requested session (or, without one, the user's latest session)
        is reused unless its last message is more than 30 minutes old, in
        which case a new session is started.
        """
        if session_id is not None:
            chat = self.get_chat_session(account_id, session_id)
        else:
            chat = self.repo.get_latest_chat_session(account_id, user_id)

        if chat is not None and not self._is_idle(chat):
            return chat

        logger.info("[InvestmentAI:Chat] Starting new chat session for account %s", account_id)
        return self.repo.create_chat_session(account_id, user_id, self.provider_name, now=self.clock())

    def create_chat_session(self, account_id: int, user_id: int) -> AIChatSession:
        return self.repo.create_chat_session(account_id, user_id, self.provider_name, now=self.clock())

    def list_chat_sessions(self, account_id: int) -> List[AIChatSession]:
        return self.repo.get_chat_sessions(account_id)

    def chat_history(self, account_id: int, session_id: int) -> Tuple[AIChatSession, list]:
        chat = self.get_chat_session(account_id, session_id)
        return chat, self.repo.get_chat_messages(chat.id)

    def delete_chat_session(self, account_id: int, session_id: int) -> bool:
        return self.repo.delete_chat_session(self.get_chat_session(account_id, session_id))

    async def chat(
        self,
        account_id: int,
        user_id: int,
        message: str,
        session_id: Optional[int] = None,
    ) -> Tuple[AIChatSession, ChatResult]:
        """
        Answer a chat message with the conversation's recent history.

        Both turns are stored and the session's message count and last
        message time are updated.
        """
        self._require_ai()
        if session_id is not None:
            self.get_chat_session(account_id, session_id)
        started = time.monotonic()

        market = await self.market.get_market_data()
        context = self.financial_context(account_id, user_id)
        profile = self.repo.get_profile(account_id)
        chat_context = ChatContext(
            financial=context,
            market=market,
            risk_profile=profile.risk_profile if profile else None,
        )

        chat = self.resolve_chat_session(account_id, user_id, session_id)
        history = self.repo.get_context_messages(chat.id, CHAT_CONTEXT_MESSAGES)
        prompt = build_chat_prompt(message, chat_context, with_system_message(history, chat_context))

        result = parse_chat_response(await self.client.send_prompt(prompt))

        self.repo.add_chat_message(chat.id, ChatRole.USER.value, message)
        self.repo.add_chat_message(chat.id, ChatRole.ASSISTANT.value, result.answer)
        self.repo.touch_chat_session(chat, (chat.message_count or 0) + 2, now=self.clock())
        self._log_session(account_id, user_id, SessionType.CHAT, started)
        return chat, result
