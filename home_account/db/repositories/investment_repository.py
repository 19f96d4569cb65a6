"""
Investment repository: risk profiles, AI usage log and chat history.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from home_account.db.models import AIChatMessage, AIChatSession, InvestmentProfile, InvestmentSession
from home_account.db.repositories.base import BaseRepository
from home_account.utils.date_utils import utc_now

PROFILE_FIELDS = (
    "risk_profile",
    "investment_percentage",
    "horizon_years",
    "has_emergency_fund",
    "experience_level",
    "monthly_investable",
    "liquidity_reserve",
    "emergency_fund_months",
)


class InvestmentRepository(BaseRepository[InvestmentProfile]):
    """Repository for the investment module tables."""

    def __init__(self, session: Session):
        """Initialize investment repository."""
        super().__init__(InvestmentProfile, session)

    # ========================
    # Investment profiles
    # ========================

    def get_profile(self, account_id: int) -> Optional[InvestmentProfile]:
        return self.session.query(InvestmentProfile).filter(InvestmentProfile.account_id == account_id).first()

    def upsert_profile(self, account_id: int, **fields) -> InvestmentProfile:
        """
        Create the account's profile or update the given fields.

        Unknown keys and None values are ignored; unspecified columns keep
        their defaults (balanced, 20%, 5 years, 6 emergency-fund months).
        """
        values = {k: v for k, v in fields.items() if k in PROFILE_FIELDS and v is not None}

        profile = self.get_profile(account_id)
        if profile is None:
            profile = InvestmentProfile(account_id=account_id, **values)
            self.session.add(profile)
        else:
            for key, value in values.items():
                setattr(profile, key, value)
        self.session.flush()
        return profile

    # ========================
    # Usage log
    # ========================

    def log_session(
        self,
        account_id: int,
        user_id: int,
        type: str,
        provider_used: str,
        response_time_ms: Optional[int] = None,
        prompt_tokens: Optional[int] = None,
        response_tokens: Optional[int] = None,
    ) -> InvestmentSession:
        entry = InvestmentSession(
            account_id=account_id,
            user_id=user_id,
            type=type,
            provider_used=provider_used,
            response_time_ms=response_time_ms,
            prompt_tokens=prompt_tokens,
            response_tokens=response_tokens,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def create_chat_session(
        self, account_id: int, user_id: int, provider: str, now: Optional[datetime] = None
    ) -> AIChatSession:
        now = now or utc_now()
        chat = AIChatSession(
            account_id=account_id, user_id=user_id, provider=provider, created_at=now, last_message_at=now
        )
        self.session.add(chat)
        self.session.flush()
        return chat

    def get_chat_session(self, session_id: int, account_id: int) -> Optional[AIChatSession]:
        """Chat session by id, scoped to the account it must belong to."""
        return (
            self.session.query(AIChatSession)
            .filter(AIChatSession.id == session_id, AIChatSession.account_id == account_id)
            .first()
        )

    def get_chat_sessions(self, account_id: int, limit: int = 50) -> List[AIChatSession]:
        return (
            self.session.query(AIChatSession)
            .filter(AIChatSession.account_id == account_id)
            .order_by(AIChatSession.last_message_at.desc(), AIChatSession.id.desc())
            .limit(limit)
            .all()
        )

    def get_latest_chat_session(self, account_id: int, user_id: int) -> Optional[AIChatSession]:
        return (
            self.session.query(AIChatSession)
            .filter(AIChatSession.account_id == account_id, AIChatSession.user_id == user_id)
            .order_by(AIChatSession.last_message_at.desc(), AIChatSession.id.desc())
            .first()
        )

    def touch_chat_session(
        self, chat: AIChatSession, message_count: int, now: Optional[datetime] = None
    ) -> AIChatSession:
        chat.message_count = message_count
        chat.last_message_at = now or utc_now()
        self.session.flush()
        return chat

    def delete_chat_session(self, chat: AIChatSession) -> bool:
        return self.delete_instance(chat)

    # ========================
    # Chat messages
    # ========================

    def add_chat_message(self, session_id: int, role: str, content: str, tokens: Optional[int] = None) -> AIChatMessage:
        message = AIChatMessage(session_id=session_id, role=role, content=content, tokens=tokens)
        self.session.add(message)
        self.session.flush()
        return message

    def get_chat_messages(self, session_id: int, limit: int = 50) -> List[AIChatMessage]:
        return (
            self.session.query(AIChatMessage)
            .filter(AIChatMessage.session_id == session_id)
            .order_by(AIChatMessage.id)
            .limit(limit)
            .all()
        )

    def get_context_messages(self, session_id: int, limit: int = 20) -> List[Dict[str, str]]:
        """The most recent `limit` messages, oldest first, as {role, content} dicts."""
        recent = (
            self.session.query(AIChatMessage)
            .filter(AIChatMessage.session_id == session_id)
            .order_by(AIChatMessage.id.desc())
            .limit(limit)
            .all()
        )
        return [{"role": m.role, "content": m.content} for m in reversed(recent)]
