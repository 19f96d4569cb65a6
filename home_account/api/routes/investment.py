"""
Investment advisor API endpoints.

Every route is scoped to ``/{account_id}`` and requires a role on that
account (403 otherwise). AI routes answer 503 when no provider is usable.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from home_account.api.auth import (
    get_current_user,
    get_investment_service,
    get_market_service,
    verify_csrf,
)
from home_account.api.schemas import (
    ChatMessageRequest,
    EmergencyFundMonthsRequest,
    LiquidityReserveRequest,
    RecommendationsRequest,
)
from home_account.core.constants import Difficulty
from home_account.core.investment import InvestmentService
from home_account.core.market.service import MarketDataService
from home_account.core.prompts import ProfileAnswers
from home_account.db.connection import get_db_session
from home_account.db.models import AIChatSession, User
from home_account.db.repositories import AccountRepository

logger = logging.getLogger("home_account.investment")

router = APIRouter(dependencies=[Depends(verify_csrf)])


def require_account_access(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
) -> User:
    """Resolve the current user and check their role on ``account_id``."""
    AccountRepository(db).require_access(account_id, current_user.id)
    return current_user


def _session_summary(chat: AIChatSession) -> dict:
    return {
        "sessionId": chat.id,
        "provider": chat.provider,
        "messageCount": chat.message_count,
        "createdAt": chat.created_at.isoformat() if chat.created_at else None,
        "lastMessageAt": chat.last_message_at.isoformat() if chat.last_message_at else None,
    }


# ========================
# Overview and profile settings
# ========================


@router.get("/{account_id}/overview")
async def get_overview(
    account_id: int,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    """Financial summary, stored profile, market snapshot and AI availability."""
    data = await service.overview(account_id, current_user.id)
    db.commit()
    return {"success": True, "data": data}


@router.patch("/{account_id}/emergency-fund-months")
def update_emergency_fund_months(
    account_id: int,
    body: EmergencyFundMonthsRequest,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    service.update_emergency_fund_months(account_id, body.months)
    db.commit()
    return {"success": True, "message": "Emergency fund months updated"}


@router.patch("/{account_id}/liquidity-reserve")
def update_liquidity_reserve(
    account_id: int,
    body: LiquidityReserveRequest,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    service.update_liquidity_reserve(account_id, body.amount)
    db.commit()
    return {"success": True, "message": "Liquidity reserve updated"}


# ========================
# AI analysis
# ========================


@router.post("/{account_id}/analyze-profile")
async def analyze_profile(
    account_id: int,
    answers: ProfileAnswers,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    """Assess the risk profile from questionnaire answers and store it."""
    result = await service.assess_profile(account_id, current_user.id, answers)
    db.commit()
    return {"success": True, "data": result.to_dict()}


@router.post("/{account_id}/recommendations")
async def get_recommendations(
    account_id: int,
    body: Optional[RecommendationsRequest] = Body(None),
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    """
    Product recommendations for a profile and monthly amount.

    An unparseable model reply is answered with 502.
    """
    body = body or RecommendationsRequest()
    result = await service.recommendations(
        account_id,
        current_user.id,
        profile=body.profile,
        monthly_amount=body.monthly_amount,
    )
    db.commit()
    return {"success": True, "data": result.to_dict()}


@router.get("/{account_id}/market-prices")
async def get_market_prices(
    account_id: int,
    current_user: User = Depends(require_account_access),
    market: MarketDataService = Depends(get_market_service),
    db: Session = Depends(get_db_session),
):
    data = await market.get_market_data_full()
    db.commit()
    return {"success": True, "data": data.to_dict()}


@router.get("/{account_id}/education")
async def explain_concept(
    account_id: int,
    q: str = Query(..., min_length=1, max_length=200, description="Concept or question"),
    level: Difficulty = Query(Difficulty.BEGINNER),
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    result = await service.explain_concept(account_id, current_user.id, q.strip(), level)
    db.commit()
    return {"success": True, "data": result.to_dict()}


# ========================
# Chat
# ========================


@router.get("/{account_id}/chat/sessions")
def list_chat_sessions(
    account_id: int,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
):
    return {"success": True, "data": [_session_summary(s) for s in service.list_chat_sessions(account_id)]}


@router.post("/{account_id}/chat/session")
def create_chat_session(
    account_id: int,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    chat = service.create_chat_session(account_id, current_user.id)
    db.commit()
    return {
        "success": True,
        "data": {
            "sessionId": chat.id,
            "provider": chat.provider,
            "createdAt": chat.created_at.isoformat() if chat.created_at else None,
        },
    }


@router.post("/{account_id}/chat/{session_id}/message")
async def send_chat_message(
    account_id: int,
    session_id: int,
    body: ChatMessageRequest,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    """
    Answer a message within a chat session.

    ``sessionId`` in the response differs from the path when the session was
    idle for too long and a new one was started.
    """
    chat, result = await service.chat(account_id, current_user.id, body.message, session_id=session_id)
    db.commit()
    return {
        "success": True,
        "data": {
            "sessionId": chat.id,
            "reply": result.answer,
            "relatedConcepts": result.related_concepts,
            "needsDisclaimer": result.needs_disclaimer,
            "suggestedFollowUp": result.suggested_follow_up,
        },
    }


@router.get("/{account_id}/chat/{session_id}/history")
def get_chat_history(
    account_id: int,
    session_id: int,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
):
    chat, messages = service.chat_history(account_id, session_id)
    return {
        "success": True,
        "data": {
            **_session_summary(chat),
            "messages": [
                {
                    "role": m.role,
                    "content": m.content,
                    "createdAt": m.created_at.isoformat() if m.created_at else None,
                }
                for m in messages
            ],
        },
    }


@router.delete("/{account_id}/chat/{session_id}")
def delete_chat_session(
    account_id: int,
    session_id: int,
    current_user: User = Depends(require_account_access),
    service: InvestmentService = Depends(get_investment_service),
    db: Session = Depends(get_db_session),
):
    service.delete_chat_session(account_id, session_id)
    db.commit()
    logger.info("User %s deleted chat session %s", current_user.id, session_id)
    return {"success": True, "message": "Chat session deleted"}
