"""
Database layer for Home Account.

Provides the ORM models and connection management.
"""

from .connection import db_session, get_db_manager, get_db_session, init_db, check_connection
from .models import (
    Base,
    User,
    Account,
    AccountUser,
    Category,
    Subcategory,
    Transaction,
    MarketDataCache,
    InvestmentProfile,
    InvestmentSession,
    AIChatSession,
    AIChatMessage,
)

__all__ = [
    # Connection utilities
    "db_session",
    "get_db_manager",
    "get_db_session",
    "init_db",
    "check_connection",
    # Models
    "Base",
    "User",
    "Account",
    "AccountUser",
    "Category",
    "Subcategory",
    "Transaction",
    "MarketDataCache",
    "InvestmentProfile",
    "InvestmentSession",
    "AIChatSession",
    "AIChatMessage",
]
