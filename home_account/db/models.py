"""
SQLAlchemy ORM models for the Home Account schema.

Tenancy is modelled through ``account_users``: every category, subcategory,
transaction and investment record hangs off an account, and a user can touch
an account's data only through a role row (owner or member).
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

from home_account.utils.date_utils import utc_now

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ======================
# Users & Accounts
# ======================


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    memberships = relationship("AccountUser", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.name}', email='{self.email}')>"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    members = relationship("AccountUser", back_populates="account", cascade="all, delete-orphan")
    categories = relationship("Category", back_populates="account", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="account", cascade="all, delete-orphan")
    investment_profile = relationship(
        "InvestmentProfile", back_populates="account", uselist=False, cascade="all, delete-orphan"
    )
    chat_sessions = relationship("AIChatSession", back_populates="account", cascade="all, delete-orphan")
    investment_sessions = relationship("InvestmentSession", back_populates="account", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Account(id={self.id}, name='{self.name}')>"


class AccountUser(Base):
    """Role of a user on an account."""

    __tablename__ = "account_users"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False, default="member")
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    account = relationship("Account", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("account_id", "user_id", name="uq_account_user"),
        CheckConstraint("role IN ('owner', 'member')", name="ck_account_user_role"),
        Index("idx_account_users_user_id", "user_id"),
    )

    def __repr__(self):
        return f"<AccountUser(account_id={self.account_id}, user_id={self.user_id}, role='{self.role}')>"


# ======================
# Categorization & Transactions
# ======================


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    color = Column(String(7), nullable=False, default="#6B7280")
    icon = Column(String(50))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    account = relationship("Account", back_populates="categories")
    subcategories = relationship("Subcategory", back_populates="category", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("account_id", "name", name="uq_category_account_name"),
        Index("idx_categories_account_id", "account_id"),
    )

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}', account_id={self.account_id})>"


class Subcategory(Base):
    __tablename__ = "subcategories"

    id = Column(Integer, primary_key=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    category = relationship("Category", back_populates="subcategories")
    transactions = relationship("Transaction", back_populates="subcategory")

    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_subcategory_category_name"),
        Index("idx_subcategories_category_id", "category_id"),
    )

    def __repr__(self):
        return f"<Subcategory(id={self.id}, name='{self.name}', category_id={self.category_id})>"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    subcategory_id = Column(Integer, ForeignKey("subcategories.id", ondelete="SET NULL"))
    date = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    bank_category = Column(String(100))
    bank_subcategory = Column(String(100))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    account = relationship("Account", back_populates="transactions")
    subcategory = relationship("Subcategory", back_populates="transactions")

    __table_args__ = (
        Index("idx_transactions_account_date", "account_id", "date"),
        Index("idx_transactions_subcategory_id", "subcategory_id"),
    )

    def __repr__(self):
        return f"<Transaction(id={self.id}, date={self.date}, amount={self.amount})>"


# ======================
# Market Data
# ======================


class MarketDataCache(Base):
    """One logical row per (symbol, source); writes delete the old row first."""

    __tablename__ = "market_data_cache"

    id = Column(Integer, primary_key=True)
    symbol = Column(String(50), nullable=False)
    source = Column(String(50), nullable=False)
    data = Column(JSONType, nullable=False)
    cached_at = Column(DateTime, nullable=False, default=utc_now)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_market_cache_symbol_source", "symbol", "source"),
        Index("idx_market_cache_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<MarketDataCache(symbol='{self.symbol}', source='{self.source}', expires_at={self.expires_at})>"


# ======================
# Investment Module
# ======================


class InvestmentProfile(Base):
    __tablename__ = "investment_profiles"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True)
    risk_profile = Column(String(20), nullable=False, default="balanced")
    investment_percentage = Column(Integer, nullable=False, default=20)
    horizon_years = Column(Integer, nullable=False, default=5)
    has_emergency_fund = Column(Boolean, nullable=False, default=False)
    experience_level = Column(String(20), nullable=False, default="none")
    monthly_investable = Column(Numeric(12, 2))
    liquidity_reserve = Column(Numeric(12, 2), nullable=False, default=0)
    emergency_fund_months = Column(Integer, nullable=False, default=6)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    account = relationship("Account", back_populates="investment_profile")

    __table_args__ = (
        CheckConstraint(
            "risk_profile IN ('conservative', 'balanced', 'dynamic')",
            name="ck_investment_profile_risk",
        ),
        CheckConstraint(
            "experience_level IN ('none', 'basic', 'intermediate', 'advanced')",
            name="ck_investment_profile_experience",
        ),
        CheckConstraint(
            "emergency_fund_months BETWEEN 1 AND 60",
            name="ck_investment_profile_emergency_months",
        ),
    )

    def __repr__(self):
        return f"<InvestmentProfile(account_id={self.account_id}, risk_profile='{self.risk_profile}')>"


class InvestmentSession(Base):
    """Usage log entry for one AI operation."""

    __tablename__ = "investment_sessions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(30), nullable=False)
    provider_used = Column(String(20), nullable=False)
    prompt_tokens = Column(Integer)
    response_tokens = Column(Integer)
    response_time_ms = Column(Integer)
    cost_estimate = Column(Numeric(10, 6))
    created_at = Column(DateTime, nullable=False, default=utc_now)

    # Relationships
    account = relationship("Account", back_populates="investment_sessions")

    __table_args__ = (
        CheckConstraint(
            "type IN ('profile_assessment', 'recommendation', 'simulation', 'education', 'chat')",
            name="ck_investment_session_type",
        ),
        Index("idx_investment_sessions_account_id", "account_id"),
    )

    def __repr__(self):
        return f"<InvestmentSession(id={self.id}, type='{self.type}', provider='{self.provider_used}')>"


class AIChatSession(Base):
    __tablename__ = "ai_chat_sessions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(20), nullable=False)
    message_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    last_message_at = Column(DateTime, nullable=False, default=utc_now)

    # Relationships
    account = relationship("Account", back_populates="chat_sessions")
    messages = relationship(
        "AIChatMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="AIChatMessage.id",
    )

    __table_args__ = (
        Index("idx_chat_sessions_account_last", "account_id", "last_message_at"),
    )

    def __repr__(self):
        return f"<AIChatSession(id={self.id}, account_id={self.account_id}, messages={self.message_count})>"


class AIChatMessage(Base):
    __tablename__ = "ai_chat_messages"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("ai_chat_sessions.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    tokens = Column(Integer)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    # Relationships
    session = relationship("AIChatSession", back_populates="messages")

    __table_args__ = (
        CheckConstraint("role IN ('user', 'assistant', 'system')", name="ck_chat_message_role"),
        Index("idx_chat_messages_session_id", "session_id"),
    )

    def __repr__(self):
        return f"<AIChatMessage(id={self.id}, role='{self.role}')>"
