"""
Pydantic schemas for API request/response validation.

CRUD resources (accounts, categories, subcategories, transactions) use
snake_case fields like the database rows they mirror. AI and investment
payloads are camelCase; their result shapes live in
``home_account.core.prompts.types`` and ``home_account.core.market.types``.
Bank import shapes are snake_case and live in ``home_account.core.imports.types``.
"""

import re
import datetime as dt
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from home_account.config import VALID_PROVIDERS
from home_account.core.constants import RiskProfile
from home_account.core.imports.types import CategoryMapping, ImportSummary, ParseResult
from home_account.core.types import CamelModel

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


# ======================
# Enums
# ======================


class AccountRole(str, Enum):
    """Role of a user on an account."""

    OWNER = "owner"
    MEMBER = "member"


class AIProviderName(str, Enum):
    """Provider names accepted by the AI administration endpoints."""

    CLAUDE = "claude"
    GEMINI = "gemini"
    GROQ = "groq"
    OLLAMA = "ollama"
    NONE = "none"


# ======================
# Base Schemas
# ======================


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode for SQLAlchemy
        validate_assignment=True,
        use_enum_values=True,
    )


class MessageResponse(BaseSchema):
    success: bool = True
    message: str


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email")
    return value


# ======================
# Auth Schemas
# ======================


class RegisterRequest(CamelModel):
    """Registration body; ``accountName`` names the default account."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    account_name: Optional[str] = Field(None, max_length=100)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()


class LoginRequest(BaseSchema):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return v.strip().lower()


class UserResponse(BaseSchema):
    id: int
    email: str
    name: str
    created_at: Optional[datetime] = None


class AuthResponse(BaseSchema):
    success: bool = True
    user: UserResponse
    access_token: str = Field(..., serialization_alias="accessToken")


class CurrentUserResponse(BaseSchema):
    success: bool = True
    user: UserResponse


class CsrfTokenResponse(BaseSchema):
    success: bool = True
    csrf_token: str = Field(..., serialization_alias="csrfToken")


# ======================
# Account Schemas
# ======================


class AccountCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100)


class AccountUpdate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100)


class AccountResponse(BaseSchema):
    id: int
    name: str
    role: AccountRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AccountEnvelope(BaseSchema):
    success: bool = True
    account: AccountResponse


class AccountListResponse(BaseSchema):
    success: bool = True
    accounts: List[AccountResponse]


class MemberCreate(BaseSchema):
    email: str = Field(..., min_length=3, max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)


class MemberResponse(BaseSchema):
    user_id: int
    email: str
    name: str
    role: AccountRole
    joined_at: Optional[datetime] = None


class MemberListResponse(BaseSchema):
    success: bool = True
    members: List[MemberResponse]


class MemberEnvelope(BaseSchema):
    success: bool = True
    member: MemberResponse


# ======================
# Category Schemas
# ======================


class CategoryCreate(BaseSchema):
    account_id: int
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = Field(None, max_length=50)


class CategoryUpdate(BaseSchema):
    """Schema for updating a category (all fields optional)."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = Field(None, max_length=50)


class SubcategoryResponse(BaseSchema):
    id: int
    category_id: int
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryResponse(BaseSchema):
    id: int
    account_id: int
    name: str
    color: str
    icon: Optional[str] = None
    subcategories: List[SubcategoryResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryEnvelope(BaseSchema):
    success: bool = True
    category: CategoryResponse


class CategoryListResponse(BaseSchema):
    success: bool = True
    categories: List[CategoryResponse]


# ======================
# Subcategory Schemas
# ======================


class SubcategoryCreate(BaseSchema):
    category_id: int
    name: str = Field(..., min_length=1, max_length=100)


class SubcategoryUpdate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100)


class SubcategoryEnvelope(BaseSchema):
    success: bool = True
    subcategory: SubcategoryResponse


class SubcategoryListResponse(BaseSchema):
    success: bool = True
    subcategories: List[SubcategoryResponse]


# ======================
# Transaction Schemas
# ======================


class TransactionCreate(BaseSchema):
    account_id: int
    date: dt.date
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal
    subcategory_id: Optional[int] = None
    bank_category: Optional[str] = Field(None, max_length=100)
    bank_subcategory: Optional[str] = Field(None, max_length=100)

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("amount must be a finite number")
        return v


class TransactionUpdate(BaseSchema):
    """
    Partial update; only the fields sent are applied.

    Sending ``subcategory_id: null`` uncategorizes the transaction.
    """

    date: Optional[dt.date] = None
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = None
    subcategory_id: Optional[int] = None

    @model_validator(mode="after")
    def check_not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class TransactionResponse(BaseSchema):
    id: int
    account_id: int
    subcategory_id: Optional[int] = None
    date: dt.date
    description: str
    amount: float
    bank_category: Optional[str] = None
    bank_subcategory: Optional[str] = None
    category_name: Optional[str] = None
    category_color: Optional[str] = None
    subcategory_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TransactionEnvelope(BaseSchema):
    success: bool = True
    transaction: TransactionResponse


class TransactionListResponse(BaseSchema):
    success: bool = True
    transactions: List[TransactionResponse]
    count: int


class CategorySummaryItem(BaseSchema):
    category_name: str
    category_color: str
    subcategory_name: str
    total_amount: float
    transaction_count: int


class TransactionSummaryResponse(BaseSchema):
    success: bool = True
    summary: List[CategorySummaryItem]


class TransactionTotalResponse(BaseSchema):
    success: bool = True
    total: float
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None


# ======================
# Import Schemas
# ======================


class ImportedTransaction(BaseSchema):
    """A previewed row the user confirmed for import."""

    date: dt.date
    description: str = Field(..., min_length=1)
    amount: Decimal
    bank_category: str = ""
    bank_subcategory: str = ""

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("amount must be a finite number")
        return v


class ImportConfirmRequest(BaseSchema):
    account_id: int
    transactions: List[ImportedTransaction] = Field(default_factory=list)
    category_mappings: List[CategoryMapping] = Field(default_factory=list)


class ImportParseResponse(BaseSchema):
    success: bool
    data: ParseResult


class ImportConfirmResponse(BaseSchema):
    success: bool = True
    data: ImportSummary


class CategoryMappingListResponse(BaseSchema):
    success: bool = True
    mappings: List[CategoryMapping]


# ======================
# AI Schemas
# ======================


class ProviderRequest(BaseSchema):
    provider: str = Field(..., min_length=1)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in VALID_PROVIDERS:
            raise ValueError(f"Invalid provider. Valid: {', '.join(VALID_PROVIDERS)}")
        return v


class ParseRequest(BaseSchema):
    text: str = Field(..., min_length=1, max_length=20000)
    provider: Optional[AIProviderName] = None


# ======================
# Investment Schemas
# ======================


class EmergencyFundMonthsRequest(BaseSchema):
    months: int = Field(..., ge=1, le=60)


class LiquidityReserveRequest(BaseSchema):
    amount: float = Field(..., ge=0)


class RecommendationsRequest(CamelModel):
    profile: Optional[RiskProfile] = None
    monthly_amount: Optional[float] = Field(None, gt=0)


class ChatMessageRequest(BaseSchema):
    message: str = Field(..., min_length=1, max_length=5000)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message is required")
        return v

