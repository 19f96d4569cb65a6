"""
Shapes produced by the bank file parser and the import confirmation.

Field names are snake_case on the wire, like the transaction rows they feed.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportFileType(str, Enum):
    CONTROL_GASTOS = "control_gastos"
    MOVIMIENTOS_CC = "movimientos_cc"
    UNKNOWN = "unknown"


class ImportModel(BaseModel):
    model_config = ConfigDict(use_enum_values=True)


class ParsedTransaction(ImportModel):
    date: str
    description: str
    amount: float
    bank_category: str = ""
    bank_subcategory: str = ""


class BankCategory(ImportModel):
    """A category/subcategory pair as named by the bank file."""

    category: str
    subcategory: str = ""


class ParseResult(ImportModel):
    success: bool
    file_type: ImportFileType
    sheet_name: Optional[str] = None
    available_sheets: List[str] = Field(default_factory=list)
    transactions: List[ParsedTransaction] = Field(default_factory=list)
    categories: List[BankCategory] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class CategoryMapping(ImportModel):
    """Bank category pair mapped to one of the account's subcategories (None leaves it uncategorized)."""

    bank_category: str
    bank_subcategory: str = ""
    subcategory_id: Optional[int] = None


class ImportSummary(ImportModel):
    total: int
    inserted: int
    skipped: int
    errors: List[str] = Field(default_factory=list)
