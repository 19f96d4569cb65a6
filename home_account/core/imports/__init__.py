"""
Bank file import: upload checks, parsing into a preview and confirmation.
"""

from home_account.core.imports.importer import TransactionImporter, normalize_description
from home_account.core.imports.parser import detect_file_type, parse_bank_file, read_sheets
from home_account.core.imports.types import (
    BankCategory,
    CategoryMapping,
    ImportFileType,
    ImportSummary,
    ParsedTransaction,
    ParseResult,
)
from home_account.core.imports.validation import MAX_UPLOAD_BYTES, validate_upload

__all__ = [
    "TransactionImporter",
    "normalize_description",
    "detect_file_type",
    "parse_bank_file",
    "read_sheets",
    "BankCategory",
    "CategoryMapping",
    "ImportFileType",
    "ImportSummary",
    "ParsedTransaction",
    "ParseResult",
    "MAX_UPLOAD_BYTES",
    "validate_upload",
]
