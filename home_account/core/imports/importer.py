"""
Import confirmation: turn a previewed bank file into transactions.

Rows are matched to the account's subcategories through the caller's
bank-category mappings, duplicates are dropped and the rest are inserted in
batches. A failed batch is rolled back on its own savepoint and reported in
the summary; the other batches stay.
"""

import logging
import re
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from home_account.core.imports.types import CategoryMapping, ImportSummary
from home_account.db.models import Transaction
from home_account.db.repositories import TransactionRepository
from home_account.utils.error_utils import ValidationError

logger = logging.getLogger("home_account.imports")

BATCH_SIZE = 100
BANK_LABEL_LENGTH = 100
NOTHING_TO_IMPORT = "No hay transacciones para importar"
FOREIGN_SUBCATEGORY = "La subcategoría {id} no pertenece a esta cuenta"

_NON_WORD = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")

DedupKey = Tuple[str, str, Decimal]


def normalize_description(text: str) -> str:
    """Lowercase, punctuation-free, single-spaced description used for duplicate matching."""
    cleaned = _NON_WORD.sub("", (text or "").lower())
    return _SPACES.sub(" ", cleaned).strip()


def dedup_key(day: date, description: str, amount) -> DedupKey:
    return (
        day.isoformat(),
        normalize_description(description),
        Decimal(str(amount)).quantize(Decimal("0.01")),
    )


def _bank_label(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value[:BANK_LABEL_LENGTH] or None


class TransactionImporter:
    """
    Writes confirmed import rows into an account.

    Usage:
        importer = TransactionImporter(db)
        summary = importer.confirm(account_id, user_id, rows, mappings)
        db.commit()
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = TransactionRepository(db)

    def _mapping_lookup(self, account_id: int, mappings: List[CategoryMapping]) -> Dict[Tuple[str, str], int]:
        owned = self.repo.subcategory_ids_for_account(account_id)
        lookup = {}
        for mapping in mappings:
            if mapping.subcategory_id is None:
                continue
            if mapping.subcategory_id not in owned:
                raise ValidationError(FOREIGN_SUBCATEGORY.format(id=mapping.subcategory_id))
            key = (mapping.bank_category.strip(), (mapping.bank_subcategory or "").strip())
            lookup[key] = mapping.subcategory_id
        return lookup

    def confirm(self, account_id: int, user_id: int, transactions: list, mappings: List[CategoryMapping]) -> ImportSummary:
        """
        Insert confirmed rows into the account.

        Args:
            account_id: Target account
            user_id: Caller, must hold a role on the account
            transactions: Rows with date, description, amount and the bank's
                category/subcategory labels
            mappings: Bank category pairs mapped to account subcategories

        Returns:
            ImportSummary counting inserted and skipped rows

        Raises:
            ForbiddenError: If the user has no role on the account
            ValidationError: If there are no rows or a mapping points at
                another account's subcategory
        """
        self.repo.require_access(account_id, user_id)
        if not transactions:
            raise ValidationError(NOTHING_TO_IMPORT)

        lookup = self._mapping_lookup(account_id, mappings)
        seen: Set[DedupKey] = {
            dedup_key(day, description, amount)
            for day, description, amount in self.repo.existing_keys(account_id)
        }

        pending: List[Transaction] = []
        duplicates = 0
        for row in transactions:
            key = dedup_key(row.date, row.description, row.amount)
            if key in seen:
                duplicates += 1
                continue
            seen.add(key)

            bank_category = (row.bank_category or "").strip()
            bank_subcategory = (row.bank_subcategory or "").strip()
            pending.append(
                Transaction(
                    account_id=account_id,
                    date=row.date,
                    description=row.description.strip(),
                    amount=Decimal(str(row.amount)),
                    subcategory_id=lookup.get((bank_category, bank_subcategory)),
                    bank_category=_bank_label(bank_category),
                    bank_subcategory=_bank_label(bank_subcategory),
                )
            )

        inserted = 0
        failed = 0
        errors: List[str] = []
        for start in range(0, len(pending), BATCH_SIZE):
            batch = pending[start:start + BATCH_SIZE]
            try:
                with self.db.begin_nested():
                    self.repo.add_batch(batch)
                inserted += len(batch)
            except SQLAlchemyError as e:
                number = start // BATCH_SIZE + 1
                logger.error("[Import] Batch %d failed for account %s: %s", number, account_id, e)
                errors.append(f"Error insertando lote {number}: {e.__class__.__name__}")
                failed += len(batch)

        logger.info(
            "[Import] Account %s: %d inserted, %d duplicates, %d failed",
            account_id,
            inserted,
            duplicates,
            failed,
        )
        return ImportSummary(
            total=len(transactions),
            inserted=inserted,
            skipped=duplicates + failed,
            errors=errors,
        )

    def saved_mappings(self, account_id: int, user_id: int) -> List[CategoryMapping]:
        """
        Mappings learned from earlier imports: for each bank category pair,
        the subcategory of its most recent categorized transaction.

        Raises:
            ForbiddenError: If the user has no role on the account
        """
        self.repo.require_access(account_id, user_id)

        mappings: Dict[Tuple[str, str], CategoryMapping] = {}
        for transaction in self.repo.get_bank_category_assignments(account_id):
            key = (transaction.bank_category, transaction.bank_subcategory or "")
            if key in mappings:
                continue
            mappings[key] = CategoryMapping(
                bank_category=key[0],
                bank_subcategory=key[1],
                subcategory_id=transaction.subcategory_id,
            )
        return list(mappings.values())
