"""
Transaction repository for database operations.

Provides filtered listing, CRUD and the aggregate queries used by the
dashboard (summary by category, total by period).
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from home_account.db.models import AccountUser, Category, Subcategory, Transaction
from home_account.db.repositories.base import BaseRepository
from home_account.db.repositories.category_repository import DEFAULT_CATEGORY_COLOR
from home_account.utils.error_utils import NotFoundError, ValidationError

UNCATEGORIZED = "Sin categoría"
NO_SUBCATEGORY = "Sin subcategoría"

UPDATABLE_FIELDS = ("date", "description", "amount", "subcategory_id")


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction database operations."""

    def __init__(self, session: Session):
        """Initialize transaction repository."""
        super().__init__(Transaction, session)

    def _check_subcategory(self, account_id: int, subcategory_id: Optional[int]) -> None:
        if subcategory_id is None:
            return
        owner_account = (
            self.session.query(Category.account_id)
            .join(Subcategory, Subcategory.category_id == Category.id)
            .filter(Subcategory.id == subcategory_id)
            .scalar()
        )
        if owner_account != account_id:
            raise ValidationError("Subcategory does not belong to this account")

    def create_transaction(
        self,
        user_id: int,
        account_id: int,
        date: date,
        description: str,
        amount: float,
        subcategory_id: Optional[int] = None,
        bank_category: Optional[str] = None,
        bank_subcategory: Optional[str] = None,
    ) -> Transaction:
        """
        Create a transaction in an account.

        Raises:
            ForbiddenError: If the user has no role on the account
            ValidationError: If the subcategory belongs to another account
        """
        self.require_access(account_id, user_id)
        self._check_subcategory(account_id, subcategory_id)
        return self.create(
            account_id=account_id,
            subcategory_id=subcategory_id,
            date=date,
            description=description.strip(),
            amount=amount,
            bank_category=bank_category,
            bank_subcategory=bank_subcategory,
        )

    def list_by_account(
        self,
        account_id: int,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        subcategory_id: Optional[int] = None,
        min_amount: Optional[float] = None,
        max_amount: Optional[float] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Transaction]:
        """
        List an account's transactions, newest first.

        Args:
            account_id: Account to list
            user_id: Caller, must hold a role on the account
            start_date: Inclusive lower bound on date
            end_date: Inclusive upper bound on date
            subcategory_id: Only transactions in this subcategory
            min_amount: Inclusive lower bound on amount
            max_amount: Inclusive upper bound on amount
            search: Case-insensitive substring of the description
            limit: Maximum rows
            offset: Rows to skip

        Raises:
            ForbiddenError: If the user has no role on the account
        """
        self.require_access(account_id, user_id)

        query = (
            self.session.query(Transaction)
            .options(joinedload(Transaction.subcategory).joinedload(Subcategory.category))
            .filter(Transaction.account_id == account_id)
        )
        if start_date is not None:
            query = query.filter(Transaction.date >= start_date)
        if end_date is not None:
            query = query.filter(Transaction.date <= end_date)
        if subcategory_id is not None:
            query = query.filter(Transaction.subcategory_id == subcategory_id)
        if min_amount is not None:
            query = query.filter(Transaction.amount >= min_amount)
        if max_amount is not None:
            query = query.filter(Transaction.amount <= max_amount)
        if search:
            query = query.filter(Transaction.description.ilike(f"%{search}%"))

        query = query.order_by(Transaction.date.desc(), Transaction.id.desc())
        if limit:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        return query.all()

    def get_all_for_account(self, account_id: int) -> List[Transaction]:
        """All transactions of an account, oldest first. Callers check access."""
        return (
            self.session.query(Transaction)
            .options(joinedload(Transaction.subcategory).joinedload(Subcategory.category))
            .filter(Transaction.account_id == account_id)
            .order_by(Transaction.date, Transaction.id)
            .all()
        )

    def get_for_user(self, transaction_id: int, user_id: int) -> Optional[Transaction]:
        return (
            self.session.query(Transaction)
            .join(AccountUser, AccountUser.account_id == Transaction.account_id)
            .filter(Transaction.id == transaction_id, AccountUser.user_id == user_id)
            .first()
        )

    def _require(self, transaction_id: int, user_id: int) -> Transaction:
        transaction = self.get_for_user(transaction_id, user_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        return transaction

    def update_transaction(self, transaction_id: int, user_id: int, changes: Dict[str, Any]) -> Transaction:
        """
        Apply a partial update.

        Keys present in `changes` are written as given, so an explicit
        ``subcategory_id: None`` uncategorizes the transaction.
        """
        transaction = self._require(transaction_id, user_id)
        if "subcategory_id" in changes:
            self._check_subcategory(transaction.account_id, changes["subcategory_id"])

        for key in UPDATABLE_FIELDS:
            if key in changes:
                setattr(transaction, key, changes[key])
        self.session.flush()
        return transaction

    def delete_transaction(self, transaction_id: int, user_id: int) -> bool:
        return self.delete_instance(self._require(transaction_id, user_id))

    def get_summary_by_category(
        self,
        account_id: int,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """
        Totals grouped by category and subcategory.

        Uncategorized transactions are reported under "Sin categoría" with
        the default grey color.

        Returns:
            List of dicts with category_name, category_color, subcategory_name,
            total_amount and transaction_count, largest total first
        """
        self.require_access(account_id, user_id)

        total = func.sum(Transaction.amount).label("total_amount")
        query = (
            self.session.query(
                Category.name,
                Category.color,
                Subcategory.name,
                total,
                func.count(Transaction.id),
            )
            .select_from(Transaction)
            .outerjoin(Subcategory, Transaction.subcategory_id == Subcategory.id)
            .outerjoin(Category, Subcategory.category_id == Category.id)
            .filter(Transaction.account_id == account_id)
        )
        if start_date is not None:
            query = query.filter(Transaction.date >= start_date)
        if end_date is not None:
            query = query.filter(Transaction.date <= end_date)

        rows = (
            query.group_by(Category.id, Category.name, Category.color, Subcategory.id, Subcategory.name)
            .order_by(total.desc())
            .all()
        )

        return [
            {
                "category_name": category_name or UNCATEGORIZED,
                "category_color": category_color or DEFAULT_CATEGORY_COLOR,
                "subcategory_name": subcategory_name or NO_SUBCATEGORY,
                "total_amount": float(total_amount or 0),
                "transaction_count": int(count),
            }
            for category_name, category_color, subcategory_name, total_amount, count in rows
        ]

    def get_total_by_period(
        self,
        account_id: int,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> float:
        self.require_access(account_id, user_id)

        query = self.session.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
            Transaction.account_id == account_id
        )
        if start_date is not None:
            query = query.filter(Transaction.date >= start_date)
        if end_date is not None:
            query = query.filter(Transaction.date <= end_date)
        return float(query.scalar() or 0)

    # ========================
    # Import support
    # ========================

    def subcategory_ids_for_account(self, account_id: int) -> Set[int]:
        rows = (
            self.session.query(Subcategory.id)
            .join(Category, Subcategory.category_id == Category.id)
            .filter(Category.account_id == account_id)
            .all()
        )
        return {row[0] for row in rows}

    def existing_keys(self, account_id: int) -> List[Tuple[date, str, Decimal]]:
        """(date, description, amount) of every transaction in the account."""
        return (
            self.session.query(Transaction.date, Transaction.description, Transaction.amount)
            .filter(Transaction.account_id == account_id)
            .all()
        )

    def add_batch(self, transactions: List[Transaction]) -> None:
        self.session.add_all(transactions)
        self.session.flush()

    def get_bank_category_assignments(self, account_id: int) -> List[Transaction]:
        """Categorized transactions that carry a bank category, newest first."""
        return (
            self.session.query(Transaction)
            .filter(
                Transaction.account_id == account_id,
                Transaction.bank_category.isnot(None),
                Transaction.subcategory_id.isnot(None),
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .all()
        )
