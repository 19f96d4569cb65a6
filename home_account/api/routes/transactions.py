"""
Transaction CRUD API endpoints.

Provides filtered listing, CRUD and two aggregates: totals grouped by
category/subcategory and the net total of a period.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from home_account.api.auth import get_current_user, verify_csrf
from home_account.api.schemas import (
    CategorySummaryItem,
    MessageResponse,
    TransactionCreate,
    TransactionEnvelope,
    TransactionListResponse,
    TransactionResponse,
    TransactionSummaryResponse,
    TransactionTotalResponse,
    TransactionUpdate,
)
from home_account.db.connection import get_db_session
from home_account.db.models import Transaction, User
from home_account.db.repositories import TransactionRepository


router = APIRouter(dependencies=[Depends(verify_csrf)])


def _transaction_response(transaction: Transaction) -> TransactionResponse:
    subcategory = transaction.subcategory
    category = subcategory.category if subcategory is not None else None
    return TransactionResponse(
        id=transaction.id,
        account_id=transaction.account_id,
        subcategory_id=transaction.subcategory_id,
        date=transaction.date,
        description=transaction.description,
        amount=float(transaction.amount),
        bank_category=transaction.bank_category,
        bank_subcategory=transaction.bank_subcategory,
        category_name=category.name if category else None,
        category_color=category.color if category else None,
        subcategory_name=subcategory.name if subcategory else None,
        created_at=transaction.created_at,
        updated_at=transaction.updated_at,
    )


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must be before end_date",
        )


@router.get("/", response_model=TransactionListResponse)
def list_transactions(
    account_id: int = Query(...),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    subcategory_id: Optional[int] = Query(None),
    min_amount: Optional[float] = Query(None),
    max_amount: Optional[float] = Query(None),
    search: Optional[str] = Query(None, max_length=255),
    limit: Optional[int] = Query(None, gt=0, le=1000),
    offset: Optional[int] = Query(None, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """List an account's transactions, newest first."""
    _check_range(start_date, end_date)
    repo = TransactionRepository(db)
    transactions = repo.list_by_account(
        account_id,
        current_user.id,
        start_date=start_date,
        end_date=end_date,
        subcategory_id=subcategory_id,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
        limit=limit,
        offset=offset,
    )
    return TransactionListResponse(
        transactions=[_transaction_response(t) for t in transactions],
        count=len(transactions),
    )


@router.get("/summary", response_model=TransactionSummaryResponse)
def get_summary(
    account_id: int = Query(...),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Totals grouped by category and subcategory."""
    _check_range(start_date, end_date)
    repo = TransactionRepository(db)
    rows = repo.get_summary_by_category(account_id, current_user.id, start_date, end_date)
    return TransactionSummaryResponse(summary=[CategorySummaryItem(**row) for row in rows])


@router.get("/total", response_model=TransactionTotalResponse)
def get_total(
    account_id: int = Query(...),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    _check_range(start_date, end_date)
    repo = TransactionRepository(db)
    total = repo.get_total_by_period(account_id, current_user.id, start_date, end_date)
    return TransactionTotalResponse(total=total, start_date=start_date, end_date=end_date)


@router.post("/", response_model=TransactionEnvelope, status_code=status.HTTP_201_CREATED)
def create_transaction(
    transaction: TransactionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = TransactionRepository(db)
    new_transaction = repo.create_transaction(user_id=current_user.id, **transaction.model_dump())
    db.commit()
    db.refresh(new_transaction)
    return TransactionEnvelope(transaction=_transaction_response(new_transaction))


@router.get("/{transaction_id}", response_model=TransactionEnvelope)
def get_transaction(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = TransactionRepository(db)
    transaction = repo.get_for_user(transaction_id, current_user.id)

    if not transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found",
        )

    return TransactionEnvelope(transaction=_transaction_response(transaction))


@router.put("/{transaction_id}", response_model=TransactionEnvelope)
def update_transaction(
    transaction_id: int,
    transaction_update: TransactionUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Update the fields present in the body."""
    repo = TransactionRepository(db)
    changes = transaction_update.model_dump(exclude_unset=True)
    updated = repo.update_transaction(transaction_id, current_user.id, changes)
    db.commit()
    db.refresh(updated)
    return TransactionEnvelope(transaction=_transaction_response(updated))


@router.delete("/{transaction_id}", response_model=MessageResponse)
def delete_transaction(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = TransactionRepository(db)
    repo.delete_transaction(transaction_id, current_user.id)
    db.commit()
    return MessageResponse(message="Transaction deleted")
