"""
Account (tenant) API endpoints.

Every account a user can see comes with their role on it. Renaming, deleting
and managing members are owner-only.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from home_account.api.auth import get_current_user, verify_csrf
from home_account.api.schemas import (
    AccountCreate,
    AccountEnvelope,
    AccountListResponse,
    AccountResponse,
    AccountUpdate,
    MemberCreate,
    MemberEnvelope,
    MemberListResponse,
    MemberResponse,
    MessageResponse,
)
from home_account.db.connection import get_db_session
from home_account.db.models import Account, User
from home_account.db.repositories import AccountRepository
from home_account.db.repositories.account_repository import MEMBER, OWNER


router = APIRouter(dependencies=[Depends(verify_csrf)])


def _account_response(account: Account, role: str) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        name=account.name,
        role=role,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


@router.get("/", response_model=AccountListResponse)
def list_accounts(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """List every account the current user holds a role on."""
    repo = AccountRepository(db)
    rows = repo.get_by_user(current_user.id)
    return AccountListResponse(accounts=[_account_response(account, role) for account, role in rows])


@router.post("/", response_model=AccountEnvelope, status_code=status.HTTP_201_CREATED)
def create_account(
    body: AccountCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Create an account owned by the current user."""
    repo = AccountRepository(db)
    account = repo.create_with_owner(body.name.strip(), current_user.id)
    db.commit()
    db.refresh(account)
    return AccountEnvelope(account=_account_response(account, OWNER))


@router.get("/{account_id}", response_model=AccountEnvelope)
def get_account(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = AccountRepository(db)
    row = repo.get_for_user(account_id, current_user.id)

    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found",
        )

    account, role = row
    return AccountEnvelope(account=_account_response(account, role))


@router.put("/{account_id}", response_model=AccountEnvelope)
def update_account(
    account_id: int,
    body: AccountUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Rename an account (owner only)."""
    repo = AccountRepository(db)
    account = repo.rename(account_id, current_user.id, body.name.strip())
    db.commit()
    db.refresh(account)
    return AccountEnvelope(account=_account_response(account, OWNER))


@router.delete("/{account_id}", response_model=MessageResponse)
def delete_account(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Delete an account and all of its data (owner only)."""
    repo = AccountRepository(db)
    repo.delete_account(account_id, current_user.id)
    db.commit()
    return MessageResponse(message="Account deleted")


# ======================
# Members
# ======================


@router.get("/{account_id}/members", response_model=MemberListResponse)
def list_members(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = AccountRepository(db)
    rows = repo.get_members(account_id, current_user.id)
    return MemberListResponse(
        members=[
            MemberResponse(user_id=user.id, email=user.email, name=user.name, role=role, joined_at=joined_at)
            for user, role, joined_at in rows
        ]
    )


@router.post("/{account_id}/members", response_model=MemberEnvelope, status_code=status.HTTP_201_CREATED)
def add_member(
    account_id: int,
    body: MemberCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Add an existing user, looked up by email, as a member (owner only)."""
    repo = AccountRepository(db)
    membership = repo.add_member(account_id, current_user.id, body.email)
    db.commit()
    db.refresh(membership)

    member = membership.user
    return MemberEnvelope(
        member=MemberResponse(
            user_id=member.id,
            email=member.email,
            name=member.name,
            role=MEMBER,
            joined_at=membership.joined_at,
        )
    )


@router.delete("/{account_id}/members/{user_id}", response_model=MessageResponse)
def remove_member(
    account_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Remove a member from the account (owner only)."""
    repo = AccountRepository(db)
    if not repo.remove_member(account_id, current_user.id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found",
        )
    db.commit()
    return MessageResponse(message="Member removed")
