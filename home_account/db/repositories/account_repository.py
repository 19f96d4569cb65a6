"""
Account repository for database operations.

Accounts are the tenants of the application. Membership lives in
``account_users``; only owners may rename or delete an account or change
who belongs to it.
"""

from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from home_account.db.models import Account, AccountUser, User
from home_account.db.repositories.base import BaseRepository
from home_account.utils.error_utils import ConflictError, ForbiddenError, NotFoundError, ValidationError

OWNER = "owner"
MEMBER = "member"


class AccountRepository(BaseRepository[Account]):
    """Repository for Account database operations."""

    def __init__(self, session: Session):
        """Initialize account repository."""
        super().__init__(Account, session)

    def create_with_owner(self, name: str, user_id: int) -> Account:
        """
        Create an account and make `user_id` its owner.

        Both rows are flushed in the caller's transaction, so they commit or
        roll back together.

        Args:
            name: Account display name
            user_id: Creating user, who becomes the only owner

        Returns:
            Created Account instance
        """
        account = Account(name=name)
        self.session.add(account)
        self.session.flush()

        self.session.add(AccountUser(account_id=account.id, user_id=user_id, role=OWNER))
        self._flush("Account membership already exists")
        return account

    def get_by_user(self, user_id: int) -> List[Tuple[Account, str]]:
        """
        Get every account the user holds a role on.

        Returns:
            List of (Account, role) pairs, newest account first
        """
        return (
            self.session.query(Account, AccountUser.role)
            .join(AccountUser, AccountUser.account_id == Account.id)
            .filter(AccountUser.user_id == user_id)
            .order_by(Account.created_at.desc(), Account.id.desc())
            .all()
        )

    def get_for_user(self, account_id: int, user_id: int) -> Optional[Tuple[Account, str]]:
        """
        Get an account together with the caller's role.

        Returns:
            (Account, role) or None when the account is absent or the user has no role
        """
        return (
            self.session.query(Account, AccountUser.role)
            .join(AccountUser, AccountUser.account_id == Account.id)
            .filter(Account.id == account_id, AccountUser.user_id == user_id)
            .first()
        )

    def has_access(self, account_id: int, user_id: int) -> bool:
        return self.get_role(account_id, user_id) is not None

    def _require_owner(self, account_id: int, user_id: int, action: str) -> Account:
        role = self.get_role(account_id, user_id)
        if role is None:
            raise NotFoundError("Account not found")
        if role != OWNER:
            raise ForbiddenError(f"Only the owner can {action}")
        return self.get_by_id(account_id)

    def rename(self, account_id: int, user_id: int, name: str) -> Account:
        """
        Rename an account (owner only).

        Raises:
            NotFoundError: If the caller has no role on the account
            ForbiddenError: If the caller is a member but not the owner
        """
        account = self._require_owner(account_id, user_id, "modify the account")
        account.name = name
        self.session.flush()
        return account

    def delete_account(self, account_id: int, user_id: int) -> bool:
        """Delete an account and everything it owns (owner only)."""
        account = self._require_owner(account_id, user_id, "delete the account")
        return self.delete_instance(account)

    def add_member(self, account_id: int, owner_id: int, member_email: str) -> AccountUser:
        """
        Add an existing user to the account as a member (owner only).

        Raises:
            NotFoundError: If no user has `member_email`
            ConflictError: If the user already belongs to the account
        """
        self._require_owner(account_id, owner_id, "add members")

        member = self.session.query(User).filter(User.email == member_email.strip().lower()).first()
        if member is None:
            raise NotFoundError("User not found")

        if self.get_role(account_id, member.id) is not None:
            raise ConflictError("User is already a member of this account")

        membership = AccountUser(account_id=account_id, user_id=member.id, role=MEMBER)
        self.session.add(membership)
        self._flush("User is already a member of this account")
        return membership

    def remove_member(self, account_id: int, owner_id: int, member_id: int) -> bool:
        """
        Remove a user from the account (owner only).

        Returns:
            True if a membership row was removed, False if the user was not a member

        Raises:
            ValidationError: If the owner tries to remove themselves
        """
        self._require_owner(account_id, owner_id, "remove members")
        if owner_id == member_id:
            raise ValidationError("The owner cannot remove themselves")

        removed = (
            self.session.query(AccountUser)
            .filter(AccountUser.account_id == account_id, AccountUser.user_id == member_id)
            .delete(synchronize_session="fetch")
        )
        return removed > 0

    def get_members(self, account_id: int, user_id: int) -> List[Tuple[User, str, object]]:
        """
        List the members of an account.

        Returns:
            (User, role, joined_at) tuples, owner first

        Raises:
            ForbiddenError: If the caller holds no role on the account
        """
        self.require_access(account_id, user_id)
        return (
            self.session.query(User, AccountUser.role, AccountUser.joined_at)
            .join(AccountUser, AccountUser.user_id == User.id)
            .filter(AccountUser.account_id == account_id)
            .order_by(AccountUser.role.desc(), AccountUser.id)
            .all()
        )
