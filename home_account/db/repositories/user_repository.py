"""
User repository for registration and login.
"""

from typing import Optional, Tuple

from sqlalchemy.orm import Session

from home_account.db.models import Account, User
from home_account.db.repositories.base import BaseRepository
from home_account.db.repositories.account_repository import AccountRepository
from home_account.utils.error_utils import AuthenticationError, ConflictError
from home_account.utils.security_utils import hash_password, verify_password

INVALID_CREDENTIALS = "Invalid credentials"


class UserRepository(BaseRepository[User]):
    """Repository for User database operations."""

    def __init__(self, session: Session):
        """Initialize user repository."""
        super().__init__(User, session)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.query(User).filter(User.email == email.strip().lower()).first()

    def create_with_account(
        self,
        email: str,
        password: str,
        name: str,
        account_name: Optional[str] = None,
        salt_rounds: int = 10,
    ) -> Tuple[User, Account]:
        """
        Register a user together with their default account.

        The user row, the account row and the owner membership are flushed in
        the same transaction; any failure rolls all three back.

        Args:
            email: Login email (stored lowercased)
            password: Plain password, hashed with bcrypt
            name: Display name
            account_name: Name of the default account, "Cuenta de {name}" when omitted
            salt_rounds: bcrypt cost factor

        Returns:
            (User, Account) tuple

        Raises:
            ConflictError: If the email is already registered
        """
        email = email.strip().lower()
        if self.get_by_email(email) is not None:
            raise ConflictError("Email already registered")

        user = User(email=email, password_hash=hash_password(password, rounds=salt_rounds), name=name.strip())
        self.session.add(user)
        self._flush("Email already registered")

        account = AccountRepository(self.session).create_with_owner(
            name=(account_name or "").strip() or f"Cuenta de {user.name}",
            user_id=user.id,
        )
        return user, account

    def authenticate(self, email: str, password: str) -> User:
        """
        Verify login credentials.

        A bcrypt comparison runs whether or not the email exists, so an
        unknown email and a wrong password take the same time and produce the
        same error.

        Raises:
            AuthenticationError: "Invalid credentials" on any mismatch
        """
        user = self.get_by_email(email)
        password_ok = verify_password(password, user.password_hash if user else None)
        if user is None or not password_ok:
            raise AuthenticationError(INVALID_CREDENTIALS)
        return user
