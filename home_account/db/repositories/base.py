"""
Base repository pattern for database operations.

Provides common CRUD operations with SQLAlchemy ORM and the tenant access
checks shared by every account-scoped repository.
"""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from home_account.db.models import Base, AccountUser
from home_account.utils.error_utils import ConflictError, ForbiddenError


ModelType = TypeVar("ModelType", bound=Base)

NO_ACCESS_MESSAGE = "You do not have access to this account"


class BaseRepository(Generic[ModelType]):
    """
    Shared CRUD helpers over one model class.

    Subclasses own the tenant scoping; the helpers here never filter by account.
    """

    def __init__(self, model: Type[ModelType], session: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Database session
        """
        self.model = model
        self.session = session

    def _flush(self, conflict_message: str) -> None:
        """
        Flush pending changes, converting unique violations into ConflictError.

        Raises:
            ConflictError: If a unique constraint is violated
        """
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise ConflictError(conflict_message, details=str(e.orig))

    def get_role(self, account_id: int, user_id: int) -> Optional[str]:
        """
        Look up a user's role on an account.

        Returns:
            'owner', 'member' or None when the user has no role row
        """
        membership = (
            self.session.query(AccountUser)
            .filter(AccountUser.account_id == account_id, AccountUser.user_id == user_id)
            .first()
        )
        return membership.role if membership else None

    def require_access(self, account_id: int, user_id: int) -> str:
        """
        Resolve the caller's role, failing closed when there is none.

        Raises:
            ForbiddenError: If the user holds no role on the account
        """
        role = self.get_role(account_id, user_id)
        if role is None:
            raise ForbiddenError(NO_ACCESS_MESSAGE)
        return role

    def create(self, **kwargs) -> ModelType:
        """
        Add and flush a new row.

        Raises:
            ConflictError: If a unique constraint is violated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self._flush(f"{self.model.__name__} already exists")
        return instance

    def get_by_id(self, id: int) -> Optional[ModelType]:
        return self.session.get(self.model, id)

    def update_instance(self, instance: ModelType, **kwargs) -> ModelType:
        """
        Apply field updates to a loaded instance.

        None values are skipped, so callers can pass partial payloads.
        """
        for key, value in kwargs.items():
            if value is not None and hasattr(instance, key):
                setattr(instance, key, value)
        self._flush(f"{self.model.__name__} already exists")
        return instance

    def delete_instance(self, instance: ModelType) -> bool:
        self.session.delete(instance)
        self.session.flush()
        return True

    def count(self) -> int:
        return self.session.query(self.model).count()
