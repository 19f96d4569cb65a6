"""
Category and subcategory repositories.

Both are reached through an account: categories carry ``account_id`` directly
and subcategories inherit it from their parent category. Listing or creating
on an account without a role raises ForbiddenError; loading a single entity
through another tenant's id behaves as if it did not exist.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from home_account.db.models import AccountUser, Category, Subcategory
from home_account.db.repositories.base import BaseRepository
from home_account.utils.error_utils import ConflictError, NotFoundError

DEFAULT_CATEGORY_COLOR = "#6B7280"


class CategoryRepository(BaseRepository[Category]):
    """Repository for Category database operations."""

    def __init__(self, session: Session):
        """Initialize category repository."""
        super().__init__(Category, session)

    def list_by_account(self, account_id: int, user_id: int) -> List[Category]:
        self.require_access(account_id, user_id)
        return (
            self.session.query(Category)
            .filter(Category.account_id == account_id)
            .order_by(Category.name)
            .all()
        )

    def get_for_user(self, category_id: int, user_id: int) -> Optional[Category]:
        """
        Get a category visible to the user.

        Returns:
            Category or None when absent or owned by an account the user cannot see
        """
        return (
            self.session.query(Category)
            .join(AccountUser, AccountUser.account_id == Category.account_id)
            .filter(Category.id == category_id, AccountUser.user_id == user_id)
            .first()
        )

    def _require(self, category_id: int, user_id: int) -> Category:
        category = self.get_for_user(category_id, user_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _name_taken(self, account_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
        query = self.session.query(Category).filter(Category.account_id == account_id, Category.name == name)
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        return query.first() is not None

    def create_category(
        self,
        user_id: int,
        account_id: int,
        name: str,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Category:
        """
        Create a category in an account.

        Raises:
            ForbiddenError: If the user has no role on the account
            ConflictError: If the account already has a category with this name
        """
        self.require_access(account_id, user_id)
        name = name.strip()
        if self._name_taken(account_id, name):
            raise ConflictError("A category with this name already exists")

        return self.create(
            account_id=account_id,
            name=name,
            color=color or DEFAULT_CATEGORY_COLOR,
            icon=icon,
        )

    def update_category(
        self,
        category_id: int,
        user_id: int,
        name: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Category:
        category = self._require(category_id, user_id)
        if name is not None:
            name = name.strip()
            if self._name_taken(category.account_id, name, exclude_id=category.id):
                raise ConflictError("A category with this name already exists")
        return self.update_instance(category, name=name, color=color, icon=icon)

    def delete_category(self, category_id: int, user_id: int) -> bool:
        return self.delete_instance(self._require(category_id, user_id))


class SubcategoryRepository(BaseRepository[Subcategory]):
    """Repository for Subcategory database operations."""

    def __init__(self, session: Session):
        """Initialize subcategory repository."""
        super().__init__(Subcategory, session)
        self.categories = CategoryRepository(session)

    def list_by_category(self, category_id: int, user_id: int) -> List[Subcategory]:
        category = self.categories.get_for_user(category_id, user_id)
        if category is None:
            raise NotFoundError("Category not found")
        return (
            self.session.query(Subcategory)
            .filter(Subcategory.category_id == category.id)
            .order_by(Subcategory.name)
            .all()
        )

    def get_for_user(self, subcategory_id: int, user_id: int) -> Optional[Subcategory]:
        return (
            self.session.query(Subcategory)
            .join(Category, Category.id == Subcategory.category_id)
            .join(AccountUser, AccountUser.account_id == Category.account_id)
            .filter(Subcategory.id == subcategory_id, AccountUser.user_id == user_id)
            .first()
        )

    def _require(self, subcategory_id: int, user_id: int) -> Subcategory:
        subcategory = self.get_for_user(subcategory_id, user_id)
        if subcategory is None:
            raise NotFoundError("Subcategory not found")
        return subcategory

    def _name_taken(self, category_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
        query = self.session.query(Subcategory).filter(
            Subcategory.category_id == category_id, Subcategory.name == name
        )
        if exclude_id is not None:
            query = query.filter(Subcategory.id != exclude_id)
        return query.first() is not None

    def create_subcategory(self, user_id: int, category_id: int, name: str) -> Subcategory:
        """
        Create a subcategory under a category the user can see.

        Raises:
            NotFoundError: If the category is absent or belongs to another tenant
            ConflictError: If the category already has a subcategory with this name
        """
        category = self.categories.get_for_user(category_id, user_id)
        if category is None:
            raise NotFoundError("Category not found")

        name = name.strip()
        if self._name_taken(category.id, name):
            raise ConflictError("A subcategory with this name already exists in this category")
        return self.create(category_id=category.id, name=name)

    def update_subcategory(self, subcategory_id: int, user_id: int, name: str) -> Subcategory:
        subcategory = self._require(subcategory_id, user_id)
        name = name.strip()
        if self._name_taken(subcategory.category_id, name, exclude_id=subcategory.id):
            raise ConflictError("A subcategory with this name already exists in this category")
        return self.update_instance(subcategory, name=name)

    def delete_subcategory(self, subcategory_id: int, user_id: int) -> bool:
        return self.delete_instance(self._require(subcategory_id, user_id))
