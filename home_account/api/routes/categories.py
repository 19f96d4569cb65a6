"""
Category CRUD API endpoints.

Categories belong to an account. Listing or creating on an account the user
has no role on is rejected with 403; a category of another tenant is reported
as not found.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from home_account.api.auth import get_current_user, verify_csrf
from home_account.api.schemas import (
    CategoryCreate,
    CategoryEnvelope,
    CategoryListResponse,
    CategoryResponse,
    CategoryUpdate,
    MessageResponse,
)
from home_account.db.connection import get_db_session
from home_account.db.models import User
from home_account.db.repositories import CategoryRepository


router = APIRouter(dependencies=[Depends(verify_csrf)])


@router.get("/", response_model=CategoryListResponse)
def list_categories(
    account_id: int = Query(..., description="Account whose categories to list"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """List an account's categories with their subcategories."""
    repo = CategoryRepository(db)
    categories = repo.list_by_account(account_id, current_user.id)
    return CategoryListResponse(categories=[CategoryResponse.model_validate(c) for c in categories])


@router.post("/", response_model=CategoryEnvelope, status_code=status.HTTP_201_CREATED)
def create_category(
    category: CategoryCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = CategoryRepository(db)
    new_category = repo.create_category(
        user_id=current_user.id,
        account_id=category.account_id,
        name=category.name,
        color=category.color,
        icon=category.icon,
    )
    db.commit()
    db.refresh(new_category)
    return CategoryEnvelope(category=CategoryResponse.model_validate(new_category))


@router.get("/{category_id}", response_model=CategoryEnvelope)
def get_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = CategoryRepository(db)
    category = repo.get_for_user(category_id, current_user.id)

    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found",
        )

    return CategoryEnvelope(category=CategoryResponse.model_validate(category))


@router.put("/{category_id}", response_model=CategoryEnvelope)
def update_category(
    category_id: int,
    category_update: CategoryUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Update a category; omitted fields keep their value."""
    repo = CategoryRepository(db)
    updated = repo.update_category(category_id, current_user.id, **category_update.model_dump())
    db.commit()
    db.refresh(updated)
    return CategoryEnvelope(category=CategoryResponse.model_validate(updated))


@router.delete("/{category_id}", response_model=MessageResponse)
def delete_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Delete a category and its subcategories; their transactions become uncategorized."""
    repo = CategoryRepository(db)
    repo.delete_category(category_id, current_user.id)
    db.commit()
    return MessageResponse(message="Category deleted")
