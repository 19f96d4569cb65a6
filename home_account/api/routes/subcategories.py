"""
Subcategory CRUD API endpoints.

Access is resolved through the parent category's account.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from home_account.api.auth import get_current_user, verify_csrf
from home_account.api.schemas import (
    MessageResponse,
    SubcategoryCreate,
    SubcategoryEnvelope,
    SubcategoryListResponse,
    SubcategoryResponse,
    SubcategoryUpdate,
)
from home_account.db.connection import get_db_session
from home_account.db.models import User
from home_account.db.repositories import SubcategoryRepository


router = APIRouter(dependencies=[Depends(verify_csrf)])


@router.get("/", response_model=SubcategoryListResponse)
def list_subcategories(
    category_id: int = Query(..., description="Parent category"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = SubcategoryRepository(db)
    subcategories = repo.list_by_category(category_id, current_user.id)
    return SubcategoryListResponse(subcategories=[SubcategoryResponse.model_validate(s) for s in subcategories])


@router.post("/", response_model=SubcategoryEnvelope, status_code=status.HTTP_201_CREATED)
def create_subcategory(
    subcategory: SubcategoryCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = SubcategoryRepository(db)
    new_subcategory = repo.create_subcategory(current_user.id, subcategory.category_id, subcategory.name)
    db.commit()
    db.refresh(new_subcategory)
    return SubcategoryEnvelope(subcategory=SubcategoryResponse.model_validate(new_subcategory))


@router.get("/{subcategory_id}", response_model=SubcategoryEnvelope)
def get_subcategory(
    subcategory_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = SubcategoryRepository(db)
    subcategory = repo.get_for_user(subcategory_id, current_user.id)

    if not subcategory:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subcategory not found",
        )

    return SubcategoryEnvelope(subcategory=SubcategoryResponse.model_validate(subcategory))


@router.put("/{subcategory_id}", response_model=SubcategoryEnvelope)
def update_subcategory(
    subcategory_id: int,
    subcategory_update: SubcategoryUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = SubcategoryRepository(db)
    updated = repo.update_subcategory(subcategory_id, current_user.id, subcategory_update.name)
    db.commit()
    db.refresh(updated)
    return SubcategoryEnvelope(subcategory=SubcategoryResponse.model_validate(updated))


@router.delete("/{subcategory_id}", response_model=MessageResponse)
def delete_subcategory(
    subcategory_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = SubcategoryRepository(db)
    repo.delete_subcategory(subcategory_id, current_user.id)
    db.commit()
    return MessageResponse(message="Subcategory deleted")
