"""
Bank file import API endpoints.

Import is two steps: ``/parse`` reads an uploaded Excel or CSV file into a
preview (transactions plus the bank's category pairs), then ``/confirm``
writes the rows the user kept, with bank categories mapped to the account's
subcategories. A parse that cannot make sense of the file still answers 200,
with ``success: false`` and the reasons in ``data.errors``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from home_account.api.auth import get_current_user, verify_csrf
from home_account.api.schemas import (
    CategoryListResponse,
    CategoryMappingListResponse,
    CategoryResponse,
    ImportConfirmRequest,
    ImportConfirmResponse,
    ImportParseResponse,
)
from home_account.core.imports import MAX_UPLOAD_BYTES, TransactionImporter, parse_bank_file, validate_upload
from home_account.core.imports.validation import NO_FILE
from home_account.db.connection import get_db_session
from home_account.db.models import User
from home_account.db.repositories import CategoryRepository
from home_account.utils.error_utils import ValidationError

logger = logging.getLogger("home_account.imports")

router = APIRouter(dependencies=[Depends(verify_csrf)])


@router.post("/parse", response_model=ImportParseResponse)
async def parse_file(
    file: Optional[UploadFile] = File(None),
    sheet_name: Optional[str] = Form(None),
    current_user: User = Depends(get_current_user),
):
    """Parse an uploaded bank file and return the transaction preview."""
    if file is None:
        raise ValidationError(NO_FILE)

    # One byte past the limit is enough to tell an oversized upload
    content = await file.read(MAX_UPLOAD_BYTES + 1)
    await run_in_threadpool(validate_upload, content, file.filename, file.content_type)

    result = await run_in_threadpool(parse_bank_file, content, file.filename or "", sheet_name, file.content_type)
    logger.info(
        "[Import] User %s parsed %s: %d rows, %d errors",
        current_user.id,
        file.filename,
        len(result.transactions),
        len(result.errors),
    )
    return ImportParseResponse(success=result.success, data=result)


@router.post("/confirm", response_model=ImportConfirmResponse)
def confirm_import(
    request: ImportConfirmRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Insert the confirmed rows, skipping ones already in the account."""
    importer = TransactionImporter(db)
    summary = importer.confirm(
        request.account_id,
        current_user.id,
        request.transactions,
        request.category_mappings,
    )
    db.commit()
    return ImportConfirmResponse(data=summary)


@router.get("/categories", response_model=CategoryListResponse)
def get_existing_categories(
    account_id: int = Query(..., description="Account whose categories the rows can be mapped to"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    repo = CategoryRepository(db)
    categories = repo.list_by_account(account_id, current_user.id)
    return CategoryListResponse(categories=[CategoryResponse.model_validate(c) for c in categories])


@router.get("/mappings", response_model=CategoryMappingListResponse)
def get_saved_mappings(
    account_id: int = Query(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Bank category mappings learned from earlier imports into the account."""
    mappings = TransactionImporter(db).saved_mappings(account_id, current_user.id)
    return CategoryMappingListResponse(mappings=mappings)
