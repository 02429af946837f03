# ABOUTME: VPN key API endpoints
# ABOUTME: Bulk creation, listing, lookup, activation and expiry sweep of keys

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_acting_admin
from app.models.errors import AUTH_REQUIRED, CONFLICT, NOT_FOUND
from app.models.schemas import (
    CreateKeysRequest,
    ExpireSweepResponse,
    KeyListResponse,
    KeyOut,
    KeyStats,
    KeyStatusValue,
    Pagination,
)
from app.services import keys as key_service
from app.services.security import AdminContext

router = APIRouter(prefix="/keys", tags=["keys"], responses=AUTH_REQUIRED)


@router.get("/stats", response_model=KeyStats)
async def get_key_stats(
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """Counts of keys per status."""
    return key_service.key_stats(db)


@router.get("/group/{group_code}", response_model=KeyListResponse)
async def list_group_keys(
    group_code: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[KeyStatusValue] = None,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """
    List keys of a group with pagination.

    Supports search on key code and customer name, and filtering by status.
    """
    keys, total = key_service.list_keys(db, group_code, page=page, limit=limit, search=search, status=status)
    total_pages = math.ceil(total / limit)

    return KeyListResponse(
        keys=[KeyOut.model_validate(k) for k in keys],
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_items=total,
            per_page=limit,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
    )


@router.post("", status_code=201, response_model=list[KeyOut], responses=NOT_FOUND)
async def create_keys(
    request: CreateKeysRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """Create a batch of pending keys in a group."""
    keys = key_service.create_keys(
        db,
        group_code=request.group,
        count=request.count,
        days_valid=request.days,
        key_type=request.type,
        acting_admin_id=admin.admin_id,
        account_count=request.account_count,
        customer_name=request.customer,
    )
    return [KeyOut.model_validate(k) for k in keys]


@router.post("/expire", response_model=ExpireSweepResponse)
async def expire_keys(
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """Expire every active key whose validity window has closed."""
    return ExpireSweepResponse(expired=key_service.expire_keys(db))


@router.get("/{code}", response_model=KeyOut, responses=NOT_FOUND)
async def get_key(
    code: str,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    return KeyOut.model_validate(key_service.get_key(db, code))


@router.post("/{code}/activate", response_model=KeyOut, responses={**NOT_FOUND, **CONFLICT})
async def activate_key(
    code: str,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """Activate a pending key; its expiry is set to now + days_valid."""
    key = key_service.activate_key(db, code, acting_admin_id=admin.admin_id)
    return KeyOut.model_validate(key)
