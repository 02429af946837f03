# ABOUTME: VPN account API endpoints
# ABOUTME: Account listing, creation, key binding and release, bulk extension, usage and statistics

import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_acting_admin
from app.models.errors import AUTH_REQUIRED, BAD_REQUEST, CONFLICT, EXPIRED, NOT_FOUND
from app.models.schemas import (
    AccountKeyOut,
    AccountListItem,
    AccountListResponse,
    AccountOut,
    AccountStats,
    BindAccountRequest,
    CreateAccountRequest,
    ExtendAccountsRequest,
    ExtendAccountsResponse,
    Pagination,
    TimeFilter,
)
from app.services import accounts as account_service
from app.services.security import AdminContext

router = APIRouter(prefix="/accounts", tags=["accounts"], responses=AUTH_REQUIRED)


def _as_naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.get("/stats", response_model=AccountStats)
async def get_account_stats(
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    return account_service.account_stats(db)


@router.get("", response_model=AccountListResponse)
async def list_accounts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    time_filter: TimeFilter = "all",
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """
    List accounts with pagination, soonest expiry first.

    Supports search on username and filtering by remaining validity.
    """
    rows, total = account_service.list_accounts(
        db, page=page, limit=limit, search=search, time_filter=time_filter
    )
    total_pages = math.ceil(total / limit)

    return AccountListResponse(
        accounts=[
            AccountListItem(
                **AccountOut.model_validate(account).model_dump(),
                key_count=key_count,
                max_keys=account_service.MAX_KEYS_PER_ACCOUNT,
            )
            for account, key_count in rows
        ],
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_items=total,
            per_page=limit,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
    )


@router.post("", status_code=201, response_model=AccountOut, responses={**NOT_FOUND, **CONFLICT})
async def create_account(
    request: CreateAccountRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """
    Create a VPN account.

    Username and password are generated when omitted. When key_code is given
    the account is bound to that key, subject to its capacity.
    """
    account = account_service.create_account(
        db,
        acting_admin_id=admin.admin_id,
        expires_at=_as_naive_utc(request.expires_at),
        username=request.username,
        password=request.password,
        key_code=request.key_code,
    )
    return AccountOut.model_validate(account)


@router.post("/{username}/bind", response_model=AccountOut, responses={**NOT_FOUND, **CONFLICT})
async def bind_account(
    username: str,
    request: BindAccountRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    account = account_service.bind_account(db, username, request.key_code, acting_admin_id=admin.admin_id)
    return AccountOut.model_validate(account)


@router.post("/{username}/usage", response_model=AccountOut, responses={**NOT_FOUND, **EXPIRED})
async def record_usage(
    username: str,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """Record one authenticated use of the account."""
    return AccountOut.model_validate(account_service.record_usage(db, username))


@router.post("/extend", response_model=ExtendAccountsResponse, responses={**NOT_FOUND, **BAD_REQUEST})
async def extend_accounts(
    request: ExtendAccountsRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """Set a new expiry on several accounts at once. Unknown usernames fail the whole request."""
    accounts = account_service.extend_accounts(
        db,
        request.usernames,
        expires_at=_as_naive_utc(request.expires_at),
        acting_admin_id=admin.admin_id,
    )
    return ExtendAccountsResponse(
        extended=[a.username for a in accounts],
        expires_at=_as_naive_utc(request.expires_at),
    )


@router.get("/{username}/keys", response_model=list[AccountKeyOut], responses=NOT_FOUND)
async def list_account_keys(
    username: str,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    bindings = account_service.list_account_keys(db, username)
    return [
        AccountKeyOut(
            code=b.key.code,
            status=b.key.status,
            key_type=b.key.key_type,
            group_code=b.key.group.code,
            expires_at=b.key.expires_at,
            assigned_at=b.assigned_at,
        )
        for b in bindings
    ]


@router.delete("/{username}/keys/{key_code}", response_model=AccountOut, responses=NOT_FOUND)
async def unassign_key(
    username: str,
    key_code: str,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """Release a key from the account; the key's slot becomes free again."""
    account = account_service.unassign_key(db, username, key_code, acting_admin_id=admin.admin_id)
    return AccountOut.model_validate(account)
