# ABOUTME: Key holder endpoints, no authentication
# ABOUTME: Checks a key's validity and redeems it for a VPN account

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.errors import CONFLICT, EXPIRED, NOT_FOUND
from app.models.schemas import HolderAccount, KeyCheckResponse, KeyCodeRequest, RedeemResponse
from app.services import accounts as account_service
from app.services import keys as key_service

router = APIRouter(prefix="/public", tags=["public"])


@router.post("/check-key", response_model=KeyCheckResponse, responses=NOT_FOUND)
async def check_key(request: KeyCodeRequest, db: Session = Depends(get_db)):
    """
    Report whether a key is still valid and how many days it has left.

    For an active key the holder's live accounts are listed as well.
    """
    result = key_service.check_key(db, request.key_code.strip())
    key = result.key

    return KeyCheckResponse(
        code=key.code,
        status=key.status,
        key_type=key.key_type,
        days_valid=key.days_valid,
        group_code=key.group.code,
        group_name=key.group.name,
        expires_at=key.expires_at,
        days_remaining=result.days_remaining,
        valid=result.valid,
        accounts=[HolderAccount.model_validate(a) for a in result.accounts],
    )


@router.post("/activate-key", status_code=201, response_model=RedeemResponse,
             responses={**NOT_FOUND, **CONFLICT, **EXPIRED})
async def activate_key(request: KeyCodeRequest, db: Session = Depends(get_db)):
    """Redeem a key: activates it if pending and creates an account that expires with it."""
    code = request.key_code.strip()
    account = account_service.redeem_key(db, code)
    return RedeemResponse(
        key_code=code,
        username=account.username,
        password=account.password,
        expires_at=account.expires_at,
    )
