# ABOUTME: Admin authentication endpoints
# ABOUTME: Login for a session token, the current admin's profile and password changes

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.dependencies import get_acting_admin
from app.models.errors import AUTH_REQUIRED, BAD_REQUEST
from app.models.schemas import AdminOut, ChangePasswordRequest, LoginRequest, LoginResponse, MessageResponse
from app.services import admins as admin_service
from app.services.security import AdminContext, issue_session_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse, responses=AUTH_REQUIRED)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Verify admin credentials and issue a session token.

    Updates last_login on success.
    """
    admin = admin_service.authenticate(db, request.username, request.password)

    settings = get_settings()
    token = issue_session_token(
        AdminContext(admin_id=admin.id, username=admin.username),
        settings.secret_key,
        settings.session_ttl_minutes,
    )
    return LoginResponse(token=token, admin=AdminOut.model_validate(admin))


@router.get("/me", response_model=AdminOut, responses=AUTH_REQUIRED)
async def me(
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    return AdminOut.model_validate(admin_service.get_admin(db, admin.admin_id))


@router.post("/change-password", response_model=MessageResponse, responses={**AUTH_REQUIRED, **BAD_REQUEST})
async def change_password(
    request: ChangePasswordRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_acting_admin)
):
    """Change the acting admin's password. Existing session tokens stay valid until they expire."""
    admin_service.change_password(db, admin.admin_id, request.current_password, request.new_password)
    return MessageResponse(message="Password changed")
