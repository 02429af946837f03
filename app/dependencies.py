# ABOUTME: FastAPI dependency injection utilities
# ABOUTME: Resolves the Bearer session token to an explicit acting-admin context

from fastapi import Header, HTTPException, Depends
from sqlalchemy.orm import Session
from typing import Annotated

from app.config import get_settings
from app.database import get_db
from app.exceptions import AuthenticationError
from app.models.database import Admin
from app.services.security import AdminContext, read_session_token


def _unauthorized(message: str = "Session token is missing or invalid") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "UNAUTHORIZED", "message": message}
    )


async def get_acting_admin(
    authorization: Annotated[str | None, Header()] = None,
    db: Session = Depends(get_db)
) -> AdminContext:
    """
    Verify the session token from the Authorization header.

    Returns the AdminContext every mutating service call receives.
    Raises HTTPException with 401 if missing, invalid, expired or the admin is disabled.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized()

    token = authorization.replace("Bearer ", "", 1)
    if not token:
        raise _unauthorized()

    try:
        context = read_session_token(token, get_settings().secret_key)
    except AuthenticationError as exc:
        raise _unauthorized(exc.message)

    admin = db.get(Admin, context.admin_id)
    if not admin or not admin.is_active:
        raise _unauthorized()

    return context
