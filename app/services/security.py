# ABOUTME: Password hashing and admin session tokens
# ABOUTME: bcrypt for stored passwords, HS256 JWTs for acting-admin identity

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from app.exceptions import AuthenticationError

TOKEN_ALGORITHM = "HS256"


@dataclass(frozen=True)
class AdminContext:
    """Identity of the admin performing an operation."""
    admin_id: int
    username: str


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def issue_session_token(admin: AdminContext, secret: str, ttl_minutes: int) -> str:
    expires = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)
    payload = {"sub": str(admin.admin_id), "username": admin.username, "exp": expires}
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def read_session_token(token: str, secret: str) -> AdminContext:
    """Resolve a session token to the admin it was issued for."""
    try:
        payload = jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired") from None
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"Invalid session token: {exc}") from None

    try:
        return AdminContext(admin_id=int(payload["sub"]), username=payload["username"])
    except (KeyError, ValueError):
        raise AuthenticationError("Session token is missing admin claims") from None
