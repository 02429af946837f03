# ABOUTME: Admin account service
# ABOUTME: Credential checks, profile lookup and password changes for admins

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.exceptions import AuthenticationError, InvalidPassword, NotFound
from app.models.database import Admin, utcnow
from app.services.security import hash_password, verify_password

logger = logging.getLogger(__name__)


def authenticate(db: Session, username: str, password: str, now: Optional[datetime] = None) -> Admin:
    """
    Check admin credentials and record the login.

    Unknown users, disabled admins and wrong passwords fail alike.
    """
    admin = db.query(Admin).filter_by(username=username).first()
    if not admin or not admin.is_active or not verify_password(password, admin.password):
        logger.warning("Failed login for %s", username)
        raise AuthenticationError("Invalid username or password")

    admin.last_login = now or utcnow()
    db.commit()
    return admin


def get_admin(db: Session, admin_id: int) -> Admin:
    admin = db.get(Admin, admin_id)
    if not admin:
        raise NotFound(f"Admin not found: {admin_id}")
    return admin


def change_password(
    db: Session,
    admin_id: int,
    current_password: str,
    new_password: str,
    now: Optional[datetime] = None,
) -> Admin:
    """Replace an admin's password after checking the current one."""
    admin = get_admin(db, admin_id)
    if not verify_password(current_password, admin.password):
        raise InvalidPassword("Current password is incorrect")

    admin.password = hash_password(new_password)
    admin.updated_at = now or utcnow()
    db.commit()
    logger.info("Admin %s changed their password", admin.username)
    return admin
