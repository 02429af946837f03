# ABOUTME: VPN key data-access service
# ABOUTME: Bulk creation, lookup, holder checks, activation and expiry sweep of keys

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.exceptions import NotFound
from app.models.database import AccountKey, KeyGroup, KeyStatus, VpnAccount, VpnKey, utcnow
from app.services import lifecycle
from app.utils.generators import generate_key_code

logger = logging.getLogger(__name__)


@dataclass
class KeyCheck:
    """What a key holder may see about their key."""
    key: VpnKey
    days_remaining: int
    valid: bool
    accounts: List[VpnAccount] = field(default_factory=list)


def get_group(db: Session, group_code: str) -> KeyGroup:
    group = db.query(KeyGroup).filter_by(code=group_code).first()
    if not group or not group.is_active:
        raise NotFound(f"Key group not found: {group_code}")
    return group


def create_keys(
    db: Session,
    group_code: str,
    count: int,
    days_valid: int,
    key_type: str,
    acting_admin_id: int,
    account_count: int = 1,
    customer_name: Optional[str] = None,
) -> List[VpnKey]:
    """
    Create count pending keys in a group.

    Keys start without expires_at; the validity window opens on activation.
    """
    lifecycle.key_capacity(key_type)
    group = get_group(db, group_code)

    keys = []
    for _ in range(count):
        code = generate_key_code(group.code)
        while db.query(VpnKey.id).filter_by(code=code).first():
            code = generate_key_code(group.code)

        key = VpnKey(
            code=code,
            group_id=group.id,
            status=KeyStatus.PENDING,
            days_valid=days_valid,
            key_type=key_type,
            account_count=account_count,
            customer_name=customer_name,
            created_by=acting_admin_id,
        )
        db.add(key)
        # Flush so the next uniqueness check sees this code
        db.flush()
        keys.append(key)

    db.commit()
    logger.info("Admin %s created %d %s key(s) in %s", acting_admin_id, count, key_type, group.code)
    return keys


def _apply_expiry(db: Session, key: VpnKey, now: datetime) -> None:
    """Lazily expire a key on read and release its bindings."""
    if lifecycle.expire_key(key, now):
        release_bindings(db, key)
        db.commit()


def get_key(db: Session, code: str, now: Optional[datetime] = None) -> VpnKey:
    key = db.query(VpnKey).filter_by(code=code).first()
    if not key:
        raise NotFound(f"Key not found: {code}")
    _apply_expiry(db, key, now or utcnow())
    return key


def list_keys(
    db: Session,
    group_code: str,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[List[VpnKey], int]:
    """
    Page through the keys of a group, newest first.

    Returns:
        (keys on this page, total matching keys)
    """
    now = now or utcnow()
    expire_keys(db, now)

    query = db.query(VpnKey).join(KeyGroup).filter(KeyGroup.code == group_code)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(VpnKey.code.like(pattern), VpnKey.customer_name.like(pattern)))
    if status:
        query = query.filter(VpnKey.status == status)

    total = query.count()
    keys = (
        query.order_by(VpnKey.created_at.desc(), VpnKey.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return keys, total


def activate_key(db: Session, code: str, acting_admin_id: int, now: Optional[datetime] = None) -> VpnKey:
    key = get_key(db, code, now)
    lifecycle.activate_key(key, now or utcnow())
    db.commit()
    logger.info("Admin %s activated key %s until %s", acting_admin_id, key.code, key.expires_at)
    return key


def bound_account_count(db: Session, key: VpnKey) -> int:
    return db.query(AccountKey).filter_by(key_id=key.id, is_active=True).count()


def release_bindings(db: Session, key: VpnKey) -> int:
    """Deactivate all active bindings of a key. Returns how many were released."""
    released = (
        db.query(AccountKey)
        .filter_by(key_id=key.id, is_active=True)
        .update({AccountKey.is_active: False}, synchronize_session=False)
    )
    if released:
        logger.info("Released %d binding(s) of key %s", released, key.code)
    return released


def expire_keys(db: Session, now: Optional[datetime] = None) -> List[str]:
    """
    Sweep every active key whose validity window has closed.

    Converges with the lazy expiry done on read: both apply the same rule
    with the same now. Returns the codes of keys expired by this call.
    """
    now = now or utcnow()
    due = (
        db.query(VpnKey)
        .filter(VpnKey.status == KeyStatus.ACTIVE, VpnKey.expires_at <= now)
        .all()
    )

    expired = []
    for key in due:
        if lifecycle.expire_key(key, now):
            release_bindings(db, key)
            expired.append(key.code)

    if expired:
        db.commit()
        logger.info("Expired %d key(s)", len(expired))
    return expired


def key_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    expire_keys(db, now)
    counts = dict(db.query(VpnKey.status, func.count(VpnKey.id)).group_by(VpnKey.status).all())
    return {
        "total_keys": sum(counts.values()),
        "active_keys": counts.get(KeyStatus.ACTIVE, 0),
        "expired_keys": counts.get(KeyStatus.EXPIRED, 0),
        "pending_keys": counts.get(KeyStatus.PENDING, 0),
    }


def expire_account_keys(db: Session, account_id: int, now: Optional[datetime] = None) -> List[str]:
    """Expire the due active keys bound to one account, as a read of them would."""
    now = now or utcnow()
    due = (
        db.query(VpnKey)
        .join(AccountKey, AccountKey.key_id == VpnKey.id)
        .filter(
            AccountKey.account_id == account_id,
            AccountKey.is_active.is_(True),
            VpnKey.status == KeyStatus.ACTIVE,
            VpnKey.expires_at <= now,
        )
        .all()
    )

    expired = []
    for key in due:
        if lifecycle.expire_key(key, now):
            release_bindings(db, key)
            expired.append(key.code)

    if expired:
        db.commit()
    return expired


def days_remaining(key: VpnKey, now: Optional[datetime] = None) -> int:
    """Whole days left on a key, rounded up; a pending key still has its full grant."""
    now = now or utcnow()
    if key.status == KeyStatus.PENDING or key.expires_at is None:
        return key.days_valid
    if key.status == KeyStatus.EXPIRED or key.expires_at <= now:
        return 0
    return math.ceil((key.expires_at - now).total_seconds() / 86400)


def check_key(db: Session, code: str, now: Optional[datetime] = None) -> KeyCheck:
    """
    Report a key's validity to its holder.

    The accounts of an active key are included so the holder can recover
    their credentials.
    """
    now = now or utcnow()
    key = get_key(db, code, now)
    remaining = days_remaining(key, now)

    if key.status == KeyStatus.EXPIRED:
        return KeyCheck(key=key, days_remaining=0, valid=False)

    accounts = []
    if key.status == KeyStatus.ACTIVE:
        accounts = (
            db.query(VpnAccount)
            .join(AccountKey, AccountKey.account_id == VpnAccount.id)
            .filter(
                AccountKey.key_id == key.id,
                AccountKey.is_active.is_(True),
                VpnAccount.is_active.is_(True),
                VpnAccount.expires_at > now,
            )
            .order_by(VpnAccount.created_at.desc(), VpnAccount.id.desc())
            .all()
        )
    return KeyCheck(key=key, days_remaining=remaining, valid=True, accounts=accounts)
