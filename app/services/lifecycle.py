# ABOUTME: Lifecycle rules for VPN keys and accounts
# ABOUTME: Pure transitions over model objects, independent of when a caller checks them

from datetime import datetime, timedelta

from app.exceptions import CapacityExceeded, Expired, InvalidTransition
from app.models.database import KEY_TYPE_CAPACITY, KeyStatus, utcnow


def key_capacity(key_type: str) -> int:
    """Number of accounts a key of this type may have bound."""
    try:
        return KEY_TYPE_CAPACITY[key_type]
    except KeyError:
        raise ValueError(f"Unknown key type: {key_type}") from None


def activate_key(key, now: datetime | None = None) -> None:
    """
    Move a pending key to active and start its validity window.

    Raises InvalidTransition for active or expired keys; the key is left untouched.
    """
    if key.status != KeyStatus.PENDING:
        raise InvalidTransition(
            f"Key {key.code} cannot be activated from status '{key.status}'",
            details={"code": key.code, "status": key.status},
        )

    now = now or utcnow()
    key.status = KeyStatus.ACTIVE
    key.expires_at = now + timedelta(days=key.days_valid)
    key.updated_at = now


def expire_key(key, now: datetime | None = None) -> bool:
    """
    Expire an active key whose validity window has closed.

    Returns True if the key changed status. Calling it again, or with an
    earlier time, never changes an expired key back.
    """
    now = now or utcnow()
    if key.status != KeyStatus.ACTIVE or key.expires_at is None:
        return False
    if now < key.expires_at:
        return False

    key.status = KeyStatus.EXPIRED
    key.updated_at = now
    return True


def bind_account(key, account, bound_count: int) -> None:
    """
    Bind an account to a key with bound_count accounts already attached.

    Raises CapacityExceeded when the key type has no free slot and
    InvalidTransition for expired keys. Nothing is mutated on failure.
    """
    if key.status == KeyStatus.EXPIRED:
        raise InvalidTransition(
            f"Key {key.code} is expired and cannot take new accounts",
            details={"code": key.code, "status": key.status},
        )

    capacity = key_capacity(key.key_type)
    if bound_count >= capacity:
        raise CapacityExceeded(
            f"Key {key.code} ({key.key_type}) already has {bound_count} of {capacity} accounts",
            details={"code": key.code, "capacity": capacity, "bound": bound_count},
        )

    account.key_id = key.id
    account.key = key


def is_account_usable(account, now: datetime | None = None) -> bool:
    """True iff the account is flagged active and has not reached expires_at."""
    now = now or utcnow()
    return bool(account.is_active) and now < account.expires_at


def reconcile_account(account, now: datetime | None = None) -> bool:
    """Clear a stale is_active flag on an expired account. Returns True if changed."""
    now = now or utcnow()
    if account.is_active and now >= account.expires_at:
        account.is_active = False
        return True
    return False


def record_usage(account, now: datetime | None = None) -> None:
    """Count one authenticated use. Raises Expired if the account is not usable."""
    now = now or utcnow()
    if not is_account_usable(account, now):
        raise Expired(
            f"Account {account.username} expired at {account.expires_at.isoformat()}",
            details={"username": account.username},
        )

    account.usage_count = (account.usage_count or 0) + 1
    account.last_used = now
