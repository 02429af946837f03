# ABOUTME: VPN account data-access service
# ABOUTME: Account creation, listing, key binding and release, redemption and usage recording

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.exceptions import AlreadyExists, CapacityExceeded, Expired, InvalidExpiry, NotFound
from app.models.database import AccountKey, KeyStatus, VpnAccount, VpnKey, utcnow
from app.services import keys as key_service
from app.services import lifecycle
from app.utils.generators import generate_password, generate_username

logger = logging.getLogger(__name__)

# An account may hold at most this many active key bindings
MAX_KEYS_PER_ACCOUNT = 3

# Upper bound on time left for each listing filter
TIME_FILTERS = {
    "1hour": timedelta(hours=1),
    "6hours": timedelta(hours=6),
    "12hours": timedelta(hours=12),
    "1day": timedelta(days=1),
    "3days": timedelta(days=3),
    "7days": timedelta(days=7),
    "30days": timedelta(days=30),
}


def get_account(db: Session, username: str, now: Optional[datetime] = None) -> VpnAccount:
    """Fetch an account, clearing a stale is_active flag if it has expired."""
    account = db.query(VpnAccount).filter_by(username=username).first()
    if not account:
        raise NotFound(f"Account not found: {username}")
    if lifecycle.reconcile_account(account, now or utcnow()):
        db.commit()
    return account


def create_account(
    db: Session,
    acting_admin_id: int,
    expires_at: datetime,
    username: Optional[str] = None,
    password: Optional[str] = None,
    key_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> VpnAccount:
    """
    Create a VPN account, optionally bound to a key.

    Username and password are generated when omitted. expires_at must lie
    strictly in the future.
    """
    now = now or utcnow()
    if expires_at <= now:
        raise InvalidExpiry(f"expires_at must be in the future, got {expires_at.isoformat()}")

    if username is None:
        username = generate_username()
        while db.query(VpnAccount.id).filter_by(username=username).first():
            username = generate_username()
    elif db.query(VpnAccount.id).filter_by(username=username).first():
        raise AlreadyExists(f"Account already exists: {username}")

    account = VpnAccount(
        username=username,
        password=password or generate_password(),
        expires_at=expires_at,
        is_active=True,
        created_by=acting_admin_id,
        usage_count=0,
    )

    if key_code:
        key = key_service.get_key(db, key_code, now)
        lifecycle.bind_account(key, account, key_service.bound_account_count(db, key))
        db.add(account)
        db.flush()
        db.add(AccountKey(account_id=account.id, key_id=key.id, assigned_by=acting_admin_id))
    else:
        db.add(account)

    db.commit()
    logger.info("Admin %s created account %s", acting_admin_id, account.username)
    return account


def bind_account(
    db: Session,
    username: str,
    key_code: str,
    acting_admin_id: int,
    now: Optional[datetime] = None,
) -> VpnAccount:
    """
    Bind an existing account to a key.

    Fails with CapacityExceeded when the key has no free slot or the account
    already holds MAX_KEYS_PER_ACCOUNT active keys; nothing is written then.
    """
    now = now or utcnow()
    account = get_account(db, username, now)
    key = key_service.get_key(db, key_code, now)

    binding = db.query(AccountKey).filter_by(account_id=account.id, key_id=key.id).first()
    if binding and binding.is_active:
        raise AlreadyExists(f"Account {username} is already bound to key {key_code}")

    key_service.expire_account_keys(db, account.id, now)
    held = db.query(AccountKey).filter_by(account_id=account.id, is_active=True).count()
    if held >= MAX_KEYS_PER_ACCOUNT:
        raise CapacityExceeded(
            f"Account {username} already holds {held} active keys",
            details={"username": username, "limit": MAX_KEYS_PER_ACCOUNT},
        )

    lifecycle.bind_account(key, account, key_service.bound_account_count(db, key))

    if binding:
        binding.is_active = True
        binding.assigned_at = now
        binding.assigned_by = acting_admin_id
    else:
        db.add(AccountKey(account_id=account.id, key_id=key.id, assigned_at=now, assigned_by=acting_admin_id))

    db.commit()
    logger.info("Admin %s bound account %s to key %s", acting_admin_id, username, key_code)
    return account


def record_usage(db: Session, username: str, now: Optional[datetime] = None) -> VpnAccount:
    """Count one authenticated use of an account. Raises Expired past expiry."""
    now = now or utcnow()
    account = get_account(db, username, now)
    lifecycle.record_usage(account, now)
    db.commit()
    return account


def account_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or utcnow()
    base = db.query(VpnAccount)
    return {
        "total": base.count(),
        "active": base.filter(VpnAccount.is_active.is_(True), VpnAccount.expires_at > now).count(),
        "expired": base.filter(VpnAccount.expires_at <= now).count(),
        "expiring_soon": base.filter(
            VpnAccount.is_active.is_(True),
            VpnAccount.expires_at > now,
            VpnAccount.expires_at <= now + timedelta(hours=24),
        ).count(),
    }


def reconcile_expired_accounts(db: Session, now: Optional[datetime] = None) -> int:
    """Clear stale is_active flags in bulk. Returns how many accounts changed."""
    now = now or utcnow()
    changed = (
        db.query(VpnAccount)
        .filter(VpnAccount.is_active.is_(True), VpnAccount.expires_at <= now)
        .update({VpnAccount.is_active: False}, synchronize_session=False)
    )
    if changed:
        db.commit()
        logger.info("Deactivated %d expired account(s)", changed)
    return changed


def list_accounts(
    db: Session,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    time_filter: str = "all",
    now: Optional[datetime] = None,
) -> Tuple[List[Tuple[VpnAccount, int]], int]:
    """
    Page through accounts, soonest expiry first.

    time_filter is "all", "expired" or a TIME_FILTERS window of remaining
    validity.

    Returns:
        ([(account, active key count)] on this page, total matching accounts)
    """
    now = now or utcnow()
    if time_filter != "all" and time_filter != "expired" and time_filter not in TIME_FILTERS:
        raise ValueError(f"Unknown time filter: {time_filter}")
    reconcile_expired_accounts(db, now)

    query = db.query(VpnAccount)
    if search:
        query = query.filter(VpnAccount.username.like(f"%{search}%"))
    if time_filter == "expired":
        query = query.filter(VpnAccount.expires_at <= now)
    elif time_filter in TIME_FILTERS:
        query = query.filter(
            VpnAccount.expires_at > now,
            VpnAccount.expires_at <= now + TIME_FILTERS[time_filter],
        )

    total = query.count()
    accounts = (
        query.order_by(VpnAccount.expires_at.asc(), VpnAccount.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    counts = {}
    if accounts:
        counts = dict(
            db.query(AccountKey.account_id, func.count(AccountKey.id))
            .filter(AccountKey.account_id.in_([a.id for a in accounts]), AccountKey.is_active.is_(True))
            .group_by(AccountKey.account_id)
            .all()
        )
    return [(account, counts.get(account.id, 0)) for account in accounts], total


def list_account_keys(db: Session, username: str, now: Optional[datetime] = None) -> List[AccountKey]:
    """Active bindings of an account, most recently assigned first."""
    now = now or utcnow()
    account = get_account(db, username, now)
    key_service.expire_account_keys(db, account.id, now)

    return (
        db.query(AccountKey)
        .join(VpnKey, AccountKey.key_id == VpnKey.id)
        .filter(AccountKey.account_id == account.id, AccountKey.is_active.is_(True))
        .order_by(AccountKey.assigned_at.desc(), AccountKey.id.desc())
        .all()
    )


def unassign_key(
    db: Session,
    username: str,
    key_code: str,
    acting_admin_id: int,
    now: Optional[datetime] = None,
) -> VpnAccount:
    """
    Release one key from an account.

    The key keeps its status; its freed slot can be bound again. When the
    released key was the account's current key, the account falls back to
    its most recent remaining binding.
    """
    now = now or utcnow()
    account = get_account(db, username, now)
    key = db.query(VpnKey).filter_by(code=key_code).first()
    binding = None
    if key:
        binding = db.query(AccountKey).filter_by(account_id=account.id, key_id=key.id, is_active=True).first()
    if not binding:
        raise NotFound(f"Key {key_code} is not assigned to account {username}")

    binding.is_active = False

    if account.key_id == key.id:
        latest = (
            db.query(AccountKey)
            .filter(AccountKey.account_id == account.id, AccountKey.is_active.is_(True), AccountKey.id != binding.id)
            .order_by(AccountKey.assigned_at.desc(), AccountKey.id.desc())
            .first()
        )
        account.key_id = latest.key_id if latest else None
    account.updated_at = now

    db.commit()
    logger.info("Admin %s unassigned key %s from account %s", acting_admin_id, key_code, username)
    return account


def extend_accounts(
    db: Session,
    usernames: List[str],
    expires_at: datetime,
    acting_admin_id: int,
    now: Optional[datetime] = None,
) -> List[VpnAccount]:
    """
    Move the expiry of several accounts to expires_at.

    All or nothing: an unknown username fails the whole call. Extended
    accounts are usable again until the new expiry.
    """
    now = now or utcnow()
    if expires_at <= now:
        raise InvalidExpiry(f"expires_at must be in the future, got {expires_at.isoformat()}")

    wanted = list(dict.fromkeys(usernames))
    accounts = db.query(VpnAccount).filter(VpnAccount.username.in_(wanted)).all()
    missing = sorted(set(wanted) - {a.username for a in accounts})
    if missing:
        raise NotFound(f"Accounts not found: {', '.join(missing)}", details={"missing": missing})

    for account in accounts:
        account.expires_at = expires_at
        account.is_active = True
        account.updated_at = now

    db.commit()
    logger.info("Admin %s extended %d account(s) to %s", acting_admin_id, len(accounts), expires_at)
    return accounts


def redeem_key(db: Session, key_code: str, now: Optional[datetime] = None) -> VpnAccount:
    """
    Turn a key into a VPN account for its holder.

    A pending key is activated first. The new account gets generated
    credentials and expires together with the key. Raises Expired for an
    expired key and CapacityExceeded when every slot is taken; nothing is
    written then.
    """
    now = now or utcnow()
    key = key_service.get_key(db, key_code, now)
    if key.status == KeyStatus.EXPIRED:
        raise Expired(f"Key {key_code} has expired", details={"code": key_code})

    username = generate_username()
    while db.query(VpnAccount.id).filter_by(username=username).first():
        username = generate_username()
    account = VpnAccount(username=username, password=generate_password(), is_active=True, usage_count=0)

    lifecycle.bind_account(key, account, key_service.bound_account_count(db, key))
    if key.status == KeyStatus.PENDING:
        lifecycle.activate_key(key, now)
    account.expires_at = key.expires_at

    db.add(account)
    db.flush()
    db.add(AccountKey(account_id=account.id, key_id=key.id, assigned_at=now))
    db.commit()
    logger.info("Key %s redeemed for account %s", key_code, account.username)
    return account
