# ABOUTME: Tests for the key and account lifecycle rules
# ABOUTME: Validates status transitions, capacity limits and usage recording without a database

import pytest
from datetime import datetime, timedelta

from app.exceptions import CapacityExceeded, Expired, InvalidTransition
from app.models.database import KeyStatus, VpnAccount, VpnKey
from app.services import lifecycle

T0 = datetime(2025, 1, 1, 12, 0, 0)


def make_key(status=KeyStatus.PENDING, key_type="2key", days_valid=30, expires_at=None):
    return VpnKey(id=1, code="FBX001", group_id=1, status=status, key_type=key_type,
                  days_valid=days_valid, expires_at=expires_at)


def make_account(expires_at, is_active=True, usage_count=0):
    return VpnAccount(id=1, username="vpnuser1", password="secret", expires_at=expires_at,
                      is_active=is_active, usage_count=usage_count)


def test_activate_pending_key_sets_expiry_from_days_valid():
    key = make_key(days_valid=30)

    lifecycle.activate_key(key, T0)

    assert key.status == KeyStatus.ACTIVE
    assert key.expires_at == T0 + timedelta(days=30)


def test_activate_twice_fails_and_keeps_first_expiry():
    key = make_key()
    lifecycle.activate_key(key, T0)
    first_expiry = key.expires_at

    with pytest.raises(InvalidTransition):
        lifecycle.activate_key(key, T0 + timedelta(days=5))

    assert key.status == KeyStatus.ACTIVE
    assert key.expires_at == first_expiry


def test_activate_expired_key_is_rejected():
    key = make_key(status=KeyStatus.EXPIRED, expires_at=T0)

    with pytest.raises(InvalidTransition):
        lifecycle.activate_key(key, T0 + timedelta(days=1))

    assert key.status == KeyStatus.EXPIRED


def test_expire_key_before_expiry_is_noop():
    key = make_key()
    lifecycle.activate_key(key, T0)

    assert lifecycle.expire_key(key, T0 + timedelta(days=29)) is False
    assert key.status == KeyStatus.ACTIVE


def test_expire_key_at_exact_expiry_transitions():
    key = make_key()
    lifecycle.activate_key(key, T0)

    assert lifecycle.expire_key(key, T0 + timedelta(days=30)) is True
    assert key.status == KeyStatus.EXPIRED


def test_expire_key_is_idempotent_with_non_decreasing_time():
    key = make_key()
    lifecycle.activate_key(key, T0)

    observed = []
    for day in (10, 29, 30, 31, 31, 45):
        lifecycle.expire_key(key, T0 + timedelta(days=day))
        observed.append(key.status)

    assert observed == [KeyStatus.ACTIVE, KeyStatus.ACTIVE] + [KeyStatus.EXPIRED] * 4


def test_expire_key_never_touches_pending_key():
    key = make_key()

    assert lifecycle.expire_key(key, T0 + timedelta(days=365)) is False
    assert key.status == KeyStatus.PENDING


def test_status_only_moves_forward():
    """pending -> active -> expired; nothing leads back."""
    key = make_key(days_valid=1)
    order = {KeyStatus.PENDING: 0, KeyStatus.ACTIVE: 1, KeyStatus.EXPIRED: 2}
    seen = [key.status]

    lifecycle.activate_key(key, T0)
    seen.append(key.status)
    lifecycle.expire_key(key, T0 + timedelta(days=2))
    seen.append(key.status)
    lifecycle.expire_key(key, T0)
    seen.append(key.status)
    with pytest.raises(InvalidTransition):
        lifecycle.activate_key(key, T0 + timedelta(days=3))
    seen.append(key.status)

    ranks = [order[s] for s in seen]
    assert ranks == sorted(ranks)
    assert seen[-1] == KeyStatus.EXPIRED


@pytest.mark.parametrize("key_type,capacity", [("1key", 1), ("2key", 2), ("3key", 3)])
def test_key_capacity_by_type(key_type, capacity):
    assert lifecycle.key_capacity(key_type) == capacity


def test_key_capacity_unknown_type():
    with pytest.raises(ValueError):
        lifecycle.key_capacity("9key")


def test_bind_account_on_1key_allows_only_one():
    key = make_key(key_type="1key")
    first = make_account(T0 + timedelta(days=30))
    second = make_account(T0 + timedelta(days=30))
    second.username = "vpnuser2"

    lifecycle.bind_account(key, first, bound_count=0)
    assert first.key_id == key.id

    with pytest.raises(CapacityExceeded):
        lifecycle.bind_account(key, second, bound_count=1)
    assert second.key_id is None


def test_bind_account_to_expired_key_is_rejected():
    key = make_key(status=KeyStatus.EXPIRED, expires_at=T0)
    account = make_account(T0 + timedelta(days=30))

    with pytest.raises(InvalidTransition):
        lifecycle.bind_account(key, account, bound_count=0)
    assert account.key_id is None


def test_is_account_usable():
    account = make_account(T0 + timedelta(hours=2))

    assert lifecycle.is_account_usable(account, T0)
    assert not lifecycle.is_account_usable(account, T0 + timedelta(hours=2))

    account.is_active = False
    assert not lifecycle.is_account_usable(account, T0)


def test_is_account_usable_does_not_modify_flag():
    account = make_account(T0)

    assert not lifecycle.is_account_usable(account, T0 + timedelta(days=1))
    assert account.is_active is True


def test_reconcile_account_clears_stale_flag():
    account = make_account(T0)

    assert lifecycle.reconcile_account(account, T0 - timedelta(seconds=1)) is False
    assert account.is_active is True
    assert lifecycle.reconcile_account(account, T0 + timedelta(seconds=1)) is True
    assert account.is_active is False


def test_record_usage_increments_counter():
    account = make_account(T0 + timedelta(days=1), usage_count=4)

    lifecycle.record_usage(account, T0)
    lifecycle.record_usage(account, T0 + timedelta(hours=1))

    assert account.usage_count == 6
    assert account.last_used == T0 + timedelta(hours=1)


def test_record_usage_after_expiry_raises_without_mutation():
    account = make_account(T0, usage_count=3)

    with pytest.raises(Expired):
        lifecycle.record_usage(account, T0 + timedelta(minutes=1))

    assert account.usage_count == 3
    assert account.last_used is None
