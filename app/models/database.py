# ABOUTME: SQLAlchemy database models
# ABOUTME: Defines tables for key_groups, admins, vpn_keys, vpn_accounts and account_keys

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class KeyStatus:
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


# Maximum number of bound accounts per key type
KEY_TYPE_CAPACITY = {
    "1key": 1,
    "2key": 2,
    "3key": 3,
}


class KeyGroup(Base):
    """Category partitioning VPN keys. Soft-disabled via is_active, never deleted."""
    __tablename__ = "key_groups"

    id = Column(Integer, primary_key=True)
    code = Column(String(10), unique=True, nullable=False)
    name = Column(String(50), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    keys = relationship("VpnKey", back_populates="group")


class Admin(Base):
    """Admin user of the panel. Password is always a bcrypt hash."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True)
    username = Column(String(50), unique=True, nullable=False)
    password = Column(String(255), nullable=False)
    email = Column(String(100))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_login = Column(DateTime)
    is_active = Column(Boolean, default=True, nullable=False)


class VpnKey(Base):
    """Provisioning code that grants VPN accounts for days_valid once activated."""
    __tablename__ = "vpn_keys"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    group_id = Column(Integer, ForeignKey("key_groups.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=KeyStatus.PENDING, index=True)  # pending | active | expired
    days_valid = Column(Integer, nullable=False, default=30)
    key_type = Column(String(10), nullable=False, default="2key")  # 1key | 2key | 3key
    account_count = Column(Integer, default=1)
    customer_name = Column(String(100))
    customer_info = Column(Text)
    created_by = Column(Integer)  # admins.id, kept without FK for the audit trail
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    expires_at = Column(DateTime, index=True)

    group = relationship("KeyGroup", back_populates="keys")
    accounts = relationship("VpnAccount", back_populates="key")


class VpnAccount(Base):
    """VPN credential pair with its own expiry, optionally granted by a key."""
    __tablename__ = "vpn_accounts"

    id = Column(Integer, primary_key=True)
    username = Column(String(50), unique=True, nullable=False)
    password = Column(String(100), nullable=False)
    key_id = Column(Integer, ForeignKey("vpn_keys.id"), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_used = Column(DateTime)
    usage_count = Column(Integer, default=0, nullable=False)

    key = relationship("VpnKey", back_populates="accounts")


class AccountKey(Base):
    """Binding of an account to a key. Active rows count against key capacity."""
    __tablename__ = "account_keys"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("vpn_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    key_id = Column(Integer, ForeignKey("vpn_keys.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_at = Column(DateTime, default=utcnow, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_by = Column(Integer)

    key = relationship("VpnKey")

    __table_args__ = (
        UniqueConstraint("account_id", "key_id", name="unique_account_key"),
    )
