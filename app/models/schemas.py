# ABOUTME: Pydantic request and response models for the admin API
# ABOUTME: Validates key/account commands and serializes ORM rows

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

KeyType = Literal["1key", "2key", "3key"]
KeyStatusValue = Literal["pending", "active", "expired"]
TimeFilter = Literal["all", "expired", "1hour", "6hours", "12hours", "1day", "3days", "7days", "30days"]


class LoginRequest(BaseModel):
    username: str
    password: str


class AdminOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class LoginResponse(BaseModel):
    token: str
    admin: AdminOut


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6, max_length=128)


class MessageResponse(BaseModel):
    message: str


class CreateKeysRequest(BaseModel):
    """Request body for bulk key creation."""
    group: str
    count: int = Field(ge=1, le=100)
    days: int = Field(ge=1, le=365)
    type: KeyType = "2key"
    account_count: int = Field(default=1, ge=1, le=10)
    customer: Optional[str] = None


class KeyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    status: KeyStatusValue
    days_valid: int
    key_type: KeyType
    account_count: Optional[int] = None
    customer_name: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    per_page: int
    has_next: bool
    has_prev: bool


class KeyListResponse(BaseModel):
    keys: List[KeyOut]
    pagination: Pagination


class KeyStats(BaseModel):
    total_keys: int
    active_keys: int
    expired_keys: int
    pending_keys: int


class CreateAccountRequest(BaseModel):
    """Request body for account creation. Username/password are generated when omitted."""
    expires_at: datetime
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    password: Optional[str] = Field(default=None, min_length=1, max_length=100)
    key_code: Optional[str] = None


class BindAccountRequest(BaseModel):
    key_code: str


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    password: str
    key_id: Optional[int] = None
    expires_at: datetime
    is_active: bool
    usage_count: int
    last_used: Optional[datetime] = None


class AccountStats(BaseModel):
    total: int
    active: int
    expired: int
    expiring_soon: int


class ExpireSweepResponse(BaseModel):
    expired: List[str]


class AccountListItem(AccountOut):
    key_count: int
    max_keys: int


class AccountListResponse(BaseModel):
    accounts: List[AccountListItem]
    pagination: Pagination


class AccountKeyOut(BaseModel):
    """An active binding of an account, seen from the key side."""
    code: str
    status: KeyStatusValue
    key_type: KeyType
    group_code: str
    expires_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None


class ExtendAccountsRequest(BaseModel):
    usernames: List[str] = Field(min_length=1, max_length=500)
    expires_at: datetime


class ExtendAccountsResponse(BaseModel):
    extended: List[str]
    expires_at: datetime


class KeyCodeRequest(BaseModel):
    key_code: str = Field(min_length=3, max_length=50)


class HolderAccount(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    username: str
    password: str
    expires_at: datetime


class KeyCheckResponse(BaseModel):
    code: str
    status: KeyStatusValue
    key_type: KeyType
    days_valid: int
    group_code: str
    group_name: str
    expires_at: Optional[datetime] = None
    days_remaining: int
    valid: bool
    accounts: List[HolderAccount]


class RedeemResponse(BaseModel):
    key_code: str
    username: str
    password: str
    expires_at: datetime
