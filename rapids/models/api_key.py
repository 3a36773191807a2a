from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from rapids.config import settings

KeyCharset = Literal["alphanumeric", "alphanumeric_lower", "alphanumeric_upper", "hex", "base64url"]
ValidationReason = Literal["not_found", "expired", "revoked", "rate_limited"]
KeyStatus = Literal["active", "expired", "revoked"]


class ApiKeyConfig(BaseModel):
    prefix: str = Field(default_factory=lambda: settings.default_key_prefix)
    length: int = Field(default_factory=lambda: settings.default_key_length, gt=0)
    charset: KeyCharset = Field(default_factory=lambda: settings.default_key_charset)
    # Seconds from creation; None or 0 never expires, negative is already expired
    expires_in: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    scopes: list[str] = Field(default_factory=list)
    name: str | None = None
    rate_limit: int | None = Field(default=None, gt=0)


class ApiKey(BaseModel):
    """Stored API key record. Holds the hash only, never the raw key."""

    id: str
    key_hash: str
    prefix: str
    suffix: str
    name: str | None = None
    created_at: datetime
    expires_at: datetime | None = None
    last_used_at: datetime | None = None
    is_active: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)
    scopes: list[str] = Field(default_factory=list)
    rate_limit: int | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def status(self, now: datetime) -> KeyStatus:
        if not self.is_active:
            return "revoked"
        if self.is_expired(now):
            return "expired"
        return "active"


class ApiKeyResponse(BaseModel):
    id: str
    prefix: str
    suffix: str
    name: str | None = None
    is_active: bool
    scopes: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    rate_limit: int | None = None
    created_at: datetime
    expires_at: datetime | None = None
    last_used_at: datetime | None = None
    status: KeyStatus

    @classmethod
    def from_record(cls, record: ApiKey, now: datetime) -> ApiKeyResponse:
        return cls(**record.model_dump(exclude={"key_hash"}), status=record.status(now))


class ApiKeyCreated(BaseModel):
    """Returned only on creation — includes the full key (shown once)."""
    key: str
    id: str
    expires_at: datetime | None = None


class ApiKeyCreateResult(BaseModel):
    key: str = Field(repr=False)
    record: ApiKey


class ApiKeyValidationResult(BaseModel):
    valid: bool
    reason: ValidationReason | None = None
    key: ApiKey | None = None


class ApiKeyListOptions(BaseModel):
    is_active: bool | None = None
    prefix: str | None = None
    include_expired: bool = False
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=50, ge=1)


class ApiKeyUpdate(BaseModel):
    name: str | None = None
    scopes: list[str] | None = None
    metadata: dict[str, Any] | None = None


class ApiKeyStats(BaseModel):
    total: int
    active: int
    expired: int
    revoked: int
