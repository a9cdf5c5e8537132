"""
Pydantic schemas for ledger tokens and sync results.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import TOKEN_CODE_PATTERN
from ..enums import SaleChannel, SyncStatus, TokenStatus
from ..exceptions import ValidationError


class TokenCreate(BaseModel):
    """Schema for inserting a token into the ledger."""

    username: str = Field(..., min_length=1, max_length=50, description="Credential identifier")
    password: Optional[str] = Field(None, max_length=50, description="Credential secret")
    wlan_id: Optional[str] = Field(None, description="Network the token grants access to")
    token_config_id: Optional[str] = Field(None, description="Configuration template")
    valid_time_seconds: Optional[int] = Field(None, gt=0, description="Validity after first use")
    max_devices: Optional[int] = Field(None, ge=1, le=10, description="Concurrent device limit")
    status: TokenStatus = Field(TokenStatus.AVAILABLE, description="Initial status")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: TokenStatus) -> TokenStatus:
        if not v.is_pre_use or v == TokenStatus.SOLD:
            raise ValidationError(
                f"New tokens must start as AVAILABLE or UNUSED, got {v.value}",
                field="status",
                value=v.value,
            )
        return v


class TokenRead(BaseModel):
    """Schema for reading a ledger token."""

    id: str
    tenant_id: str
    username: str
    wlan_id: Optional[str] = None
    status: TokenStatus
    first_used_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    device_created_at: Optional[datetime] = None
    device_expires_at: Optional[datetime] = None
    valid_time_seconds: Optional[int] = None
    connected_mac: Optional[str] = None
    hostname: Optional[str] = None
    device_type: Optional[str] = None
    first_seen_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    device_count: int = 0
    max_devices: Optional[int] = None
    bandwidth_used_down_mb: float = 0.0
    bandwidth_used_up_mb: float = 0.0
    usage_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class TokenSaleRequest(BaseModel):
    """Purchase callback payload."""

    username: str = Field(..., description="Token being sold")
    channel: SaleChannel = Field(SaleChannel.DIRECT, description="Sale channel")
    amount: float = Field(0.0, ge=0, description="Sale amount")
    sold_by: Optional[str] = Field(None, description="Operator who completed the sale")


class BatchSyncRequest(BaseModel):
    """A tenant-scoped batch of token identifiers to reconcile."""

    tenant_id: str = Field(..., min_length=1)
    usernames: List[str] = Field(..., description="Token identifiers, at most the batch limit")

    @field_validator("usernames")
    @classmethod
    def validate_usernames(cls, v: List[str]) -> List[str]:
        cleaned: List[str] = []
        for username in v:
            value = (username or "").strip()
            if not re.match(TOKEN_CODE_PATTERN, value):
                raise ValidationError(
                    f"Invalid token format: {username!r} (expected 8 alphanumeric characters)",
                    field="usernames",
                    value=username,
                )
            if value not in cleaned:
                cleaned.append(value)
        return cleaned


class BatchSyncResult(BaseModel):
    """Outcome of one batch reconciliation."""

    status: SyncStatus = SyncStatus.SUCCESS
    tokens: List[TokenRead] = Field(default_factory=list, description="Refreshed ledger rows")
    count: int = Field(0, description="Number of refreshed rows returned")
    tokens_checked: int = 0
    tokens_updated: int = 0
    missing: List[str] = Field(default_factory=list, description="Not known to the device")
    failed: List[str] = Field(default_factory=list, description="Local update failed")
    unknown: List[str] = Field(default_factory=list, description="Not present in the ledger")
    sync_duration_ms: int = 0


class HealthCheckResult(BaseModel):
    """Outcome of a device health check."""

    status: SyncStatus
    device_id: str
    healthy: bool
    error_message: Optional[str] = None
    sync_duration_ms: int = 0
