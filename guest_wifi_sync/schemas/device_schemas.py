"""
Pydantic schemas for payloads reported by captive-portal devices.

Device payloads are untrusted: unknown fields are ignored and every
attribute is optional so a partially populated entry still parses.
"""

from datetime import UTC, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def epoch_to_datetime(seconds: Optional[int]) -> Optional[datetime]:
    """Device epochs are whole seconds; 0 and missing mean unset."""
    if not seconds:
        return None
    return datetime.fromtimestamp(int(seconds), UTC)


class DeviceClient(BaseModel):
    """A client device associated with a token, as reported by the portal."""

    mac: str
    online: bool = False
    current_ip: Optional[str] = Field(None, alias="currentIp")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("mac")
    @classmethod
    def normalize_mac(cls, v: str) -> str:
        return v.strip().upper().replace("-", ":")


class DeviceTokenReport(BaseModel):
    """Live attributes of one token from a batch lookup."""

    token: str
    success: bool = True
    error: Optional[str] = None
    status: Optional[str] = None
    business_id: Optional[str] = Field(None, alias="businessId")
    created: Optional[int] = None
    first_use: Optional[int] = None
    duration_minutes: Optional[int] = None
    bandwidth_used_down_mb: Optional[float] = None
    bandwidth_used_up_mb: Optional[float] = None
    usage_count: Optional[int] = None
    device_count: Optional[int] = None
    max_devices: Optional[int] = None
    hostname: Optional[str] = None
    device_type: Optional[str] = None
    first_seen: Optional[int] = None
    last_seen: Optional[int] = None
    devices: List[DeviceClient] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("devices", mode="before")
    @classmethod
    def default_devices(cls, v):
        return v or []

    @property
    def created_at(self) -> Optional[datetime]:
        return epoch_to_datetime(self.created)

    @property
    def first_used_at(self) -> Optional[datetime]:
        return epoch_to_datetime(self.first_use)

    @property
    def first_seen_at(self) -> Optional[datetime]:
        return epoch_to_datetime(self.first_seen)

    @property
    def last_seen_at(self) -> Optional[datetime]:
        return epoch_to_datetime(self.last_seen)

    @property
    def primary_mac(self) -> Optional[str]:
        """First online device, else the first reported device."""
        for device in self.devices:
            if device.online:
                return device.mac
        return self.devices[0].mac if self.devices else None


class BatchLookupResponse(BaseModel):
    """Decoded batch lookup envelope."""

    success: bool
    tokens: List[DeviceTokenReport] = Field(default_factory=list)
    total_requested: Optional[int] = None
    total_found: Optional[int] = None
    error: Optional[str] = None

    model_config = ConfigDict(extra="ignore")
