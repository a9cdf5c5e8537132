"""
Pydantic schemas for R710 WLAN / Guest Service configuration.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import ConfigUpdateOutcome
from ..exceptions import ValidationError

LOGO_TYPES = {"default", "none", "custom"}
DURATION_UNIT_SECONDS = {"hour": 3600, "day": 86400, "week": 604800}


def _check_logo_type(v: str) -> str:
    if v not in LOGO_TYPES:
        raise ValidationError(
            f"logo_type must be one of {sorted(LOGO_TYPES)}", field="logo_type", value=v
        )
    return v


def _check_ssid(v: str, field: str) -> str:
    if "'" in v or '"' in v or "<" in v or ">" in v:
        raise ValidationError("SSID must not contain quotes or angle brackets", field=field, value=v)
    return v


class WlanUpdateRequest(BaseModel):
    """Rename or rebrand a guest WLAN and its Guest Service."""

    wlan_id: str = Field(..., min_length=1, description="Current SSID, used by the device as key")
    guest_service_id: str = Field(..., min_length=1, description="Guest Service object id")
    new_ssid: str = Field(..., min_length=1, max_length=32, description="SSID to set")
    title: str = Field("Welcome to Guest WiFi !", max_length=255, description="Portal title")
    valid_days: int = Field(1, ge=1, le=365, description="Guest pass validity window")
    logo_type: str = Field("default", description="Portal logo variant")
    enable_friendly_key: bool = Field(True, description="Issue human friendly token keys")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("logo_type")
    @classmethod
    def validate_logo_type(cls, v: str) -> str:
        return _check_logo_type(v)

    @field_validator("new_ssid")
    @classmethod
    def validate_ssid(cls, v: str) -> str:
        return _check_ssid(v, "new_ssid")


class WlanCreateRequest(BaseModel):
    """A new guest WLAN together with the Guest Service it binds to."""

    ssid: str = Field(..., min_length=1, max_length=32, description="SSID, also the WLAN's name")
    title: str = Field("Welcome to Guest WiFi !", max_length=255, description="Portal title")
    valid_days: int = Field(1, ge=1, le=365, description="Guest pass validity window")
    logo_type: str = Field("default", description="Portal logo variant")
    enable_friendly_key: bool = Field(False, description="Issue human friendly token keys")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("logo_type")
    @classmethod
    def validate_logo_type(cls, v: str) -> str:
        return _check_logo_type(v)

    @field_validator("ssid")
    @classmethod
    def validate_ssid(cls, v: str) -> str:
        return _check_ssid(v, "ssid")


class GuestPassRequest(BaseModel):
    """Batch of guest passes to issue on one WLAN."""

    wlan_name: str = Field(..., min_length=1, description="WLAN the passes are valid on")
    count: int = Field(..., ge=1, le=100, description="Number of passes to generate")
    duration: int = Field(..., ge=1, description="Validity once first used")
    duration_unit: str = Field("hour", description="hour, day or week")
    device_limit: int = Field(2, ge=1, le=10, description="Devices sharing one pass")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("duration_unit")
    @classmethod
    def validate_duration_unit(cls, v: str) -> str:
        v = v.lower()
        if v not in DURATION_UNIT_SECONDS:
            raise ValidationError(
                f"duration_unit must be one of {sorted(DURATION_UNIT_SECONDS)}",
                field="duration_unit",
                value=v,
            )
        return v

    @property
    def valid_time_seconds(self) -> int:
        """Validity of each pass once first used."""
        return self.duration * DURATION_UNIT_SECONDS[self.duration_unit]


class WlanServiceInfo(BaseModel):
    """A WLAN as reported by a getconf on wlansvc-list."""

    id: str
    name: str
    ssid: Optional[str] = None
    guest_service_id: Optional[str] = None


class ConfigUpdateResult(BaseModel):
    """Single outcome of the three-step configuration update."""

    outcome: ConfigUpdateOutcome
    request: WlanUpdateRequest
    device_host: str
    failed_step: Optional[str] = None
    error_message: Optional[str] = None
    completed_at: Optional[datetime] = None

    @property
    def verified(self) -> bool:
        return self.outcome == ConfigUpdateOutcome.SUCCESS


class R710GuestToken(BaseModel):
    """A guest pass parsed from a guest-list query."""

    id: str
    username: str
    password: str = ""
    wlan: str = ""
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    valid_time_seconds: Optional[int] = None
    max_devices: int = 2
    remarks: str = ""
    used: bool = False
    connected_mac: Optional[str] = None
