"""Pydantic schemas for ledger rows, device payloads and device configuration."""

from .device_schemas import BatchLookupResponse, DeviceClient, DeviceTokenReport, epoch_to_datetime
from .token_schemas import (
    BatchSyncRequest,
    BatchSyncResult,
    HealthCheckResult,
    TokenCreate,
    TokenRead,
    TokenSaleRequest,
)
from .wlan_schemas import (
    ConfigUpdateResult,
    GuestPassRequest,
    R710GuestToken,
    WlanCreateRequest,
    WlanServiceInfo,
    WlanUpdateRequest,
)

__all__ = [
    "BatchLookupResponse",
    "DeviceClient",
    "DeviceTokenReport",
    "epoch_to_datetime",
    "BatchSyncRequest",
    "BatchSyncResult",
    "HealthCheckResult",
    "TokenCreate",
    "TokenRead",
    "TokenSaleRequest",
    "ConfigUpdateResult",
    "GuestPassRequest",
    "R710GuestToken",
    "WlanCreateRequest",
    "WlanServiceInfo",
    "WlanUpdateRequest",
]
