"""Service layer for business logic."""

from .base_service import SessionManagedService
from .config_update_coordinator import ConfigUpdateCoordinator, confirm_wlan_config
from .device_tracking_service import DeviceTrackingService
from .guest_pass_service import GuestPassService
from .sync_engine import SyncEngine
from .token_ledger import TokenLedger, resolve_status, validate_transition

__all__ = [
    "SessionManagedService",
    "ConfigUpdateCoordinator",
    "confirm_wlan_config",
    "DeviceTrackingService",
    "GuestPassService",
    "SyncEngine",
    "TokenLedger",
    "resolve_status",
    "validate_transition",
]
