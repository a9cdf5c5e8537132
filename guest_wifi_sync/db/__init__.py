"""
SQLAlchemy models and database management for the token ledger.
"""

from .db_base import JSON, TimestampMixin, UUIDMixin, as_utc, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    get_db_manager,
    import_all_models,
    initialize_db,
)
from .db_device_models import DeviceConnectionHistory, DeviceRegistry, MacAclEntry, TokenDevice
from .db_sync_models import SyncLog
from .db_token_models import Token, TokenSale
from .db_wlan_models import WlanConfig

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "as_utc",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "import_all_models",
    "get_db_manager",
    "initialize_db",
    # Models
    "Token",
    "TokenSale",
    "TokenDevice",
    "DeviceConnectionHistory",
    "DeviceRegistry",
    "MacAclEntry",
    "SyncLog",
    "WlanConfig",
]
