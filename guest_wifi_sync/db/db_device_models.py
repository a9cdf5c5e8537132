"""
Client device models: registry, access lists, token associations and
connection history.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .db_base import TimestampMixin, UUIDMixin, utc_now
from .db_config import Base


class DeviceRegistry(Base, UUIDMixin, TimestampMixin):
    """Physical client device known across systems, keyed by MAC."""

    __tablename__ = "device_registry"

    tenant_id = Column(String(100), nullable=False, index=True)
    mac_address = Column(String(17), nullable=False)
    hostname = Column(String(100), nullable=True)
    device_type = Column(String(50), nullable=True)
    first_seen_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    first_seen_system = Column(String(20), nullable=True)  # ESP32, R710
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    total_connections = Column(Integer, nullable=False, default=0)

    __table_args__ = (UniqueConstraint("tenant_id", "mac_address", name="uq_device_registry_mac"),)


class MacAclEntry(Base, UUIDMixin, TimestampMixin):
    """Allow/deny list entry applied at the network level."""

    __tablename__ = "mac_acl_entries"

    tenant_id = Column(String(100), nullable=False, index=True)
    mac_address = Column(String(17), nullable=False, index=True)
    list_type = Column(String(10), nullable=False)  # BLACKLIST, WHITELIST
    reason = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)


class TokenDevice(Base, UUIDMixin, TimestampMixin):
    """Current association of a client device with a token, upserted by sync."""

    __tablename__ = "wifi_token_devices"

    token_id = Column(String(36), ForeignKey("wifi_tokens.id"), nullable=False, index=True)
    mac_address = Column(String(17), nullable=False)
    is_online = Column(Boolean, nullable=False, default=False)
    current_ip = Column(String(45), nullable=True)
    first_seen = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    last_seen = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (UniqueConstraint("token_id", "mac_address", name="uq_token_device_mac"),)


class DeviceConnectionHistory(Base, UUIDMixin):
    """
    Append-only record of a token/MAC association over time.

    A row is open while ``disconnected_at`` is null. Closing it is the last
    write it ever receives.
    """

    __tablename__ = "device_connection_history"

    tenant_id = Column(String(100), nullable=False, index=True)
    token_id = Column(String(36), ForeignKey("wifi_tokens.id"), nullable=False)
    device_registry_id = Column(String(36), ForeignKey("device_registry.id"), nullable=True)
    mac_address = Column(String(17), nullable=False)
    wlan_ssid = Column(String(64), nullable=True)
    ip_address = Column(String(45), nullable=True)
    bandwidth_used_down_mb = Column(Float, nullable=False, default=0.0)
    bandwidth_used_up_mb = Column(Float, nullable=False, default=0.0)
    connected_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    disconnected_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_connection_history_token_mac", "token_id", "mac_address"),
        Index("ix_connection_history_open", "token_id", "disconnected_at"),
    )

    @property
    def is_open(self) -> bool:
        return self.disconnected_at is None
