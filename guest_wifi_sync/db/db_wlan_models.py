"""
Locally confirmed R710 WLAN configuration.

Rows here mirror what the appliance has been verified to hold; they are
only written after a verified configuration update.
"""

from sqlalchemy import Boolean, Column, Integer, String, UniqueConstraint

from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class WlanConfig(Base, UUIDMixin, TimestampMixin):
    """A WLAN and its 1:1 Guest Service as last confirmed on the appliance."""

    __tablename__ = "r710_wlans"

    tenant_id = Column(String(100), nullable=False, index=True)
    device_host = Column(String(255), nullable=False)
    wlan_id = Column(String(64), nullable=False)  # device key, equal to the SSID
    guest_service_id = Column(String(64), nullable=False)
    ssid = Column(String(64), nullable=False)
    title = Column(String(255), nullable=True)
    valid_days = Column(Integer, nullable=False, default=1)
    logo_type = Column(String(20), nullable=False, default="default")
    enable_friendly_key = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("device_host", "guest_service_id", name="uq_r710_wlan_guest_service"),
    )
