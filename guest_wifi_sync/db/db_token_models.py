"""
Guest access token ledger models.

Tokens are never physically deleted; terminal statuses mark the end of
their life. Status values are stored as the TokenStatus string value.
"""

import uuid
from typing import Optional

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String

from ..enums import SaleChannel, TokenStatus
from .db_base import TimestampMixin, UUIDMixin, as_utc, utc_now
from .db_config import Base


class Token(Base, UUIDMixin, TimestampMixin):
    """A single guest access credential and its device-reported state."""

    __tablename__ = "wifi_tokens"

    # Ownership
    tenant_id = Column(String(100), nullable=False, index=True)
    wlan_id = Column(String(64), nullable=True)
    token_config_id = Column(String(36), nullable=True)

    # Credential pair, unique across every tenant and device
    username = Column(String(50), nullable=False, unique=True)
    password = Column(String(50), nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default=TokenStatus.AVAILABLE.value, index=True)
    device_created_at = Column(DateTime(timezone=True), nullable=True)
    device_expires_at = Column(DateTime(timezone=True), nullable=True)
    valid_time_seconds = Column(Integer, nullable=True)
    first_used_at = Column(DateTime(timezone=True), nullable=True)
    sold_at = Column(DateTime(timezone=True), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    # Device linkage hints
    connected_mac = Column(String(17), nullable=True)
    hostname = Column(String(100), nullable=True)
    device_type = Column(String(50), nullable=True)
    first_seen_at = Column(DateTime(timezone=True), nullable=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    device_count = Column(Integer, nullable=False, default=0)
    max_devices = Column(Integer, nullable=True)

    # Cumulative counters, replaced wholesale by the device
    bandwidth_used_down_mb = Column(Float, nullable=False, default=0.0)
    bandwidth_used_up_mb = Column(Float, nullable=False, default=0.0)
    usage_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_wifi_token_tenant_status", "tenant_id", "status"),)

    @property
    def token_status(self) -> TokenStatus:
        return TokenStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.token_status.is_terminal

    @property
    def first_used_at_utc(self):
        return as_utc(self.first_used_at)

    def __repr__(self) -> str:
        return f"<Token(username='{self.username}', status='{self.status}', tenant_id='{self.tenant_id}')>"


class TokenSale(Base, UUIDMixin, TimestampMixin):
    """Append-only record of a completed token purchase."""

    __tablename__ = "wifi_token_sales"

    tenant_id = Column(String(100), nullable=False, index=True)
    token_id = Column(String(36), ForeignKey("wifi_tokens.id"), nullable=False, unique=True)
    channel = Column(String(10), nullable=False, default=SaleChannel.DIRECT.value)
    amount = Column(Float, nullable=False, default=0.0)
    sold_by = Column(String(100), nullable=True)
    sold_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    @classmethod
    def create(
        cls,
        tenant_id: str,
        token_id: str,
        channel: SaleChannel = SaleChannel.DIRECT,
        amount: float = 0.0,
        sold_by: Optional[str] = None,
    ) -> "TokenSale":
        """Factory method to create a new TokenSale record."""
        return cls(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            token_id=token_id,
            channel=channel.value,
            amount=amount,
            sold_by=sold_by,
            sold_at=utc_now(),
        )
