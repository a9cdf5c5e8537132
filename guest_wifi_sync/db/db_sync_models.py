"""
Sync audit log model.
"""

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from ..enums import SyncStatus, SyncType
from .db_base import JSON, utc_now
from .db_config import Base


class SyncLog(Base):
    """
    One row per batch sync or health check invocation. Write-only.
    """

    __tablename__ = "sync_logs"

    id = Column(String(36), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    tenant_id = Column(String(100), nullable=False, index=True)
    device_id = Column(String(255), nullable=True)  # portal base URL or appliance host
    sync_type = Column(String(20), nullable=False, default=SyncType.TOKEN_SYNC.value)
    status = Column(String(20), nullable=False)  # SUCCESS, DEVICE_UNREACHABLE, ERROR
    tokens_checked = Column(Integer, nullable=False, default=0)
    tokens_updated = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    sync_duration_ms = Column(Integer, nullable=True)
    synced_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    details = Column(JSON, nullable=True)  # failed, missing and unknown usernames

    __table_args__ = (Index("ix_sync_logs_tenant_timeline", "tenant_id", "synced_at"),)

    @classmethod
    def create(
        cls,
        tenant_id: str,
        sync_type: SyncType,
        status: SyncStatus,
        device_id: Optional[str] = None,
        tokens_checked: int = 0,
        tokens_updated: int = 0,
        error_message: Optional[str] = None,
        sync_duration_ms: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "SyncLog":
        """Factory method to create a new SyncLog record."""
        now = utc_now()
        return cls(
            id=str(uuid.uuid4()),
            created_at=now,
            tenant_id=tenant_id,
            device_id=device_id,
            sync_type=sync_type.value,
            status=status.value,
            tokens_checked=tokens_checked,
            tokens_updated=tokens_updated,
            error_message=error_message,
            sync_duration_ms=sync_duration_ms,
            synced_at=now,
            details=details,
        )

    def __repr__(self) -> str:
        return (
            f"<SyncLog(tenant_id='{self.tenant_id}', sync_type='{self.sync_type}', "
            f"status='{self.status}', checked={self.tokens_checked}, updated={self.tokens_updated})>"
        )
