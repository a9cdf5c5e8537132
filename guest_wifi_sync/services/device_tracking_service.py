"""
Device tracking: token/device associations and connection history.

Associations (TokenDevice) are upserted from every batch report. History
rows are append-only: one is opened when a MAC first appears on a token,
and closed once, when the MAC leaves the report or the token leaves the
device.
"""

import re
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_

from ..constants import MAC_ADDRESS_PATTERN
from ..context.operation_context import operation
from ..db.db_base import as_utc, utc_now
from ..db.db_device_models import DeviceConnectionHistory, DeviceRegistry, MacAclEntry, TokenDevice
from ..db.db_token_models import Token
from ..enums import MacAclListType
from ..exceptions import ErrorCode, ValidationError
from ..schemas.device_schemas import DeviceClient
from ..utils.crud_helpers import get_record
from .base_service import SessionManagedService


def normalize_mac(mac: str) -> str:
    """Upper-case ``AA:BB:CC:DD:EE:FF``; raises ValidationError otherwise."""
    value = (mac or "").strip().upper().replace("-", ":")
    if not re.match(MAC_ADDRESS_PATTERN, value):
        raise ValidationError(
            f"Invalid MAC address: {mac!r}",
            field="mac_address",
            error_code=ErrorCode.INVALID_FORMAT,
            value=mac,
        )
    return value


class DeviceTrackingService(SessionManagedService):
    """Writes association and history rows; reads registry and ACL rows."""

    # ==================== REGISTRY / ACL ====================

    def find_registry(self, tenant_id: str, mac_address: str) -> Optional[DeviceRegistry]:
        return get_record(
            self.session, DeviceRegistry, {"mac_address": mac_address.upper()}, tenant_id=tenant_id
        )

    @operation()
    def register_device(
        self,
        tenant_id: str,
        mac_address: str,
        hostname: Optional[str] = None,
        device_type: Optional[str] = None,
        first_seen_system: Optional[str] = None,
    ) -> DeviceRegistry:
        """Create a registry row, or return the existing one for this MAC."""
        mac = normalize_mac(mac_address)
        existing = self.find_registry(tenant_id, mac)
        if existing is not None:
            return existing

        device = DeviceRegistry(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            mac_address=mac,
            hostname=hostname,
            device_type=device_type,
            first_seen_system=first_seen_system,
            first_seen_at=utc_now(),
            total_connections=0,
        )
        self.session.add(device)
        self.session.flush()
        return device

    @operation()
    def add_acl_entry(
        self,
        tenant_id: str,
        mac_address: str,
        list_type: MacAclListType,
        reason: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> MacAclEntry:
        entry = MacAclEntry(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            mac_address=normalize_mac(mac_address),
            list_type=list_type.value,
            reason=reason,
            expires_at=expires_at,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def is_blocked(self, tenant_id: str, mac_address: str, now: Optional[datetime] = None) -> bool:
        """True when an unexpired BLACKLIST entry exists and no unexpired WHITELIST entry does."""
        now = now or utc_now()
        entries = (
            self.session.query(MacAclEntry)
            .filter(
                MacAclEntry.tenant_id == tenant_id,
                MacAclEntry.mac_address == mac_address.upper(),
                or_(MacAclEntry.expires_at.is_(None), MacAclEntry.expires_at > now),
            )
            .all()
        )
        list_types = {entry.list_type for entry in entries}
        if MacAclListType.WHITELIST.value in list_types:
            return False
        return MacAclListType.BLACKLIST.value in list_types

    # ==================== ASSOCIATIONS ====================

    def upsert_association(self, token: Token, device: DeviceClient, now: datetime) -> TokenDevice:
        association = (
            self.session.query(TokenDevice)
            .filter(TokenDevice.token_id == token.id, TokenDevice.mac_address == device.mac)
            .first()
        )
        if association is None:
            association = TokenDevice(
                id=str(uuid.uuid4()),
                token_id=token.id,
                mac_address=device.mac,
                first_seen=now,
            )
            self.session.add(association)

        association.is_online = device.online
        association.current_ip = device.current_ip
        association.last_seen = now
        return association

    def open_history(self, token_id: str) -> List[DeviceConnectionHistory]:
        return (
            self.session.query(DeviceConnectionHistory)
            .filter(
                DeviceConnectionHistory.token_id == token_id,
                DeviceConnectionHistory.disconnected_at.is_(None),
            )
            .all()
        )

    def sync_token_devices(
        self,
        token: Token,
        devices: List[DeviceClient],
        now: Optional[datetime] = None,
        wlan_ssid: Optional[str] = None,
    ) -> int:
        """
        Reconcile associations and history for one reported token.

        Returns the number of history rows opened or closed.
        """
        now = now or utc_now()
        changes = 0

        open_rows = {row.mac_address: row for row in self.open_history(token.id)}
        reported_macs = set()

        for device in devices:
            # A MAC listed twice in one report is one device
            if device.mac in reported_macs:
                continue
            reported_macs.add(device.mac)
            self.upsert_association(token, device, now)

            row = open_rows.get(device.mac)
            if row is None:
                registry = self.find_registry(token.tenant_id, device.mac)
                row = DeviceConnectionHistory(
                    id=str(uuid.uuid4()),
                    tenant_id=token.tenant_id,
                    token_id=token.id,
                    device_registry_id=registry.id if registry else None,
                    mac_address=device.mac,
                    wlan_ssid=wlan_ssid,
                    ip_address=device.current_ip,
                    bandwidth_used_down_mb=token.bandwidth_used_down_mb or 0.0,
                    bandwidth_used_up_mb=token.bandwidth_used_up_mb or 0.0,
                    connected_at=now,
                )
                self.session.add(row)
                open_rows[device.mac] = row
                changes += 1
            else:
                row.ip_address = device.current_ip or row.ip_address
                row.bandwidth_used_down_mb = token.bandwidth_used_down_mb or 0.0
                row.bandwidth_used_up_mb = token.bandwidth_used_up_mb or 0.0

        for mac, row in open_rows.items():
            if mac not in reported_macs:
                self._close(row, now)
                changes += 1

        # Associations for MACs the device stopped reporting go offline
        stale = (
            self.session.query(TokenDevice)
            .filter(TokenDevice.token_id == token.id, TokenDevice.is_online.is_(True))
            .all()
        )
        for association in stale:
            if association.mac_address not in reported_macs:
                association.is_online = False

        return changes

    def close_all_history(self, token: Token, now: Optional[datetime] = None) -> int:
        """Close every open history row for a token the device no longer knows."""
        now = now or utc_now()
        rows = self.open_history(token.id)
        for row in rows:
            self._close(row, now)
        for association in self.session.query(TokenDevice).filter(TokenDevice.token_id == token.id):
            association.is_online = False
        return len(rows)

    def _close(self, row: DeviceConnectionHistory, now: datetime) -> None:
        row.disconnected_at = now
        connected_at = as_utc(row.connected_at)
        row.duration_seconds = max(0, int((now - connected_at).total_seconds()))
        self.logger.debug(
            "Closed connection history",
            extra={"token_id": row.token_id, "mac_address": row.mac_address},
        )
