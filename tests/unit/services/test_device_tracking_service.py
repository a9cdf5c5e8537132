"""
Tests for DeviceTrackingService associations, history and access lists.
"""

from datetime import timedelta

import pytest

from guest_wifi_sync.db import DeviceConnectionHistory, TokenDevice
from guest_wifi_sync.enums import MacAclListType
from guest_wifi_sync.exceptions import ValidationError
from guest_wifi_sync.schemas import DeviceClient
from guest_wifi_sync.services.device_tracking_service import normalize_mac
from tests.fixtures.factories import (
    ActiveTokenFactory,
    DeviceRegistryFactory,
    OpenHistoryFactory,
    TokenDeviceFactory,
)
from tests.fixtures.payloads import FIXED_NOW

MAC_1 = "AA:BB:CC:DD:EE:01"
MAC_2 = "AA:BB:CC:DD:EE:02"


def client(mac, online=True, ip=None):
    return DeviceClient(mac=mac, online=online, currentIp=ip)


class TestNormalizeMac:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("aa:bb:cc:dd:ee:01", MAC_1),
            (" AA-BB-CC-DD-EE-01 ", MAC_1),
        ],
    )
    def test_valid(self, raw, expected):
        assert normalize_mac(raw) == expected

    @pytest.mark.parametrize("raw", ["", "AABBCCDDEE01", "ZZ:BB:CC:DD:EE:01", None])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            normalize_mac(raw)


class TestRegistryAndAcl:
    def test_register_device_is_idempotent(self, device_tracking, sample_tenant_id):
        first = device_tracking.register_device(sample_tenant_id, "aa:bb:cc:dd:ee:01", hostname="phone")
        second = device_tracking.register_device(sample_tenant_id, MAC_1)

        assert first.id == second.id
        assert first.mac_address == MAC_1

    def test_blacklisted_mac_is_blocked(self, device_tracking, sample_tenant_id):
        device_tracking.add_acl_entry(sample_tenant_id, MAC_1, MacAclListType.BLACKLIST, reason="abuse")

        assert device_tracking.is_blocked(sample_tenant_id, MAC_1, now=FIXED_NOW)
        assert not device_tracking.is_blocked(sample_tenant_id, MAC_2, now=FIXED_NOW)

    def test_whitelist_overrides_blacklist(self, device_tracking, sample_tenant_id):
        device_tracking.add_acl_entry(sample_tenant_id, MAC_1, MacAclListType.BLACKLIST)
        device_tracking.add_acl_entry(sample_tenant_id, MAC_1, MacAclListType.WHITELIST)

        assert not device_tracking.is_blocked(sample_tenant_id, MAC_1, now=FIXED_NOW)

    def test_expired_blacklist_entry_ignored(self, device_tracking, sample_tenant_id):
        device_tracking.add_acl_entry(
            sample_tenant_id,
            MAC_1,
            MacAclListType.BLACKLIST,
            expires_at=FIXED_NOW - timedelta(days=1),
        )

        assert not device_tracking.is_blocked(sample_tenant_id, MAC_1, now=FIXED_NOW)

    def test_acl_scoped_to_tenant(self, device_tracking, sample_tenant_id):
        device_tracking.add_acl_entry("other-tenant", MAC_1, MacAclListType.BLACKLIST)

        assert not device_tracking.is_blocked(sample_tenant_id, MAC_1, now=FIXED_NOW)


class TestSyncTokenDevices:
    def test_new_mac_opens_history_and_association(self, device_tracking, factories, db_session):
        token = ActiveTokenFactory()
        registry = DeviceRegistryFactory(mac_address=MAC_1)

        changes = device_tracking.sync_token_devices(
            token, [client(MAC_1, ip="10.0.0.5")], now=FIXED_NOW, wlan_ssid="Guest"
        )

        assert changes == 1
        row = db_session.query(DeviceConnectionHistory).one()
        assert row.mac_address == MAC_1
        assert row.is_open
        assert row.device_registry_id == registry.id
        assert row.wlan_ssid == "Guest"
        assert row.ip_address == "10.0.0.5"

        association = db_session.query(TokenDevice).one()
        assert association.is_online is True
        assert association.current_ip == "10.0.0.5"

    def test_reported_mac_keeps_row_open(self, device_tracking, factories, db_session):
        token = ActiveTokenFactory(bandwidth_used_down_mb=12.5)
        OpenHistoryFactory(token=token, mac_address=MAC_1, connected_at=FIXED_NOW - timedelta(hours=1))

        changes = device_tracking.sync_token_devices(token, [client(MAC_1)], now=FIXED_NOW)

        assert changes == 0
        row = db_session.query(DeviceConnectionHistory).one()
        assert row.is_open
        assert row.bandwidth_used_down_mb == 12.5

    def test_absent_mac_closes_row(self, device_tracking, factories, db_session):
        token = ActiveTokenFactory()
        OpenHistoryFactory(token=token, mac_address=MAC_1, connected_at=FIXED_NOW - timedelta(minutes=30))
        TokenDeviceFactory(token=token, mac_address=MAC_1, is_online=True)

        changes = device_tracking.sync_token_devices(token, [client(MAC_2)], now=FIXED_NOW)

        assert changes == 2
        closed = (
            db_session.query(DeviceConnectionHistory)
            .filter(DeviceConnectionHistory.mac_address == MAC_1)
            .one()
        )
        assert not closed.is_open
        assert closed.duration_seconds == 1800

        old = db_session.query(TokenDevice).filter(TokenDevice.mac_address == MAC_1).one()
        assert old.is_online is False

    def test_close_all_history(self, device_tracking, factories, db_session):
        token = ActiveTokenFactory()
        OpenHistoryFactory(token=token, mac_address=MAC_1, connected_at=FIXED_NOW - timedelta(seconds=90))
        OpenHistoryFactory(token=token, mac_address=MAC_2, connected_at=FIXED_NOW - timedelta(seconds=30))

        closed = device_tracking.close_all_history(token, now=FIXED_NOW)

        assert closed == 2
        assert device_tracking.open_history(token.id) == []
        durations = sorted(row.duration_seconds for row in db_session.query(DeviceConnectionHistory))
        assert durations == [30, 90]

    def test_closed_rows_are_not_reopened(self, device_tracking, factories, db_session):
        token = ActiveTokenFactory()
        OpenHistoryFactory(
            token=token,
            mac_address=MAC_1,
            connected_at=FIXED_NOW - timedelta(hours=2),
            disconnected_at=FIXED_NOW - timedelta(hours=1),
            duration_seconds=3600,
        )

        device_tracking.sync_token_devices(token, [client(MAC_1)], now=FIXED_NOW)

        rows = db_session.query(DeviceConnectionHistory).order_by(DeviceConnectionHistory.connected_at).all()
        assert len(rows) == 2
        assert rows[0].duration_seconds == 3600
        assert rows[1].is_open

    def test_repeated_mac_in_one_report_opens_one_row(self, device_tracking, factories, db_session):
        token = ActiveTokenFactory()
        devices = [
            client("aa:bb:cc:dd:ee:01"),
            client("AA:BB:CC:DD:EE:01", online=False),
            client("aa-bb-cc-dd-ee-01"),
        ]

        changes = device_tracking.sync_token_devices(token, devices, now=FIXED_NOW)

        assert changes == 1
        assert len(device_tracking.open_history(token.id)) == 1
        association = db_session.query(TokenDevice).one()
        assert association.mac_address == MAC_1
        assert association.is_online is True

    def test_repeated_mac_keeps_existing_row(self, device_tracking, factories, db_session):
        token = ActiveTokenFactory()
        OpenHistoryFactory(token=token, mac_address=MAC_1, connected_at=FIXED_NOW - timedelta(minutes=5))

        changes = device_tracking.sync_token_devices(
            token, [client(MAC_1), client(MAC_1.lower())], now=FIXED_NOW
        )

        assert changes == 0
        assert db_session.query(DeviceConnectionHistory).count() == 1
