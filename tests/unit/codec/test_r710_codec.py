"""
Tests for the R710 ajax-request XML builders and reply parsers.
"""

import xml.etree.ElementTree as ET
from datetime import UTC, datetime

import pytest

from guest_wifi_sync.codec.r710_codec import (
    WLAN_MANDATORY_ELEMENTS,
    build_getconf,
    build_guest_list_query,
    build_guest_pass_delete,
    build_guest_pass_form,
    build_guest_service_create,
    build_guest_service_update,
    build_session_init,
    build_wlan_create,
    build_wlan_update,
    guest_pass_status,
    parse_guest_pass_creation,
    parse_guest_tokens,
    parse_session_key,
    parse_system_info,
    parse_wlan_list,
    parse_write_ack,
    updater_id,
)
from guest_wifi_sync.enums import TokenStatus
from guest_wifi_sync.exceptions import DeviceRejectedError, ValidationError
from guest_wifi_sync.schemas import (
    GuestPassRequest,
    R710GuestToken,
    WlanCreateRequest,
    WlanUpdateRequest,
)


@pytest.fixture
def update_request():
    return WlanUpdateRequest(
        wlan_id="Old Guest",
        guest_service_id="1",
        new_ssid="Cafe Guest",
        title="Welcome to Cafe",
        valid_days=3,
    )


class TestBuilders:
    def test_updater_id_format(self):
        assert updater_id("wlansvc-list", now_ms=1700000000000, rand=42) == "wlansvc-list.1700000000000.42"

    def test_getconf(self):
        root = ET.fromstring(build_getconf("wlansvc-list", updater="u.1.2"))

        assert root.tag == "ajax-request"
        assert root.get("action") == "getconf"
        assert root.get("comp") == "wlansvc-list"
        assert root.get("updater") == "u.1.2"
        assert root.get("DECRYPT_X") == "true"

    def test_session_init_requests_sysinfo(self):
        root = ET.fromstring(build_session_init())

        assert root.get("action") == "getstat"
        assert root.get("comp") == "system"
        assert root.find("sysinfo") is not None
        assert root.find("identity") is not None

    def test_guest_list_query_filters_self_service(self):
        root = ET.fromstring(build_guest_list_query())

        assert root.get("comp") == "guest-list"
        assert root.find("guest").get("self-service") == "!true"

    def test_guest_service_update(self, update_request):
        root = ET.fromstring(build_guest_service_update(update_request))
        service = root.find("guestservice")

        assert root.get("action") == "updobj"
        assert root.get("comp") == "guestservice-list"
        assert service.get("id") == "1"
        assert service.get("name") == "Cafe Guest"
        assert service.get("title") == "Welcome to Cafe"
        assert service.get("valid") == "3"
        assert len(service.findall("rule")) > 0

    def test_wlan_update_keys_on_current_ssid(self, update_request):
        root = ET.fromstring(build_wlan_update(update_request))
        wlan = root.find("wlansvc")

        assert root.get("comp") == "wlansvc-list"
        assert wlan.get("id") == "Old Guest"
        assert wlan.get("name") == "Cafe Guest"
        assert wlan.get("ssid") == "Cafe Guest"
        assert wlan.get("guestservice-id") == "1"
        assert wlan.get("is-guest") == "true"
        assert wlan.get("enable-friendly-key") == "true"

    def test_wlan_update_carries_mandatory_elements(self, update_request):
        wlan = ET.fromstring(build_wlan_update(update_request)).find("wlansvc")

        for tag, attrs in WLAN_MANDATORY_ELEMENTS:
            element = wlan.find(tag)
            assert element is not None, tag
            assert element.attrib == attrs

    def test_wlan_schedule_covers_whole_week(self, update_request):
        wlan = ET.fromstring(build_wlan_update(update_request)).find("wlansvc")
        assert len(wlan.find("wlan-schedule").get("value").split(":")) == 28

    @pytest.mark.parametrize("ssid", ["bad'name", 'bad"name', "<b>"])
    def test_ssid_rejects_markup(self, ssid):
        with pytest.raises(ValidationError):
            WlanUpdateRequest(wlan_id="x", guest_service_id="1", new_ssid=ssid)


class TestParsers:
    def test_write_ack_accepted(self):
        ack = parse_write_ack('<ajax-response><response type="object" id="wlansvc-list.1.2" /></ajax-response>')

        assert ack.accepted is True
        assert ack.object_id == "wlansvc-list.1.2"

    @pytest.mark.parametrize(
        "reply,error",
        [
            ("", "Empty response"),
            ("<ajax-response><error msg='bad object'/></ajax-response>", "bad object"),
            (
                "<ajax-response><response type='object' id='x'/><error>denied</error></ajax-response>",
                "denied",
            ),
            ("<ajax-response><response type='status'/></ajax-response>", "No object response in reply"),
        ],
    )
    def test_write_ack_rejected(self, reply, error):
        ack = parse_write_ack(reply)

        assert ack.accepted is False
        assert ack.error == error

    def test_malformed_xml(self):
        with pytest.raises(DeviceRejectedError):
            parse_write_ack("<ajax-response><unclosed>")

    def test_wlan_list(self):
        reply = (
            "<ajax-response><response type='object' id='x'><wlansvc-list>"
            "<wlansvc id='1' name='Cafe Guest' ssid='Cafe Guest' guestservice-id='1'/>"
            "<wlansvc id='2' name='Staff' ssid='Staff'/>"
            "</wlansvc-list></response></ajax-response>"
        )

        wlans = parse_wlan_list(reply)

        assert [w.name for w in wlans] == ["Cafe Guest", "Staff"]
        assert wlans[0].guest_service_id == "1"
        assert wlans[1].guest_service_id is None

    def test_system_info(self):
        reply = (
            "<ajax-response><response type='object' id='x'>"
            "<sysinfo version='200.15.6.212' model='R710'/><identity name='Lobby'/>"
            "</response></ajax-response>"
        )

        assert parse_system_info(reply) == {"version": "200.15.6.212", "model": "R710", "name": "Lobby"}

    def test_guest_tokens(self):
        reply = (
            "<ajax-response><response type='object' id='x'><guest-list>"
            "<guest id='7' full-name='ABCD1234' key='QWER-TYUI' wlan='Cafe Guest' "
            "create-time='1748700000' expire-time='0' valid-time='86400' share-number='3' used=''>"
            "<client mac='aa:bb:cc:dd:ee:01'/></guest>"
            "<guest id='8' full-name='EFGH5678' x-key='ZXCV' create-time='1748700000'/>"
            "</guest-list></response></ajax-response>"
        )

        used, fresh = parse_guest_tokens(reply)

        assert used.username == "ABCD1234"
        assert used.password == "QWER-TYUI"
        assert used.created_at.year == 2025
        assert used.expires_at is None
        assert used.valid_time_seconds == 86400
        assert used.max_devices == 3
        assert used.used is True
        assert used.connected_mac == "AA:BB:CC:DD:EE:01"

        assert fresh.password == "ZXCV"
        assert fresh.max_devices == 2
        assert fresh.used is False
        assert fresh.connected_mac is None

    @pytest.mark.parametrize("share_number", ["abc", "", " ", "0", "-1"])
    def test_guest_tokens_bad_share_number_uses_default(self, share_number):
        reply = (
            "<ajax-response><guest-list>"
            f"<guest id='9' full-name='ABCD1234' key='K' share-number='{share_number}'/>"
            "</guest-list></ajax-response>"
        )

        (guest,) = parse_guest_tokens(reply)

        assert guest.max_devices == 2


class TestObjectLifecycle:
    """addobj and delobj requests."""

    def test_guest_service_create_has_no_id(self):
        root = ET.fromstring(build_guest_service_create(WlanCreateRequest(ssid="Cafe Guest", valid_days=2)))

        assert root.get("action") == "addobj"
        assert root.get("comp") == "guestservice-list"
        service = root.find("guestservice")
        assert service.get("name") == "Cafe Guest"
        assert service.get("valid") == "2"
        assert service.get("id") is None
        assert len(service.findall("rule")) == 15

    def test_wlan_create_binds_guest_service(self):
        root = ET.fromstring(build_wlan_create(WlanCreateRequest(ssid="Cafe Guest"), "5"))

        assert root.get("action") == "addobj"
        wlan = root.find("wlansvc")
        assert wlan.get("ssid") == "Cafe Guest"
        assert wlan.get("guestservice-id") == "5"
        assert wlan.get("enable-friendly-key") == "false"
        assert wlan.get("id") is None
        assert [child.tag for child in wlan] == [tag for tag, _ in WLAN_MANDATORY_ELEMENTS]

    def test_guest_pass_delete(self):
        root = ET.fromstring(build_guest_pass_delete("7", updater="guest-list.1.2"))

        assert root.get("action") == "delobj"
        assert root.get("comp") == "guest-list"
        assert root.get("updater") == "guest-list.1.2"
        assert root.find("guest").attrib == {"id": "7"}


class TestGuestPassGeneration:
    """mon_guestdata / mon_createguest exchanges."""

    CREATED = (
        '{"result":"OK","ids":"11,12"}\n'
        "var batchEmailData = [];\n"
        "batchEmailData.push('ABCD1234|QWER-TYUI|');\n"
        "batchEmailData.push('EFGH5678|ZXCV-BNMM|');\n"
    )

    @pytest.fixture
    def pass_request(self):
        return GuestPassRequest(wlan_name="Cafe Guest", count=2, duration=3, duration_unit="Day")

    def test_form(self, pass_request):
        form = build_guest_pass_form("sess-key", pass_request)

        assert form["gentype"] == "multiple"
        assert form["key"] == "sess-key"
        assert form["duration"] == "3"
        assert form["duration-unit"] == "day_Days"
        assert form["createToNum"] == "2"
        assert form["guest-wlan"] == "Cafe Guest"
        assert form["limitnumber"] == "2"
        assert form["shared"] == "true"
        assert form["reauth"] == "false"

    def test_request_validity(self, pass_request):
        assert pass_request.valid_time_seconds == 3 * 86400

    def test_request_rejects_unknown_unit(self):
        with pytest.raises(ValidationError):
            GuestPassRequest(wlan_name="Cafe Guest", count=1, duration=1, duration_unit="month")

    @pytest.mark.parametrize("reply", ['{"key":"abc123"}', "{key: 'abc123', other: 1}"])
    def test_session_key(self, reply):
        assert parse_session_key(reply) == "abc123"

    @pytest.mark.parametrize("reply", ["", "{}", "<html></html>"])
    def test_session_key_missing(self, reply):
        with pytest.raises(DeviceRejectedError):
            parse_session_key(reply)

    def test_creation_reply(self, pass_request):
        passes = parse_guest_pass_creation(self.CREATED, pass_request)

        assert [(p.username, p.password) for p in passes] == [
            ("ABCD1234", "QWER-TYUI"),
            ("EFGH5678", "ZXCV-BNMM"),
        ]
        assert all(p.wlan == "Cafe Guest" and p.max_devices == 2 for p in passes)

    @pytest.mark.parametrize(
        "reply,message",
        [
            ('{"result":"FAIL","errorMsg":"Guest pass limit reached"}', "Guest pass limit reached"),
            ('{"result":"FAIL"}', "Guest pass creation failed"),
            ("<html>login</html>", "Could not parse R710 guest pass reply"),
        ],
    )
    def test_creation_refused(self, pass_request, reply, message):
        with pytest.raises(DeviceRejectedError) as exc_info:
            parse_guest_pass_creation(reply, pass_request)

        assert exc_info.value.message == message


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    "fields,expected",
    [
        ({}, TokenStatus.AVAILABLE),
        ({"used": True}, TokenStatus.ACTIVE),
        ({"started_at": datetime(2025, 6, 1, 9, 0, tzinfo=UTC)}, TokenStatus.ACTIVE),
        (
            {
                "started_at": datetime(2025, 5, 1, tzinfo=UTC),
                "expires_at": datetime(2025, 5, 2, tzinfo=UTC),
            },
            TokenStatus.EXPIRED,
        ),
        ({"expires_at": datetime(2025, 5, 2, tzinfo=UTC)}, TokenStatus.EXPIRED),
        ({"expires_at": datetime(2025, 7, 1, tzinfo=UTC)}, TokenStatus.AVAILABLE),
    ],
)
def test_guest_pass_status(fields, expected):
    guest = R710GuestToken(id="7", username="ABCD1234", **fields)

    assert guest_pass_status(guest, NOW) == expected
