"""
Tests for the R710 admin session client.
"""

from unittest.mock import Mock

import pytest
import requests

from guest_wifi_sync.clients.r710_client import R710Client
from guest_wifi_sync.config import R710Config
from guest_wifi_sync.constants import R710_CSRF_HEADER
from guest_wifi_sync.exceptions import DeviceRejectedError, DeviceUnreachableError, ErrorCode
from guest_wifi_sync.schemas import GuestPassRequest, WlanCreateRequest, WlanUpdateRequest
from tests.fixtures.payloads import make_response

HOST = "https://r710.test"
ACK = "<ajax-response><response type='object' id='updater.1.2'/></ajax-response>"
SYSINFO = (
    "<ajax-response><response type='object' id='x'>"
    "<sysinfo version='200.15' model='R710'/><identity name='Lobby'/>"
    "</response></ajax-response>"
)
WLANS = (
    "<ajax-response><response type='object' id='x'><wlansvc-list>"
    "<wlansvc id='Cafe Guest' name='Cafe Guest' ssid='Cafe Guest' guestservice-id='1'/>"
    "</wlansvc-list></response></ajax-response>"
)


def login_response(token="csrf-abc", status_code=302):
    headers = {R710_CSRF_HEADER: token} if token else {}
    return make_response(status_code, text="", headers=headers)


def xml_response(text, status_code=200):
    return make_response(status_code, text=text)


@pytest.fixture
def http():
    session = Mock()
    session.request.side_effect = [login_response(), xml_response(SYSINFO)]
    return session


@pytest.fixture
def client(http):
    return R710Client(config=R710Config(host=f"{HOST}/", username="admin", password="pw"), session=http)


class TestSession:
    def test_tls_verification_follows_config(self, client, http):
        assert http.verify is False

    def test_login_captures_csrf_token(self, client, http):
        assert client.login() == "csrf-abc"

        call = http.request.call_args
        assert call.args == ("POST", f"{HOST}/admin/login.jsp")
        assert call.kwargs["data"] == {"username": "admin", "password": "pw", "ok": "Log in"}
        assert call.kwargs["allow_redirects"] is False
        assert client.is_authenticated

    @pytest.mark.parametrize(
        "response",
        [login_response(status_code=200), login_response(token=None)],
    )
    def test_login_rejected(self, client, http, response):
        http.request.side_effect = [response]

        with pytest.raises(DeviceRejectedError) as exc_info:
            client.login()

        assert exc_info.value.status_code == 401
        assert not client.is_authenticated

    def test_login_unreachable(self, client, http):
        http.request.side_effect = requests.ConnectTimeout("no route")

        with pytest.raises(DeviceUnreachableError) as exc_info:
            client.login()

        assert exc_info.value.error_code == ErrorCode.TIMEOUT_ERROR

    def test_reads_require_login(self, client, http):
        with pytest.raises(DeviceRejectedError) as exc_info:
            client.list_wlans()

        assert exc_info.value.error_code == ErrorCode.PRECONDITION_FAILED
        http.request.assert_not_called()

    def test_context_manager_initializes_and_logs_out(self, client, http):
        with client as session:
            assert session.initialized
            init_call = http.request.call_args
            assert init_call.args == ("POST", f"{HOST}/admin/_cmdstat.jsp")
            assert init_call.kwargs["headers"]["X-CSRF-Token"] == "csrf-abc"
            assert "getstat" in init_call.kwargs["data"]

        http.get.assert_called_once()
        assert http.get.call_args.args == (f"{HOST}/admin/_logout.jsp",)
        assert not client.is_authenticated

    def test_logout_failure_is_swallowed(self, client, http):
        client.login()
        http.get.side_effect = requests.ConnectionError("gone")

        client.logout()

        assert client.csrf_token is None


class TestConfiguration:
    def test_list_wlans_initializes_session_first(self, client, http):
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response(WLANS)]
        client.login()

        wlans = client.list_wlans()

        assert [w.id for w in wlans] == ["Cafe Guest"]
        urls = [call.args[1] for call in http.request.call_args_list]
        assert urls == [f"{HOST}/admin/login.jsp", f"{HOST}/admin/_cmdstat.jsp", f"{HOST}/admin/_conf.jsp"]

    def test_update_wlan_returns_ack(self, client, http):
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response(ACK)]
        request = WlanUpdateRequest(wlan_id="Cafe Guest", guest_service_id="1", new_ssid="Bar Guest")

        with client:
            ack = client.update_wlan(request)

        assert ack.accepted
        payload = http.request.call_args.kwargs["data"]
        assert "wlansvc-list" in payload
        assert "Bar Guest" in payload

    def test_system_info(self, client, http):
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response(SYSINFO)]

        with client:
            info = client.get_system_info()

        assert info == {"version": "200.15", "model": "R710", "name": "Lobby"}

    def test_expired_session_clears_state(self, client, http):
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response("", status_code=403)]
        client.login()
        client.initialize_session()

        with pytest.raises(DeviceRejectedError):
            client.getconf("wlansvc-list")

        assert client.csrf_token is None
        assert not client.initialized

    def test_server_error(self, client, http):
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response("", status_code=500)]

        with client:
            with pytest.raises(DeviceRejectedError) as exc_info:
                client.getconf("wlansvc-list")

        assert exc_info.value.context["http_status"] == 500

    def test_create_guest_service_returns_new_id(self, client, http):
        created = "<ajax-response><response type='object' id='5'/></ajax-response>"
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response(created)]

        with client:
            ack = client.create_guest_service(WlanCreateRequest(ssid="Bar Guest"))

        assert ack.accepted
        assert ack.object_id == "5"
        payload = http.request.call_args.kwargs["data"]
        assert "action=\"addobj\"" in payload
        assert "guestservice-list" in payload

    def test_create_and_delete_wlan(self, client, http):
        http.request.side_effect = [
            login_response(),
            xml_response(SYSINFO),
            xml_response(ACK),
            xml_response(ACK),
        ]

        with client:
            created = client.create_wlan(WlanCreateRequest(ssid="Bar Guest"), guest_service_id="5")
            deleted = client.delete_wlan("Bar Guest")

        assert created.accepted and deleted.accepted
        create_payload, delete_payload = [
            call.kwargs["data"] for call in http.request.call_args_list[2:]
        ]
        assert "guestservice-id=\"5\"" in create_payload
        assert "action=\"delobj\"" in delete_payload
        assert "wlansvc-list" in delete_payload


GUESTS = (
    "<ajax-response><response type='object' id='x'><guest-list>"
    "<guest id='7' full-name='ABCD1234' key='QWER-TYUI' wlan='Cafe Guest' share-number='2'/>"
    "</guest-list></response></ajax-response>"
)
CREATED = (
    '{"result":"OK","ids":"11"}\n'
    "batchEmailData.push('ABCD1234|QWER-TYUI|');\n"
)


class TestGuestPasses:
    def test_query_guest_tokens(self, client, http):
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response(GUESTS)]

        with client:
            (guest,) = client.query_guest_tokens()

        assert guest.id == "7"
        assert guest.username == "ABCD1234"

    def test_generate_fetches_session_key_first(self, client, http):
        http.request.side_effect = [
            login_response(),
            xml_response(SYSINFO),
            xml_response('{"key":"k-123"}'),
            xml_response(CREATED),
        ]
        request = GuestPassRequest(wlan_name="Cafe Guest", count=1, duration=1, duration_unit="day")

        with client:
            (guest,) = client.generate_guest_passes(request)

        assert (guest.username, guest.password) == ("ABCD1234", "QWER-TYUI")
        key_call, create_call = http.request.call_args_list[2:]
        assert key_call.args == ("POST", f"{HOST}/admin/mon_guestdata.jsp")
        assert create_call.args == ("POST", f"{HOST}/admin/mon_createguest.jsp")
        form = create_call.kwargs["data"]
        assert form["key"] == "k-123"
        assert form["guest-wlan"] == "Cafe Guest"
        assert create_call.kwargs["headers"]["X-CSRF-Token"] == "csrf-abc"

    def test_generate_without_session_key(self, client, http):
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response("{}")]
        request = GuestPassRequest(wlan_name="Cafe Guest", count=1, duration=1)

        with client:
            with pytest.raises(DeviceRejectedError):
                client.generate_guest_passes(request)

        assert http.request.call_count == 3

    def test_delete_guest_pass(self, client, http):
        http.request.side_effect = [login_response(), xml_response(SYSINFO), xml_response(ACK)]

        with client:
            ack = client.delete_guest_pass("7")

        assert ack.accepted
        payload = http.request.call_args.kwargs["data"]
        assert "action=\"delobj\"" in payload
        assert "comp=\"guest-list\"" in payload
        assert "<guest id=\"7\" />" in payload
