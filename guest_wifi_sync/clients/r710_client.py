"""
Admin session client for the Ruckus R710 appliance.

Every configuration request after login carries the CSRF token returned
in the login redirect. Reads return nothing until the session has been
initialized with a getstat call on the system component.
"""

from typing import Dict, List, Optional, Union

import requests

from ..codec import r710_codec
from ..codec.r710_codec import WriteAck
from ..config import R710Config, get_config
from ..constants import R710_CONTENT_TYPE, R710_CSRF_HEADER, R710Component, R710Endpoint
from ..exceptions import DeviceRejectedError, DeviceUnreachableError, ErrorCode
from ..schemas.wlan_schemas import (
    GuestPassRequest,
    R710GuestToken,
    WlanCreateRequest,
    WlanServiceInfo,
    WlanUpdateRequest,
)
from ..utils.logger import get_logger

SERVICE_NAME = r710_codec.SERVICE_NAME


class R710Client:
    """
    Session-based client for the R710 ajax configuration API.

    Usable as a context manager: entering logs in and initializes the
    session, leaving logs out.
    """

    def __init__(
        self,
        config: Optional[R710Config] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or get_config().r710
        self.http = session or requests.Session()
        self.http.verify = self.config.verify_tls
        self.csrf_token: Optional[str] = None
        self.initialized = False
        self.logger = get_logger()

    @property
    def device_host(self) -> str:
        return self.config.host

    @property
    def is_authenticated(self) -> bool:
        return self.csrf_token is not None

    def __enter__(self):
        self.login()
        self.initialize_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logout()

    # ==================== SESSION ====================

    def login(self) -> str:
        """
        Authenticate and capture the CSRF token.

        The appliance answers a good login with a 302 carrying the token in
        a response header; anything else is a rejected login.
        """
        url = f"{self.config.host}{R710Endpoint.LOGIN.value}"
        data = {
            "username": self.config.username,
            "password": self.config.password,
            "ok": "Log in",
        }
        response = self._send("POST", url, data=data, allow_redirects=False)

        csrf_token = response.headers.get(R710_CSRF_HEADER)
        if response.status_code != 302 or not csrf_token:
            raise DeviceRejectedError(
                "R710 login failed",
                service_name=SERVICE_NAME,
                error_code=ErrorCode.EXTERNAL_API_ERROR,
                status_code=401,
                http_status=response.status_code,
            )

        self.csrf_token = csrf_token
        self.initialized = False
        self.logger.info("R710 login succeeded", extra={"device_host": self.config.host})
        return csrf_token

    def initialize_session(self) -> None:
        """Run the getstat call that unlocks configuration reads."""
        self._require_login()
        url = f"{self.config.host}{R710Endpoint.CMDSTAT.value}"
        self._post(url, r710_codec.build_session_init())
        self.initialized = True

    def logout(self) -> None:
        """Best-effort logout; a failure only leaves the device session to time out."""
        if not self.csrf_token:
            return
        url = f"{self.config.host}{R710Endpoint.LOGOUT.value}"
        try:
            self.http.get(url, headers=self._headers(), timeout=self.config.timeout)
        except requests.RequestException as e:
            self.logger.warning(
                "R710 logout failed",
                extra={"device_host": self.config.host, "error": str(e)},
            )
        finally:
            self.csrf_token = None
            self.initialized = False

    # ==================== CONFIGURATION ====================

    def getconf(self, component: str) -> str:
        """Raw getconf reply for a component."""
        self._ensure_session()
        return self._post(self._conf_url(), r710_codec.build_getconf(component))

    def addobj(self, payload: str) -> WriteAck:
        """Send a prebuilt addobj request and parse the acknowledgement."""
        return self._write(payload)

    def updobj(self, payload: str) -> WriteAck:
        """Send a prebuilt updobj request and parse the acknowledgement."""
        return self._write(payload)

    def delobj(self, payload: str) -> WriteAck:
        """Send a prebuilt delobj request and parse the acknowledgement."""
        return self._write(payload)

    def getstat(self, payload: str) -> str:
        self._ensure_session()
        url = f"{self.config.host}{R710Endpoint.CMDSTAT.value}"
        return self._post(url, payload)

    def update_guest_service(self, request: WlanUpdateRequest) -> WriteAck:
        return self.updobj(r710_codec.build_guest_service_update(request))

    def update_wlan(self, request: WlanUpdateRequest) -> WriteAck:
        return self.updobj(r710_codec.build_wlan_update(request))

    def create_guest_service(self, request: WlanCreateRequest) -> WriteAck:
        """The ack's ``object_id`` is the new Guest Service id."""
        return self.addobj(r710_codec.build_guest_service_create(request))

    def create_wlan(self, request: WlanCreateRequest, guest_service_id: str) -> WriteAck:
        return self.addobj(r710_codec.build_wlan_create(request, guest_service_id))

    def delete_wlan(self, wlan_id: str) -> WriteAck:
        return self.delobj(r710_codec.build_wlan_delete(wlan_id))

    def list_wlans(self) -> List[WlanServiceInfo]:
        return r710_codec.parse_wlan_list(self.getconf(R710Component.WLAN_LIST.value))

    def get_system_info(self) -> dict:
        """Firmware version, model and device name."""
        return r710_codec.parse_system_info(self.getstat(r710_codec.build_session_init()))

    # ==================== GUEST PASSES ====================

    def query_guest_tokens(self) -> List[R710GuestToken]:
        """Issued guest passes currently stored on the appliance."""
        self._ensure_session()
        reply = self._post(self._conf_url(), r710_codec.build_guest_list_query())
        return r710_codec.parse_guest_tokens(reply)

    def get_session_key(self) -> str:
        """One-time key required by the next guest pass generation."""
        self._ensure_session()
        url = f"{self.config.host}{R710Endpoint.GUEST_DATA.value}"
        return r710_codec.parse_session_key(self._post(url, ""))

    def generate_guest_passes(self, request: GuestPassRequest) -> List[R710GuestToken]:
        """
        Generate a batch of guest passes on the appliance.

        Raises:
            DeviceRejectedError: No session key, or the appliance refused the batch
        """
        key = self.get_session_key()
        url = f"{self.config.host}{R710Endpoint.CREATE_GUEST.value}"
        reply = self._post(url, r710_codec.build_guest_pass_form(key, request))
        passes = r710_codec.parse_guest_pass_creation(reply, request)

        self.logger.info(
            "Generated R710 guest passes",
            extra={
                "device_host": self.config.host,
                "wlan": request.wlan_name,
                "requested": request.count,
                "generated": len(passes),
            },
        )
        return passes

    def delete_guest_pass(self, guest_id: str) -> WriteAck:
        return self.delobj(r710_codec.build_guest_pass_delete(guest_id))

    # ==================== TRANSPORT ====================

    def _conf_url(self) -> str:
        return f"{self.config.host}{R710Endpoint.CONF.value}"

    def _write(self, payload: str) -> WriteAck:
        self._ensure_session()
        return r710_codec.parse_write_ack(self._post(self._conf_url(), payload))

    def _headers(self) -> dict:
        headers = {
            "X-Requested-With": "XMLHttpRequest",
            "Content-Type": R710_CONTENT_TYPE,
            "Referer": f"{self.config.host}{R710Endpoint.DASHBOARD.value}",
        }
        if self.csrf_token:
            headers["X-CSRF-Token"] = self.csrf_token
        return headers

    def _require_login(self) -> None:
        if not self.csrf_token:
            raise DeviceRejectedError(
                "R710 session is not authenticated",
                service_name=SERVICE_NAME,
                error_code=ErrorCode.PRECONDITION_FAILED,
                status_code=401,
            )

    def _ensure_session(self) -> None:
        self._require_login()
        if not self.initialized:
            self.initialize_session()

    def _post(self, url: str, payload: Union[str, Dict[str, str]]) -> str:
        response = self._send("POST", url, data=payload, headers=self._headers())
        if response.status_code in (401, 403):
            self.csrf_token = None
            self.initialized = False
            raise DeviceRejectedError(
                "R710 session expired",
                service_name=SERVICE_NAME,
                status_code=401,
                http_status=response.status_code,
            )
        if not response.ok:
            raise DeviceRejectedError(
                f"R710 returned HTTP {response.status_code}",
                service_name=SERVICE_NAME,
                http_status=response.status_code,
            )
        return response.text

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        endpoint = url.replace(self.config.host, "")
        try:
            return self.http.request(method, url, timeout=self.config.timeout, **kwargs)
        except requests.Timeout as e:
            raise DeviceUnreachableError(
                f"R710 request timed out after {self.config.timeout}s",
                service_name=SERVICE_NAME,
                error_code=ErrorCode.TIMEOUT_ERROR,
                cause=e,
                endpoint=endpoint,
            )
        except requests.RequestException as e:
            raise DeviceUnreachableError(
                f"Unable to reach R710 at {self.config.host}",
                service_name=SERVICE_NAME,
                cause=e,
                endpoint=endpoint,
            )
