"""
Ruckus R710 ajax-request XML codec.

The appliance accepts configuration reads and writes as

    <ajax-request action='getconf|addobj|updobj|delobj|getstat' updater='comp.ms.rand' comp='comp'>...</ajax-request>

and acknowledges a write with a ``<response type="object" id="..."/>`` tag.
That acknowledgement is returned even when the device silently ignores an
incomplete object, so WLAN writes always carry the full attribute set and
every nested element listed in WLAN_MANDATORY_ELEMENTS.

Guest passes are generated outside the XML API: mon_guestdata.jsp hands
out a one-time key and mon_createguest.jsp answers with JavaScript that
lists the new passes.
"""

import json
import random
import re
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Dict, List, Optional, Tuple

from ..constants import R710Component
from ..enums import TokenStatus
from ..exceptions import DeviceRejectedError, ErrorCode
from ..schemas.wlan_schemas import (
    GuestPassRequest,
    R710GuestToken,
    WlanCreateRequest,
    WlanServiceInfo,
    WlanUpdateRequest,
)

SERVICE_NAME = "ruckus-r710"

# Devices per guest pass when the appliance omits share-number
DEFAULT_SHARE_NUMBER = 2

SESSION_KEY_PATTERN = re.compile(r"""["']?key["']?\s*:\s*["']([^"']+)["']""")
RESULT_OBJECT_PATTERN = re.compile(r"\{[^}]+\}")
GUEST_PASS_PATTERN = re.compile(r"batchEmailData\.push\('([^|]+)\|([^|]+)\|'\);")

TERMS_OF_USE = (
    "Terms of Use\n\n"
    "By accepting this agreement and accessing the wireless network, you acknowledge that you "
    "are of legal age, you have read and understood, and agree to be bound by this agreement.\n"
    "(*) The wireless network service is provided by the property owners and is completely at "
    "their discretion. Your access to the network may be blocked, suspended, or terminated at "
    "any time for any reason.\n"
    "(*) You agree not to use the wireless network for any purpose that is unlawful or otherwise "
    "prohibited and you are fully responsible for your use.\n"
    '(*) The wireless network is provided "as is" without warranties of any kind, either '
    "expressed or implied."
)

GUEST_SERVICE_ATTRIBUTES: Tuple[Tuple[str, str], ...] = (
    ("onboarding", "true"),
    ("onboarding-aspect", "both"),
    ("auth-by", "guestpass"),
    ("countdown-by-issued", "false"),
    ("show-tou", "true"),
    ("tou", TERMS_OF_USE),
    ("redirect", "orig"),
    ("redirect-url", ""),
    ("company-logo", "ruckus"),
    ("poweredby", "Ruckus Wireless"),
    ("poweredby-url", "http://www.ruckuswireless.com/"),
    ("desc", "Type or paste in the text of your guest pass."),
    ("self-service", "false"),
    ("rule6", ""),
    ("opacity", "1.0"),
    ("background-opacity", "1"),
    ("background-color", "#516a8c"),
    ("banner-type", "default"),
    ("bgimage-type", "default"),
    ("bgimage-display-type", "fill"),
    ("enable-portal", "true"),
    ("wifi4eu", "false"),
    ("wifi4eu-network-id", ""),
    ("wifi4eu-language", "en"),
    ("wifi4eu-debug", "false"),
    ("wg", ""),
    ("show-lang", "true"),
    ("portal-lang", "en_US"),
    ("random-key", "999"),
    ("old-self-service", "false"),
    ("old-auth-by", "guestpass"),
)

# Walled garden rules the captive portal needs before authentication
GUEST_SERVICE_RULES: Tuple[Dict[str, str], ...] = (
    {"action": "accept", "type": "layer 2", "ether-type": "0x0806"},
    {"action": "accept", "type": "layer 2", "ether-type": "0x8863"},
    {"action": "accept", "type": "layer 2", "ether-type": "0x8864"},
    {"action": "accept", "type": "layer 3", "protocol": "17", "dst-port": "53"},
    {"action": "accept", "type": "layer 3", "protocol": "6", "dst-port": "53"},
    {"action": "accept", "type": "layer 3", "protocol": "", "dst-port": "67", "app": "DHCP"},
    {"action": "deny", "type": "layer 3", "protocol": "", "dst-port": "68"},
    {"action": "accept", "type": "layer 3", "protocol": "6", "dst-addr": "host", "dst-port": "80", "app": "HTTP"},
    {"action": "accept", "type": "layer 3", "protocol": "6", "dst-addr": "host", "dst-port": "443", "app": "HTTPS"},
    {"action": "deny", "type": "layer 3", "dst-addr": "local", "protocol": "", "EDITABLE": "false"},
    {"action": "accept", "type": "layer 3", "dst-addr": "10.0.0.0/8", "protocol": ""},
    {"action": "deny", "type": "layer 3", "dst-addr": "172.16.0.0/12", "protocol": ""},
    {"action": "accept", "type": "layer 3", "dst-addr": "192.168.0.0/16", "protocol": ""},
    {"action": "accept", "type": "layer 3", "protocol": "1"},
    {"action": "accept", "type": "layer 3", "protocol": "", "dst-port": "0"},
)

WLAN_ATTRIBUTES: Tuple[Tuple[str, str], ...] = (
    ("usage", "guest"),
    ("is-guest", "true"),
    ("authentication", "open"),
    ("encryption", "none"),
    ("acctsvr-id", "0"),
    ("acct-upd-interval", "10"),
    ("guest-pass", ""),
    ("en-grace-period-sets", "enabled"),
    ("grace-period-sets", "480"),
    ("close-system", "false"),
    ("vlan-id", "1"),
    ("dvlan", "disabled"),
    ("max-clients-per-radio", "100"),
    ("enable-type", "0"),
    ("do-wmm-ac", "disabled"),
    ("acl-id", "1"),
    ("devicepolicy-id", ""),
    ("bgscan", "1"),
    ("balance", "0"),
    ("band-balance", "0"),
    ("do-802-11d", "enabled"),
    ("wlan_bind", "0"),
    ("force-dhcp", "0"),
    ("force-dhcp-timeout", "10"),
    ("max-idle-timeout", "300"),
    ("idle-timeout", "true"),
    ("client-isolation", "enabled"),
    ("ci-whitelist-id", "0"),
    ("bypass-cna", "false"),
    ("dtim-period", "1"),
    ("directed-mbc", "1"),
    ("client-flow-log", "disabled"),
    ("export-client-log", "false"),
    ("wifi6", "true"),
    ("local-bridge", "1"),
    ("ofdm-rate-only", "false"),
    ("bss-minrate", "0"),
    ("tx-rate-config", "1"),
    ("web-auth", "enabled"),
    ("https-redirection", "enabled"),
    ("called-station-id-type", "0"),
    ("option82", "0"),
    ("option82-opt1", "0"),
    ("option82-opt2", "0"),
    ("option82-opt150", "0"),
    ("option82-opt151", "0"),
    ("dis-dgaf", "0"),
    ("parp", "0"),
    ("authstats", "0"),
    ("sta-info-extraction", "1"),
    ("pool-id", ""),
    ("dhcpsvr-id", "0"),
    ("precedence-id", "1"),
    ("role-based-access-ctrl", "false"),
    ("option82-areaName", ""),
    ("guest-auth", "guestpass"),
    ("self-service", "false"),
    ("self-service-sponsor-approval", "undefined"),
    ("self-service-notification", "undefined"),
)

# Nested elements the appliance requires on every WLAN write
WLAN_MANDATORY_ELEMENTS: Tuple[Tuple[str, Dict[str, str]], ...] = (
    ("queue-priority", {"voice": "0", "video": "2", "data": "4", "background": "6"}),
    (
        "qos",
        {
            "uplink-preset": "DISABLE",
            "downlink-preset": "DISABLE",
            "perssid-uplink-preset": "0",
            "perssid-downlink-preset": "0",
        },
    ),
    ("rrm", {"neighbor-report": "enabled"}),
    ("smartcast", {"mcast-filter": "disabled"}),
    ("wlan-schedule", {"value": ":".join(["0x0"] * 28)}),
    ("avp-policy", {"avp-enabled": "disabled", "avpdeny-id": "0"}),
    ("urlfiltering-policy", {"urlfiltering-enabled": "disabled", "urlfiltering-id": "0"}),
    ("wificalling-policy", {"wificalling-enabled": "disabled", "profile-id": "0"}),
)


@dataclass
class WriteAck:
    """Parsed acknowledgement of an addobj/updobj/delobj request."""

    accepted: bool
    object_id: Optional[str] = None
    error: Optional[str] = None


def updater_id(component: str, now_ms: Optional[int] = None, rand: Optional[int] = None) -> str:
    """Updater ids are ``<component>.<epoch ms>.<random 0-9999>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if rand is None:
        rand = random.randint(0, 9999)
    return f"{component}.{now_ms}.{rand}"


def _ajax_request(
    action: str,
    component: str,
    updater: Optional[str] = None,
    extra_attrs: Optional[Dict[str, str]] = None,
) -> ET.Element:
    attrs = {"action": action}
    attrs.update(extra_attrs or {})
    attrs["updater"] = updater or updater_id(component)
    attrs["comp"] = component
    return ET.Element("ajax-request", attrs)


def _to_string(element: ET.Element) -> str:
    return ET.tostring(element, encoding="unicode", short_empty_elements=True)


def build_getconf(component: str, updater: Optional[str] = None) -> str:
    """Read the whole collection for a component."""
    request = _ajax_request(
        "getconf", component, updater, {"DECRYPT_X": "true", "caller": "unleashed_web"}
    )
    return _to_string(request)


def build_session_init(updater: Optional[str] = None) -> str:
    """getstat on the system component; configuration reads return nothing until it runs."""
    request = _ajax_request("getstat", R710Component.SYSTEM.value, updater)
    ET.SubElement(request, "sysinfo")
    ET.SubElement(request, "identity")
    return _to_string(request)


def build_guest_list_query(updater: Optional[str] = None) -> str:
    """getconf on guest-list restricted to issued (non self-service) guest passes."""
    request = _ajax_request(
        "getconf", R710Component.GUEST_LIST.value, updater, {"DECRYPT_X": "true"}
    )
    ET.SubElement(request, "guest", {"self-service": "!true"})
    return _to_string(request)


def _guest_service_element(
    parent: ET.Element,
    name: str,
    title: str,
    logo_type: str,
    valid_days: int,
    object_id: Optional[str] = None,
) -> ET.Element:
    attrs = {"name": name}
    attrs.update(dict(GUEST_SERVICE_ATTRIBUTES))
    attrs["title"] = title
    attrs["logo-type"] = logo_type
    attrs["valid"] = str(valid_days)
    if object_id is not None:
        attrs["id"] = object_id

    service = ET.SubElement(parent, "guestservice", attrs)
    for rule in GUEST_SERVICE_RULES:
        ET.SubElement(service, "rule", dict(rule))
    return service


def _wlan_element(
    parent: ET.Element,
    ssid: str,
    enable_friendly_key: bool,
    guest_service_id: str,
    object_id: Optional[str] = None,
) -> ET.Element:
    attrs = {"name": ssid, "ssid": ssid, "description": ssid}
    attrs.update(dict(WLAN_ATTRIBUTES))
    attrs["enable-friendly-key"] = "true" if enable_friendly_key else "false"
    if object_id is not None:
        attrs["id"] = object_id
    attrs["guestservice-id"] = guest_service_id

    wlan = ET.SubElement(parent, "wlansvc", attrs)
    for tag, element_attrs in WLAN_MANDATORY_ELEMENTS:
        ET.SubElement(wlan, tag, dict(element_attrs))
    return wlan


def build_guest_service_update(request: WlanUpdateRequest, updater: Optional[str] = None) -> str:
    """updobj on guestservice-list, keyed by the Guest Service's own id."""
    envelope = _ajax_request("updobj", R710Component.GUEST_SERVICE_LIST.value, updater)
    _guest_service_element(
        envelope,
        request.new_ssid,
        request.title,
        request.logo_type,
        request.valid_days,
        object_id=request.guest_service_id,
    )
    return _to_string(envelope)


def build_wlan_update(request: WlanUpdateRequest, updater: Optional[str] = None) -> str:
    """
    updobj on wlansvc-list.

    The ``id`` attribute is the WLAN's current SSID (the device's key) while
    ``name``/``ssid`` carry the new one.
    """
    envelope = _ajax_request("updobj", R710Component.WLAN_LIST.value, updater)
    _wlan_element(
        envelope,
        request.new_ssid,
        request.enable_friendly_key,
        request.guest_service_id,
        object_id=request.wlan_id,
    )
    return _to_string(envelope)


def build_guest_service_create(request: WlanCreateRequest, updater: Optional[str] = None) -> str:
    """addobj on guestservice-list; the device assigns the id."""
    envelope = _ajax_request("addobj", R710Component.GUEST_SERVICE_LIST.value, updater)
    _guest_service_element(
        envelope, request.ssid, request.title, request.logo_type, request.valid_days
    )
    return _to_string(envelope)


def build_wlan_create(
    request: WlanCreateRequest, guest_service_id: str, updater: Optional[str] = None
) -> str:
    """addobj on wlansvc-list bound to an existing Guest Service."""
    envelope = _ajax_request("addobj", R710Component.WLAN_LIST.value, updater)
    _wlan_element(envelope, request.ssid, request.enable_friendly_key, guest_service_id)
    return _to_string(envelope)


def build_delobj(component: str, tag: str, object_id: str, updater: Optional[str] = None) -> str:
    """delobj removing one object from a component's collection."""
    envelope = _ajax_request("delobj", component, updater)
    ET.SubElement(envelope, tag, {"id": object_id})
    return _to_string(envelope)


def build_guest_pass_delete(guest_id: str, updater: Optional[str] = None) -> str:
    return build_delobj(R710Component.GUEST_LIST.value, "guest", guest_id, updater)


def build_wlan_delete(wlan_id: str, updater: Optional[str] = None) -> str:
    return build_delobj(R710Component.WLAN_LIST.value, "wlansvc", wlan_id, updater)


def build_guest_pass_form(session_key: str, request: GuestPassRequest) -> Dict[str, str]:
    """
    Form body for mon_createguest.jsp.

    Passes are generated in one "multiple" batch, shared by up to
    ``device_limit`` devices, with no re-authentication.
    """
    unit = request.duration_unit
    return {
        "gentype": "multiple",
        "fullname": "",
        "remarks": "",
        "duration": str(request.duration),
        "duration-unit": f"{unit}_{unit.capitalize()}s",
        "key": session_key,
        "createToNum": str(request.count),
        "batchpass": "",
        "guest-wlan": request.wlan_name,
        "shared": "true",
        "reauth": "false",
        "reauth-time": "",
        "reauth-unit": "min",
        "email": "",
        "countrycode": "",
        "phonenumber": "",
        "limitnumber": str(request.device_limit),
        "_": "",
    }


def parse_xml(text: str) -> ET.Element:
    """Parse a device reply, raising DeviceRejectedError on malformed XML."""
    try:
        return ET.fromstring(text.strip())
    except ET.ParseError as e:
        raise DeviceRejectedError(
            "R710 returned malformed XML",
            service_name=SERVICE_NAME,
            error_code=ErrorCode.INTEGRATION_ERROR,
            cause=e,
            response_excerpt=text[:200],
        )


def parse_write_ack(text: str) -> WriteAck:
    """
    Interpret a write reply.

    Accepted means a ``<response type="object">`` tag is present and no
    ``<error>`` element appears anywhere in the reply.
    """
    if not text or not text.strip():
        return WriteAck(accepted=False, error="Empty response")

    root = parse_xml(text)
    elements = list(root.iter())

    for element in elements:
        if element.tag == "error":
            message = element.get("msg") or element.get("message") or (element.text or "").strip()
            return WriteAck(accepted=False, error=message or "Device reported an error")

    for element in elements:
        if element.tag == "response" and element.get("type") == "object":
            return WriteAck(accepted=True, object_id=element.get("id"))

    return WriteAck(accepted=False, error="No object response in reply")


def parse_wlan_list(text: str) -> List[WlanServiceInfo]:
    """Extract every wlansvc entry from a getconf reply."""
    root = parse_xml(text)
    return [
        WlanServiceInfo(
            id=element.get("id", ""),
            name=element.get("name", ""),
            ssid=element.get("ssid"),
            guest_service_id=element.get("guestservice-id"),
        )
        for element in root.iter("wlansvc")
    ]


def parse_system_info(text: str) -> Dict[str, Optional[str]]:
    """Firmware version and model from a sysinfo getstat reply."""
    root = parse_xml(text)
    sysinfo = next(root.iter("sysinfo"), None)
    identity = next(root.iter("identity"), None)
    return {
        "version": sysinfo.get("version") if sysinfo is not None else None,
        "model": sysinfo.get("model") if sysinfo is not None else None,
        "name": identity.get("name") if identity is not None else None,
    }


def _epoch(value: Optional[str]) -> Optional[datetime]:
    if not value or not value.strip().isdigit() or int(value) == 0:
        return None
    return datetime.fromtimestamp(int(value), UTC)


def _share_number(value: Optional[str]) -> int:
    if value and value.strip().isdigit() and int(value) > 0:
        return int(value)
    return DEFAULT_SHARE_NUMBER


def parse_guest_tokens(text: str) -> List[R710GuestToken]:
    """Guest passes from a guest-list getconf reply."""
    root = parse_xml(text)
    tokens: List[R710GuestToken] = []
    for guest in root.iter("guest"):
        valid_time = guest.get("valid-time")
        client = guest.find("client")
        tokens.append(
            R710GuestToken(
                id=guest.get("id", ""),
                username=guest.get("full-name", ""),
                password=guest.get("key") or guest.get("x-key") or "",
                wlan=guest.get("wlan", ""),
                created_at=_epoch(guest.get("create-time")),
                expires_at=_epoch(guest.get("expire-time")),
                started_at=_epoch(guest.get("start-time")),
                valid_time_seconds=int(valid_time) if valid_time and valid_time.isdigit() else None,
                max_devices=_share_number(guest.get("share-number")),
                remarks=guest.get("remarks", ""),
                used="used" in guest.attrib,
                connected_mac=client.get("mac").upper() if client is not None and client.get("mac") else None,
            )
        )
    return tokens


def guest_pass_status(guest: R710GuestToken, now: datetime) -> TokenStatus:
    """
    Lifecycle status implied by a guest pass.

    A pass past its expire time is expired whether or not it was used; a
    started or used pass is active; anything else is still available.
    """
    if guest.expires_at is not None and guest.expires_at < now:
        return TokenStatus.EXPIRED
    if guest.started_at is not None or guest.used:
        return TokenStatus.ACTIVE
    return TokenStatus.AVAILABLE


def _rejected(message: str, text: str) -> DeviceRejectedError:
    return DeviceRejectedError(
        message,
        service_name=SERVICE_NAME,
        error_code=ErrorCode.INTEGRATION_ERROR,
        response_excerpt=(text or "")[:200],
    )


def parse_session_key(text: str) -> str:
    """The one-time key mon_guestdata.jsp hands out before guest pass generation."""
    key = None
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            key = data.get("key")
    except (TypeError, ValueError):
        match = SESSION_KEY_PATTERN.search(text or "")
        key = match.group(1) if match else None

    if not key:
        raise _rejected("R710 did not return a guest pass session key", text)
    return str(key)


def parse_guest_pass_creation(text: str, request: GuestPassRequest) -> List[R710GuestToken]:
    """
    Passes created by mon_createguest.jsp.

    The reply is JavaScript: a ``{"result": ...}`` object followed by one
    ``batchEmailData.push('<name>|<key>|')`` line per generated pass. The
    device assigns ids only in the guest-list, so ``id`` is left empty.
    """
    match = RESULT_OBJECT_PATTERN.search(text or "")
    if match is None:
        raise _rejected("Could not parse R710 guest pass reply", text)
    try:
        result = json.loads(match.group(0))
    except ValueError as e:
        raise DeviceRejectedError(
            "Could not parse R710 guest pass reply",
            service_name=SERVICE_NAME,
            error_code=ErrorCode.INTEGRATION_ERROR,
            cause=e,
            response_excerpt=text[:200],
        )

    if result.get("result") != "OK":
        raise _rejected(result.get("errorMsg") or "Guest pass creation failed", text)

    return [
        R710GuestToken(
            id="",
            username=username,
            password=password,
            wlan=request.wlan_name,
            max_devices=request.device_limit,
        )
        for username, password in GUEST_PASS_PATTERN.findall(text)
    ]
