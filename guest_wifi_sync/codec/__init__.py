"""Wire codecs for the ESP32 portal JSON envelopes and R710 ajax-request XML."""

from .portal_codec import is_lookup_failure, is_not_found, parse_batch_lookup_response, unwrap_envelope
from .r710_codec import (
    WLAN_MANDATORY_ELEMENTS,
    WriteAck,
    build_delobj,
    build_getconf,
    build_guest_list_query,
    build_guest_pass_delete,
    build_guest_pass_form,
    build_guest_service_create,
    build_guest_service_update,
    build_session_init,
    build_wlan_create,
    build_wlan_delete,
    build_wlan_update,
    guest_pass_status,
    parse_guest_pass_creation,
    parse_guest_tokens,
    parse_session_key,
    parse_system_info,
    parse_wlan_list,
    parse_write_ack,
)

__all__ = [
    "is_lookup_failure",
    "is_not_found",
    "parse_batch_lookup_response",
    "unwrap_envelope",
    "WLAN_MANDATORY_ELEMENTS",
    "WriteAck",
    "build_delobj",
    "build_getconf",
    "build_guest_list_query",
    "build_guest_pass_delete",
    "build_guest_pass_form",
    "build_guest_service_create",
    "build_guest_service_update",
    "build_session_init",
    "build_wlan_create",
    "build_wlan_delete",
    "build_wlan_update",
    "guest_pass_status",
    "parse_guest_pass_creation",
    "parse_guest_tokens",
    "parse_session_key",
    "parse_system_info",
    "parse_wlan_list",
    "parse_write_ack",
]
