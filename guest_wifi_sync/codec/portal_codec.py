"""
Decoding of ESP32 portal batch lookup envelopes.

The portal sometimes wraps its real payload as a JSON string inside the
``message`` field of an outer envelope:

    {"success": true, "message": "{\\"success\\":true,\\"tokens\\":[...]}"}

The inner document is authoritative in that case.
"""

import json
from typing import Any, Dict, Iterable, Union

from pydantic import ValidationError as PydanticValidationError

from ..constants import NOT_FOUND_PHRASES
from ..exceptions import DeviceRejectedError, ErrorCode
from ..schemas.device_schemas import BatchLookupResponse, DeviceTokenReport

SERVICE_NAME = "esp32-portal"

# Envelopes nested deeper than this are treated as malformed
MAX_ENVELOPE_DEPTH = 3


def unwrap_envelope(payload: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Return the innermost envelope that carries a ``tokens`` list.

    Raises:
        DeviceRejectedError: If the payload is not JSON, reports failure, or
            never yields a token list.
    """
    document: Any = payload
    for _ in range(MAX_ENVELOPE_DEPTH + 1):
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except ValueError as e:
                raise DeviceRejectedError(
                    "Batch lookup response is not valid JSON",
                    service_name=SERVICE_NAME,
                    error_code=ErrorCode.INTEGRATION_ERROR,
                    cause=e,
                )

        if not isinstance(document, dict):
            break

        if document.get("success") is False:
            raise DeviceRejectedError(
                str(document.get("error") or document.get("message") or "Batch lookup failed"),
                service_name=SERVICE_NAME,
            )

        if isinstance(document.get("tokens"), list):
            return document

        nested = document.get("message")
        if not isinstance(nested, str):
            break
        document = nested

    raise DeviceRejectedError(
        "Batch lookup response carried no token list",
        service_name=SERVICE_NAME,
        error_code=ErrorCode.INTEGRATION_ERROR,
    )


def parse_batch_lookup_response(payload: Union[str, bytes, Dict[str, Any]]) -> BatchLookupResponse:
    """Decode a (possibly double-encoded) batch lookup envelope."""
    envelope = unwrap_envelope(payload)
    try:
        return BatchLookupResponse.model_validate(envelope)
    except PydanticValidationError as e:
        raise DeviceRejectedError(
            "Batch lookup response has an unexpected shape",
            service_name=SERVICE_NAME,
            error_code=ErrorCode.INTEGRATION_ERROR,
            cause=e,
        )


def is_not_found(report: DeviceTokenReport, phrases: Iterable[str] = NOT_FOUND_PHRASES) -> bool:
    """
    True when an entry says the device does not know the token.

    Devices may report "not found" inside a nominally successful entry, so
    the error text is checked regardless of the success flag. A failed
    entry with no error text at all is also treated as not found.
    """
    error = (report.error or "").lower()
    if error:
        return any(phrase in error for phrase in phrases)
    return not report.success


def is_lookup_failure(report: DeviceTokenReport, phrases: Iterable[str] = NOT_FOUND_PHRASES) -> bool:
    """True for a failed entry whose error is something other than not found."""
    return not report.success and not is_not_found(report, phrases)
