"""Device payload and HTTP response builders shared by client and engine tests."""

import json
from datetime import UTC, datetime
from unittest.mock import Mock


def make_response(status_code=200, json_body=None, text=None, headers=None):
    """Build a requests.Response-like Mock."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.headers = headers or {}
    if json_body is not None:
        response.json.return_value = json_body
        response.text = str(json_body)
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
        response.text = text or ""
    return response


def device_entry(token, status="active", first_use=None, devices=None, **fields):
    """One entry of a batch lookup ``tokens`` array."""
    entry = {"token": token, "success": True, "status": status}
    if first_use is not None:
        entry["first_use"] = first_use
    if devices is not None:
        entry["devices"] = devices
    entry.update(fields)
    return entry


def batch_envelope(*entries, double_encoded=False):
    """Batch lookup response, optionally wrapped as a JSON string in ``message``."""
    inner = {
        "success": True,
        "tokens": list(entries),
        "total_requested": len(entries),
        "total_found": len(entries),
    }
    if double_encoded:
        return {"success": True, "message": json.dumps(inner)}
    return inner


PORTAL_URL = "http://portal.test"
FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)
R710_HOST = "https://r710.test"
