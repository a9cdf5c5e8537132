"""
HTTP client for the ESP32 captive portal JSON API.

The client owns timeouts and response validation. It never retries:
timeouts and connection failures surface as DeviceUnreachableError and
the caller decides whether to try again (see utils.retry_utils).
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from ..config import PortalConfig, get_config
from ..constants import (
    DEFAULT_RETRY_AFTER_SECONDS,
    MAX_BATCH_SIZE,
    MAX_BUSINESS_ID_LENGTH,
    MAX_TOKEN_DURATION_MINUTES,
    TOKEN_CODE_PATTERN,
    PortalEndpoint,
)
from ..exceptions import (
    DeviceBusyError,
    DeviceRejectedError,
    DeviceUnreachableError,
    ErrorCode,
    ValidationError,
)
from ..utils.logger import get_logger

SERVICE_NAME = "esp32-portal"


def validate_token_code(token: str) -> str:
    """Token codes are 8 alphanumeric characters."""
    if not token or not isinstance(token, str):
        raise ValidationError("Token is required", field="token")
    if not re.match(TOKEN_CODE_PATTERN, token):
        raise ValidationError(
            "Invalid token format (expected 8 alphanumeric characters)",
            field="token",
            error_code=ErrorCode.INVALID_FORMAT,
            value=token,
        )
    return token


class PortalClient:
    """Typed wrapper around the ESP32 portal API."""

    def __init__(
        self,
        config: Optional[PortalConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or get_config().portal
        self.http = session or requests.Session()
        self.logger = get_logger()

    @property
    def device_id(self) -> str:
        return self.config.base_url

    # ==================== TOKEN OPERATIONS ====================

    def batch_lookup(self, tokens: List[str], timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Fetch live attributes for up to 20 tokens in one round trip.

        Returns the decoded response body unchanged; callers decode the
        envelope with codec.portal_codec.parse_batch_lookup_response.
        """
        if not tokens:
            raise ValidationError("At least one token is required", field="tokens")
        if len(tokens) > MAX_BATCH_SIZE:
            raise ValidationError(
                f"Maximum {MAX_BATCH_SIZE} tokens per batch request",
                field="tokens",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                count=len(tokens),
            )
        for token in tokens:
            validate_token_code(token)

        # The portal does not URL-decode parameters, so the list goes in raw
        url = (
            f"{self.config.base_url}{PortalEndpoint.BATCH_INFO.value}"
            f"?api_key={quote(self.config.api_key, safe='')}&tokens={','.join(tokens)}"
        )
        return self._request("GET", url, timeout=timeout or self.config.batch_timeout)

    def create_token(
        self,
        duration_minutes: int,
        business_id: str,
        bandwidth_down_mb: float = 0,
        bandwidth_up_mb: float = 0,
    ) -> Dict[str, Any]:
        """Create a token on the portal; raises DeviceRejectedError(NO_TOKEN_SLOTS) when full."""
        if duration_minutes < 1 or duration_minutes > MAX_TOKEN_DURATION_MINUTES:
            raise ValidationError(
                f"Duration must be between 1 and {MAX_TOKEN_DURATION_MINUTES} minutes",
                field="duration_minutes",
                value=duration_minutes,
            )
        if not business_id or len(business_id) > MAX_BUSINESS_ID_LENGTH:
            raise ValidationError(
                f"businessId is required and at most {MAX_BUSINESS_ID_LENGTH} characters",
                field="business_id",
                value=business_id,
            )
        if bandwidth_down_mb < 0 or bandwidth_up_mb < 0:
            raise ValidationError("Bandwidth limits cannot be negative", field="bandwidth")

        form = {
            "duration": str(duration_minutes),
            "bandwidth_down": str(bandwidth_down_mb),
            "bandwidth_up": str(bandwidth_up_mb),
            "businessId": business_id,
        }
        return self._post(PortalEndpoint.CREATE_TOKEN, form)

    def extend_token(self, token: str) -> Dict[str, Any]:
        """Reset a token's timer and usage counters on the portal."""
        validate_token_code(token)
        return self._post(PortalEndpoint.EXTEND_TOKEN, {"token": token})

    def disable_token(self, token: str, reason: Optional[str] = None) -> Dict[str, Any]:
        validate_token_code(token)
        form = {"token": token}
        if reason:
            form["reason"] = reason
        return self._post(PortalEndpoint.DISABLE_TOKEN, form)

    def purge_tokens(
        self,
        unused_only: Optional[bool] = None,
        max_age_minutes: Optional[int] = None,
        expired_only: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Ask the portal to drop tokens matching the given filters."""
        form: Dict[str, str] = {}
        if unused_only is not None:
            form["unused_only"] = str(unused_only).lower()
        if max_age_minutes is not None:
            form["max_age_minutes"] = str(max_age_minutes)
        if expired_only is not None:
            form["expired_only"] = str(expired_only).lower()
        return self._post(PortalEndpoint.PURGE_TOKENS, form)

    def list_tokens(
        self,
        status: Optional[str] = None,
        business_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"api_key": self.config.api_key, "offset": offset, "limit": limit}
        if status:
            params["status"] = status
        if business_id:
            params["business_id"] = business_id
        url = f"{self.config.base_url}{PortalEndpoint.LIST_TOKENS.value}"
        return self._request("GET", url, params=params, timeout=self.config.batch_timeout)

    def health(self) -> Dict[str, Any]:
        url = f"{self.config.base_url}{PortalEndpoint.HEALTH.value}"
        return self._request(
            "GET",
            url,
            params={"api_key": self.config.api_key},
            timeout=self.config.interactive_timeout,
        )

    # ==================== TRANSPORT ====================

    def _post(self, endpoint: PortalEndpoint, form: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.config.base_url}{endpoint.value}"
        data = {"api_key": self.config.api_key, **form}
        return self._request("POST", url, data=data, timeout=self.config.batch_timeout)

    def _request(self, method: str, url: str, timeout: float, **kwargs) -> Dict[str, Any]:
        """
        Perform one HTTP call and validate the response body.

        Raises:
            DeviceUnreachableError: On timeout or connection failure
            DeviceBusyError: On HTTP 503
            DeviceRejectedError: On any other error status or malformed body
        """
        endpoint = url.split("?")[0].replace(self.config.base_url, "")
        try:
            response = self.http.request(method, url, timeout=timeout, **kwargs)
        except requests.Timeout as e:
            raise DeviceUnreachableError(
                f"Portal request timed out after {timeout}s",
                service_name=SERVICE_NAME,
                error_code=ErrorCode.TIMEOUT_ERROR,
                cause=e,
                endpoint=endpoint,
            )
        except requests.RequestException as e:
            raise DeviceUnreachableError(
                f"Unable to reach portal at {self.config.base_url}",
                service_name=SERVICE_NAME,
                cause=e,
                endpoint=endpoint,
            )

        data = self._decode_body(response)

        self.logger.debug(
            "Portal response",
            extra={"method": method, "endpoint": endpoint, "http_status": response.status_code},
        )

        if response.status_code == 503:
            retry_after = response.headers.get("Retry-After", str(DEFAULT_RETRY_AFTER_SECONDS))
            raise DeviceBusyError(
                data.get("error") or data.get("message") or "Portal is busy",
                retry_after=int(retry_after) if str(retry_after).isdigit() else DEFAULT_RETRY_AFTER_SECONDS,
                service_name=SERVICE_NAME,
                endpoint=endpoint,
            )

        if response.status_code == 507:
            raise DeviceRejectedError(
                data.get("error") or data.get("message") or "No token slots available on portal",
                service_name=SERVICE_NAME,
                error_code=ErrorCode.NO_TOKEN_SLOTS,
                endpoint=endpoint,
            )

        if not response.ok:
            raise DeviceRejectedError(
                data.get("error") or data.get("message") or f"HTTP {response.status_code}",
                service_name=SERVICE_NAME,
                endpoint=endpoint,
                http_status=response.status_code,
            )

        if not isinstance(data.get("success"), bool):
            raise DeviceRejectedError(
                "Invalid response from portal: missing success field",
                service_name=SERVICE_NAME,
                error_code=ErrorCode.INTEGRATION_ERROR,
                endpoint=endpoint,
            )

        return data

    @staticmethod
    def _decode_body(response) -> Dict[str, Any]:
        """JSON body, or ``{"success": <http ok>, "message": text}`` when it is not JSON."""
        try:
            data = response.json()
        except ValueError:
            return {"success": response.ok, "message": response.text}
        if not isinstance(data, dict):
            return {"success": response.ok, "message": response.text}
        return data
