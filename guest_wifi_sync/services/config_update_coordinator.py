"""
Three-step R710 WLAN update: Guest Service, then WLAN, then verify.

The appliance acknowledges writes it silently ignores, so a write ack is
never taken as success. Only a getconf that shows the WLAN under its new
SSID yields ``ConfigUpdateOutcome.SUCCESS``, and only that outcome may be
persisted locally through ``confirm_wlan_config``.
"""

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from ..clients.r710_client import R710Client
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..db.db_wlan_models import WlanConfig
from ..enums import ConfigUpdateOutcome
from ..exceptions import ConfigNotVerifiedError, DeviceRejectedError, DeviceUnreachableError
from ..schemas.wlan_schemas import ConfigUpdateResult, WlanUpdateRequest
from ..utils.logger import get_logger

STEP_LOGIN = "login"
STEP_GUEST_SERVICE = "guest_service"
STEP_WLAN = "wlan"
STEP_VERIFY = "verify"


class ConfigUpdateCoordinator:
    """Runs the write-then-verify sequence against one R710 session."""

    def __init__(self, client: R710Client):
        self.client = client
        self.logger = get_logger()

    @operation(name="config_update_coordinator_update_wlan")
    def update_wlan(self, request: WlanUpdateRequest) -> ConfigUpdateResult:
        """
        Rename or rebrand a guest WLAN.

        Steps run strictly in order and the first failure stops the sequence.
        Device failures are reported through the outcome, never raised.
        """
        step = STEP_LOGIN
        try:
            if not self.client.is_authenticated:
                self.client.login()
                self.client.initialize_session()

            step = STEP_GUEST_SERVICE
            ack = self.client.update_guest_service(request)
            if not ack.accepted:
                return self._result(request, ConfigUpdateOutcome.WRITE_ERROR, step, ack.error)

            step = STEP_WLAN
            ack = self.client.update_wlan(request)
            if not ack.accepted:
                return self._result(request, ConfigUpdateOutcome.WRITE_ERROR, step, ack.error)

            step = STEP_VERIFY
            wlans = self.client.list_wlans()
        except DeviceUnreachableError as e:
            return self._result(request, ConfigUpdateOutcome.DEVICE_UNREACHABLE, step, e.message)
        except DeviceRejectedError as e:
            outcome = {
                STEP_LOGIN: ConfigUpdateOutcome.DEVICE_UNREACHABLE,
                STEP_VERIFY: ConfigUpdateOutcome.UNVERIFIED,
            }.get(step, ConfigUpdateOutcome.WRITE_ERROR)
            return self._result(request, outcome, step, e.message)

        match = next((wlan for wlan in wlans if wlan.id == request.new_ssid), None)
        if match is None or match.name != request.new_ssid:
            return self._result(
                request,
                ConfigUpdateOutcome.UNVERIFIED,
                STEP_VERIFY,
                f"WLAN {request.new_ssid!r} not found after update",
            )

        return self._result(request, ConfigUpdateOutcome.SUCCESS)

    def _result(
        self,
        request: WlanUpdateRequest,
        outcome: ConfigUpdateOutcome,
        failed_step: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> ConfigUpdateResult:
        log = self.logger.info if outcome == ConfigUpdateOutcome.SUCCESS else self.logger.warning
        log(
            f"WLAN update {outcome.value}",
            extra={
                "device_host": self.client.device_host,
                "wlan_id": request.wlan_id,
                "new_ssid": request.new_ssid,
                "failed_step": failed_step,
                "error_details": error_message,
            },
        )
        return ConfigUpdateResult(
            outcome=outcome,
            request=request,
            device_host=self.client.device_host,
            failed_step=failed_step,
            error_message=error_message,
            completed_at=utc_now(),
        )


def confirm_wlan_config(session: Session, tenant_id: str, result: ConfigUpdateResult) -> WlanConfig:
    """
    Persist a verified WLAN update.

    Raises:
        ConfigNotVerifiedError: For any outcome other than SUCCESS; nothing is written
    """
    if not result.verified:
        raise ConfigNotVerifiedError(
            outcome=result.outcome.value,
            device_host=result.device_host,
            new_ssid=result.request.new_ssid,
        )

    request = result.request
    config = (
        session.query(WlanConfig)
        .filter(
            WlanConfig.device_host == result.device_host,
            WlanConfig.guest_service_id == request.guest_service_id,
        )
        .first()
    )
    if config is None:
        config = WlanConfig(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            device_host=result.device_host,
            guest_service_id=request.guest_service_id,
        )
        session.add(config)

    # The appliance keys the WLAN by its SSID, so the new SSID is also the new id
    config.wlan_id = request.new_ssid
    config.ssid = request.new_ssid
    config.title = request.title
    config.valid_days = request.valid_days
    config.logo_type = request.logo_type
    config.enable_friendly_key = request.enable_friendly_key
    session.flush()

    get_logger().info(
        "Confirmed WLAN configuration",
        extra={"device_host": result.device_host, "ssid": config.ssid, "tenant_id": tenant_id},
    )
    return config
