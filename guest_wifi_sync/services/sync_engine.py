"""
Batch reconciliation of the token ledger against the ESP32 portal.

One ``sync_batch`` call makes exactly one device round trip for up to 20
tokens, classifies every requested token as found or missing, applies the
lifecycle rules token by token and writes one SyncLog row. Each token is
applied inside its own savepoint so one bad row never discards the rest of
the batch. The engine commits only a session it owns.
"""

import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..clients.portal_client import PortalClient
from ..codec.portal_codec import is_not_found, parse_batch_lookup_response
from ..config import SyncConfig, get_config
from ..context.operation_context import operation
from ..context.tenant_context import tenant_context
from ..db.db_base import as_utc, utc_now
from ..db.db_sync_models import SyncLog
from ..db.db_token_models import Token
from ..enums import SyncStatus, SyncType, TokenStatus
from ..exceptions import (
    DeviceRejectedError,
    DeviceUnreachableError,
    ErrorCode,
    RepositoryError,
    ValidationError,
)
from ..schemas.device_schemas import DeviceTokenReport
from ..schemas.token_schemas import BatchSyncRequest, BatchSyncResult, HealthCheckResult, TokenRead
from .base_service import SessionManagedService
from .device_tracking_service import DeviceTrackingService
from .token_ledger import TokenLedger, map_device_status, missing_status, resolve_status

# Row attributes whose change counts as an update (last_synced_at always moves)
TRACKED_FIELDS = (
    "status",
    "first_used_at",
    "device_created_at",
    "valid_time_seconds",
    "bandwidth_used_down_mb",
    "bandwidth_used_up_mb",
    "usage_count",
    "device_count",
    "max_devices",
    "connected_mac",
    "hostname",
    "device_type",
    "first_seen_at",
    "last_seen_at",
)


def token_snapshot(token: Token, fields: Tuple[str, ...] = TRACKED_FIELDS) -> Tuple[Any, ...]:
    values = []
    for field in fields:
        value = getattr(token, field)
        values.append(as_utc(value) if isinstance(value, datetime) else value)
    return tuple(values)


class SyncEngine(SessionManagedService):
    """Reconciles ledger rows with what the portal reports."""

    def __init__(
        self,
        portal: PortalClient,
        session=None,
        config: Optional[SyncConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        logger=None,
    ):
        super().__init__(session=session, logger=logger)
        self.portal = portal
        self.config = config or get_config().sync
        self.clock = clock
        self.ledger = TokenLedger(session=self.session, logger=self.logger)
        self.devices = DeviceTrackingService(session=self.session, logger=self.logger)

    # ==================== BATCH SYNC ====================

    def sync_batch(self, tenant_id: str, usernames: List[str]) -> BatchSyncResult:
        """
        Reconcile up to ``max_batch_size`` tokens with the portal.

        Raises:
            ValidationError: Bad identifiers or batch size (no device call is made)
            DeviceUnreachableError: Portal timed out or refused the connection
            DeviceRejectedError: Portal returned an error envelope
        """
        with tenant_context(tenant_id):
            return self._sync_batch(tenant_id, usernames)

    @operation(name="sync_engine_sync_batch")
    def _sync_batch(self, tenant_id: str, usernames: List[str]) -> BatchSyncResult:
        request = self._validate_request(tenant_id, usernames)
        started = time.monotonic()

        try:
            payload = self.portal.batch_lookup(request.usernames)
            response = parse_batch_lookup_response(payload)
        except DeviceUnreachableError as e:
            self._write_sync_log(
                tenant_id,
                SyncType.TOKEN_SYNC,
                SyncStatus.DEVICE_UNREACHABLE,
                tokens_checked=len(request.usernames),
                error_message=e.message,
                started=started,
            )
            raise
        except DeviceRejectedError as e:
            self._write_sync_log(
                tenant_id,
                SyncType.TOKEN_SYNC,
                SyncStatus.ERROR,
                tokens_checked=len(request.usernames),
                error_message=e.message,
                started=started,
            )
            raise

        found, missing, lookup_failed = self._partition(request.usernames, response.tokens)
        rows = self.ledger.get_tokens_by_usernames(tenant_id, request.usernames)

        result = BatchSyncResult(tokens_checked=len(request.usernames))
        result.unknown = [username for username in request.usernames if username not in rows]
        result.missing = [username for username in missing if username in rows]
        now = self.clock()

        for username in request.usernames:
            token = rows.get(username)
            if token is None:
                continue
            if username in lookup_failed:
                result.failed.append(username)
                continue
            if token.is_terminal:
                continue

            try:
                with self.session.begin_nested():
                    if username in found:
                        changed = self._apply_report(token, found[username], now)
                    else:
                        changed = self._apply_missing(token, now)
            except Exception as e:
                self.logger.error(
                    "Failed to apply device report to token",
                    extra={
                        "username": username,
                        "error_type": type(e).__name__,
                        "error_details": str(e),
                    },
                )
                result.failed.append(username)
                continue

            if changed:
                result.tokens_updated += 1

        result.tokens = [
            TokenRead.model_validate(rows[username])
            for username in request.usernames
            if username in rows
        ]
        result.count = len(result.tokens)
        result.sync_duration_ms = self._elapsed_ms(started)

        self._write_sync_log(
            tenant_id,
            SyncType.TOKEN_SYNC,
            SyncStatus.SUCCESS,
            tokens_checked=result.tokens_checked,
            tokens_updated=result.tokens_updated,
            started=started,
            details={"failed": result.failed, "missing": result.missing, "unknown": result.unknown},
        )

        self.logger.info(
            "Batch sync complete",
            extra={
                "tokens_checked": result.tokens_checked,
                "tokens_updated": result.tokens_updated,
                "missing_count": len(result.missing),
                "failed_count": len(result.failed),
                "unknown_count": len(result.unknown),
            },
        )
        return result

    def _validate_request(self, tenant_id: str, usernames: List[str]) -> BatchSyncRequest:
        if not usernames:
            raise ValidationError("At least one token is required", field="usernames")

        request = BatchSyncRequest(tenant_id=tenant_id, usernames=usernames)
        if len(request.usernames) > self.config.max_batch_size:
            raise ValidationError(
                f"Maximum {self.config.max_batch_size} tokens per batch",
                field="usernames",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                count=len(request.usernames),
            )
        return request

    def _partition(
        self, usernames: List[str], reports: List[DeviceTokenReport]
    ) -> Tuple[Dict[str, DeviceTokenReport], List[str], List[str]]:
        """Split requested usernames into found reports, missing and failed lookups."""
        by_token = {report.token: report for report in reports}
        phrases = self.config.not_found_phrases

        found: Dict[str, DeviceTokenReport] = {}
        missing: List[str] = []
        lookup_failed: List[str] = []
        for username in usernames:
            report = by_token.get(username)
            if report is None or is_not_found(report, phrases):
                missing.append(username)
            elif not report.success:
                lookup_failed.append(username)
            else:
                found[username] = report
        return found, missing, lookup_failed

    def _apply_report(self, token: Token, report: DeviceTokenReport, now: datetime) -> bool:
        before = token_snapshot(token)

        reported = map_device_status(report.status)
        if token.first_used_at is None:
            first_used_at = report.first_used_at
            if first_used_at is None and reported == TokenStatus.ACTIVE:
                first_used_at = now
            if first_used_at is not None:
                token.first_used_at = first_used_at
                # A first use always means the token is at least active
                if reported is None or reported.rank < TokenStatus.ACTIVE.rank:
                    reported = TokenStatus.ACTIVE

        target = resolve_status(token.token_status, reported, token.first_used_at)
        self.ledger.apply_status(token, target)

        # Device counters are cumulative and replace ours
        if report.bandwidth_used_down_mb is not None:
            token.bandwidth_used_down_mb = report.bandwidth_used_down_mb
        if report.bandwidth_used_up_mb is not None:
            token.bandwidth_used_up_mb = report.bandwidth_used_up_mb
        if report.usage_count is not None:
            token.usage_count = report.usage_count
        if report.device_count is not None:
            token.device_count = report.device_count
        elif report.devices:
            token.device_count = len({device.mac for device in report.devices})
        if report.max_devices is not None:
            token.max_devices = report.max_devices
        if report.duration_minutes:
            token.valid_time_seconds = report.duration_minutes * 60
        if report.created_at is not None:
            token.device_created_at = report.created_at

        token.connected_mac = report.primary_mac or token.connected_mac
        token.hostname = report.hostname or token.hostname
        token.device_type = report.device_type or token.device_type
        token.first_seen_at = report.first_seen_at or token.first_seen_at
        token.last_seen_at = report.last_seen_at or token.last_seen_at
        token.last_synced_at = now

        history_changes = self.devices.sync_token_devices(
            token, report.devices, now, wlan_ssid=token.wlan_id
        )
        return history_changes > 0 or token_snapshot(token) != before

    def _apply_missing(self, token: Token, now: datetime) -> bool:
        changed = self.ledger.apply_status(token, missing_status(token.first_used_at))
        token.last_synced_at = now
        self.devices.close_all_history(token, now)
        return changed

    # ==================== HEALTH ====================

    @operation(name="sync_engine_health_check")
    def health_check(self, tenant_id: str) -> HealthCheckResult:
        """Ask the portal for its health and record the outcome. Never raises for device failures."""
        started = time.monotonic()
        error_message: Optional[str] = None

        try:
            data = self.portal.health()
            healthy = data.get("success") is True
            status = SyncStatus.SUCCESS if healthy else SyncStatus.ERROR
            if not healthy:
                error_message = str(data.get("error") or data.get("message") or "Health check failed")
        except DeviceUnreachableError as e:
            healthy, status, error_message = False, SyncStatus.DEVICE_UNREACHABLE, e.message
        except DeviceRejectedError as e:
            healthy, status, error_message = False, SyncStatus.ERROR, e.message

        duration_ms = self._elapsed_ms(started)
        self._write_sync_log(
            tenant_id,
            SyncType.HEALTH_CHECK,
            status,
            error_message=error_message,
            started=started,
        )
        return HealthCheckResult(
            status=status,
            device_id=self.portal.device_id,
            healthy=healthy,
            error_message=error_message,
            sync_duration_ms=duration_ms,
        )

    # ==================== HELPERS ====================

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def _write_sync_log(
        self,
        tenant_id: str,
        sync_type: SyncType,
        status: SyncStatus,
        started: float,
        tokens_checked: int = 0,
        tokens_updated: int = 0,
        error_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> SyncLog:
        entry = SyncLog.create(
            tenant_id=tenant_id,
            sync_type=sync_type,
            status=status,
            device_id=self.portal.device_id,
            tokens_checked=tokens_checked,
            tokens_updated=tokens_updated,
            error_message=error_message,
            sync_duration_ms=self._elapsed_ms(started),
            details=details,
        )
        try:
            self.session.add(entry)
            self.session.flush()
            self.commit()
        except Exception as e:
            self.rollback()
            raise RepositoryError(
                f"Failed to write sync log: {str(e)}",
                cause=e,
                sync_type=sync_type.value,
                sync_status=status.value,
            )
        return entry
