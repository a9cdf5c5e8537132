"""
Guest pass issuing and reconciliation for the Ruckus R710.

The R710 keeps its own guest-list instead of answering per-token lookups,
so one sync reads every issued pass for a WLAN and applies the same
lifecycle rules as the portal batch sync. Ledger rows whose pass the
appliance no longer lists are classified with ``missing_status``.
"""

import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..clients.r710_client import R710Client
from ..codec.r710_codec import SERVICE_NAME, guest_pass_status
from ..context.operation_context import operation
from ..context.tenant_context import tenant_context
from ..db.db_base import utc_now
from ..db.db_sync_models import SyncLog
from ..db.db_token_models import Token
from ..enums import SyncStatus, SyncType, TokenStatus
from ..exceptions import DeviceRejectedError, DeviceUnreachableError, RepositoryError, not_found
from ..schemas.token_schemas import BatchSyncResult, TokenCreate, TokenRead
from ..schemas.wlan_schemas import GuestPassRequest, R710GuestToken
from ..utils.crud_helpers import list_records
from .base_service import SessionManagedService
from .sync_engine import token_snapshot
from .token_ledger import TokenLedger, missing_status, resolve_status

GUEST_PASS_FIELDS = (
    "status",
    "first_used_at",
    "password",
    "device_created_at",
    "device_expires_at",
    "valid_time_seconds",
    "max_devices",
    "connected_mac",
)


class GuestPassService(SessionManagedService):
    """Issues, reconciles and revokes R710 guest passes against the ledger."""

    def __init__(
        self,
        client: R710Client,
        session=None,
        clock: Callable[[], datetime] = utc_now,
        logger=None,
    ):
        super().__init__(session=session, logger=logger)
        self.client = client
        self.clock = clock
        self.ledger = TokenLedger(session=self.session, logger=self.logger)

    # ==================== ISSUE ====================

    def issue_guest_passes(self, tenant_id: str, request: GuestPassRequest) -> List[TokenRead]:
        """
        Generate passes on the appliance and record each as an AVAILABLE token.

        Raises:
            DeviceUnreachableError: Appliance did not answer
            DeviceRejectedError: No session key, or the batch was refused
        """
        with tenant_context(tenant_id):
            return self._issue_guest_passes(tenant_id, request)

    @operation(name="guest_pass_service_issue")
    def _issue_guest_passes(self, tenant_id: str, request: GuestPassRequest) -> List[TokenRead]:
        passes = self.client.generate_guest_passes(request)

        tokens: List[TokenRead] = []
        try:
            for guest in passes:
                token_data = TokenCreate(
                    username=guest.username,
                    password=guest.password,
                    wlan_id=request.wlan_name,
                    valid_time_seconds=request.valid_time_seconds,
                    max_devices=guest.max_devices,
                )
                tokens.append(self.ledger.create_token(token_data, tenant_id=tenant_id))
            self.commit()
        except Exception:
            self.rollback()
            raise

        self.logger.info(
            "Issued guest passes",
            extra={"wlan": request.wlan_name, "issued": len(tokens)},
        )
        return tokens

    # ==================== SYNC ====================

    def sync_guest_passes(self, tenant_id: str, wlan_id: str) -> BatchSyncResult:
        """
        Reconcile every ledger token of one WLAN with the appliance guest-list.

        Raises:
            DeviceUnreachableError: Appliance did not answer
            DeviceRejectedError: Appliance refused the query
        """
        with tenant_context(tenant_id):
            return self._sync_guest_passes(tenant_id, wlan_id)

    @operation(name="guest_pass_service_sync")
    def _sync_guest_passes(self, tenant_id: str, wlan_id: str) -> BatchSyncResult:
        started = time.monotonic()

        try:
            passes = [guest for guest in self.client.query_guest_tokens() if guest.wlan == wlan_id]
        except DeviceUnreachableError as e:
            self._write_sync_log(
                tenant_id, SyncStatus.DEVICE_UNREACHABLE, started, error_message=e.message
            )
            raise
        except DeviceRejectedError as e:
            self._write_sync_log(tenant_id, SyncStatus.ERROR, started, error_message=e.message)
            raise

        on_device = {guest.username: guest for guest in passes}
        rows: Dict[str, Token] = {
            row.username: row
            for row in list_records(self.session, Token, {"wlan_id": wlan_id}, tenant_id=tenant_id)
        }
        rows.update(self.ledger.get_tokens_by_usernames(tenant_id, on_device))

        result = BatchSyncResult(tokens_checked=len(set(on_device) | set(rows)))
        result.unknown = sorted(username for username in on_device if username not in rows)
        now = self.clock()

        for username in sorted(rows):
            token = rows[username]
            if token.is_terminal:
                continue
            guest = on_device.get(username)
            if guest is None:
                result.missing.append(username)

            try:
                with self.session.begin_nested():
                    if guest is not None:
                        changed = self._apply_guest_pass(token, guest, now)
                    else:
                        changed = self._apply_missing(token, now)
            except Exception as e:
                self.logger.error(
                    "Failed to apply guest pass to token",
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

        result.tokens = [TokenRead.model_validate(rows[username]) for username in sorted(rows)]
        result.count = len(result.tokens)
        result.sync_duration_ms = int((time.monotonic() - started) * 1000)

        self._write_sync_log(
            tenant_id,
            SyncStatus.SUCCESS,
            started,
            tokens_checked=result.tokens_checked,
            tokens_updated=result.tokens_updated,
            details={"failed": result.failed, "missing": result.missing, "unknown": result.unknown},
        )
        self.logger.info(
            "Guest pass sync complete",
            extra={
                "wlan": wlan_id,
                "tokens_checked": result.tokens_checked,
                "tokens_updated": result.tokens_updated,
                "missing_count": len(result.missing),
                "unknown_count": len(result.unknown),
            },
        )
        return result

    def _apply_guest_pass(self, token: Token, guest: R710GuestToken, now: datetime) -> bool:
        before = token_snapshot(token, GUEST_PASS_FIELDS)

        reported = guest_pass_status(guest, now)
        if token.first_used_at is None:
            first_used_at = guest.started_at
            if first_used_at is None and guest.used:
                first_used_at = now
            if first_used_at is not None:
                token.first_used_at = first_used_at
                # A first use always means the token is at least active
                if reported.rank < TokenStatus.ACTIVE.rank:
                    reported = TokenStatus.ACTIVE

        target = resolve_status(token.token_status, reported, token.first_used_at)
        self.ledger.apply_status(token, target)

        token.password = guest.password or token.password
        token.device_created_at = guest.created_at or token.device_created_at
        token.device_expires_at = guest.expires_at or token.device_expires_at
        token.valid_time_seconds = guest.valid_time_seconds or token.valid_time_seconds
        token.max_devices = guest.max_devices
        token.connected_mac = guest.connected_mac or token.connected_mac
        token.last_synced_at = now
        return token_snapshot(token, GUEST_PASS_FIELDS) != before

    def _apply_missing(self, token: Token, now: datetime) -> bool:
        changed = self.ledger.apply_status(token, missing_status(token.first_used_at))
        token.last_synced_at = now
        return changed

    # ==================== REVOKE ====================

    def revoke_guest_pass(self, tenant_id: str, username: str) -> TokenRead:
        """
        Delete a pass from the appliance, then invalidate its ledger token.

        A pass the appliance no longer lists is only invalidated locally.

        Raises:
            RepositoryError: NOT_FOUND for a username outside the ledger
            DeviceRejectedError: The appliance refused the delete
        """
        with tenant_context(tenant_id):
            return self._revoke_guest_pass(tenant_id, username)

    @operation(name="guest_pass_service_revoke")
    def _revoke_guest_pass(self, tenant_id: str, username: str) -> TokenRead:
        if self.ledger.find_token(tenant_id, username) is None:
            raise not_found("Token", username=username, tenant_id=tenant_id)

        guest = next(
            (guest for guest in self.client.query_guest_tokens() if guest.username == username),
            None,
        )
        if guest is not None:
            ack = self.client.delete_guest_pass(guest.id)
            if not ack.accepted:
                raise DeviceRejectedError(
                    f"R710 refused to delete guest pass: {ack.error}",
                    service_name=SERVICE_NAME,
                    username=username,
                    guest_id=guest.id,
                )

        try:
            token = self.ledger.invalidate(username, tenant_id=tenant_id)
            self.commit()
        except Exception:
            self.rollback()
            raise
        return token

    # ==================== HELPERS ====================

    def _write_sync_log(
        self,
        tenant_id: str,
        status: SyncStatus,
        started: float,
        tokens_checked: int = 0,
        tokens_updated: int = 0,
        error_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> SyncLog:
        entry = SyncLog.create(
            tenant_id=tenant_id,
            sync_type=SyncType.GUEST_PASS_SYNC,
            status=status,
            device_id=self.client.device_host,
            tokens_checked=tokens_checked,
            tokens_updated=tokens_updated,
            error_message=error_message,
            sync_duration_ms=int((time.monotonic() - started) * 1000),
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
                sync_type=SyncType.GUEST_PASS_SYNC.value,
                sync_status=status.value,
            )
        return entry
