"""
Token ledger: the authoritative local record of guest access tokens.

Every status change goes through ``validate_transition``. Status only
moves forward along the lifecycle

    AVAILABLE/UNUSED -> SOLD -> ACTIVE -> EXPIRED
                 \\________\\________\\--> DISABLED / INVALIDATED

and terminal rows are never revisited. Mutations flush but do not commit;
the caller owns the transaction.
"""

import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func

from ..context.operation_context import operation
from ..context.tenant_context import tenant_aware
from ..db.db_base import utc_now
from ..db.db_token_models import Token, TokenSale
from ..enums import TERMINAL_STATUSES, TokenStatus
from ..exceptions import InvalidTokenTransitionError, duplicate, not_found
from ..schemas.token_schemas import TokenCreate, TokenRead, TokenSaleRequest
from ..utils.crud_helpers import get_record, list_records
from .base_service import SessionManagedService

# Device status strings, matched case-insensitively
DEVICE_STATUS_MAP = {
    "unused": TokenStatus.UNUSED,
    "available": TokenStatus.AVAILABLE,
    "active": TokenStatus.ACTIVE,
    "expired": TokenStatus.EXPIRED,
    "disabled": TokenStatus.DISABLED,
}


def map_device_status(value: Optional[str]) -> Optional[TokenStatus]:
    """Map a device-reported status string; unknown strings map to None."""
    if not value:
        return None
    return DEVICE_STATUS_MAP.get(value.strip().lower())


def validate_transition(
    current: TokenStatus, target: TokenStatus, first_used_at: Optional[datetime] = None
) -> None:
    """
    Raise InvalidTokenTransitionError unless ``current -> target`` is a lifecycle edge.

    ``first_used_at`` is the value the row will hold after the change.
    Staying in the same status is always allowed.
    """
    if current == target:
        return

    allowed = False
    if current in TERMINAL_STATUSES:
        allowed = False
    elif target == TokenStatus.INVALIDATED:
        allowed = True
    elif target == TokenStatus.SOLD:
        allowed = current in (TokenStatus.AVAILABLE, TokenStatus.UNUSED)
    elif target == TokenStatus.ACTIVE:
        allowed = current.is_pre_use and first_used_at is not None
    elif target == TokenStatus.EXPIRED:
        allowed = first_used_at is not None
    elif target == TokenStatus.DISABLED:
        allowed = True
    elif target in (TokenStatus.AVAILABLE, TokenStatus.UNUSED):
        # The two never-used states are interchangeable
        allowed = current in (TokenStatus.AVAILABLE, TokenStatus.UNUSED)

    if not allowed:
        raise InvalidTokenTransitionError(
            f"Cannot move token from {current.value} to {target.value}",
            current_status=current.value,
            target_status=target.value,
            has_first_used_at=first_used_at is not None,
        )


def resolve_status(
    current: TokenStatus, reported: Optional[TokenStatus], first_used_at: Optional[datetime]
) -> TokenStatus:
    """
    Status a row should hold after a device report.

    Terminal rows keep their status, EXPIRED without a first use becomes
    DISABLED, and a report ranked at or below the current status is ignored.
    """
    if current.is_terminal or reported is None:
        return current
    if reported == TokenStatus.EXPIRED and first_used_at is None:
        reported = TokenStatus.DISABLED
    if reported.rank <= current.rank:
        return current
    return reported


def missing_status(first_used_at: Optional[datetime]) -> TokenStatus:
    """Classification of a token the device no longer knows."""
    return TokenStatus.EXPIRED if first_used_at is not None else TokenStatus.DISABLED


class TokenLedger(SessionManagedService):
    """
    Service over the token ledger with direct SQLAlchemy access.

    Tenant scoped operations read the tenant from the current
    ``tenant_context``; ``@tenant_aware`` also accepts a ``tenant_id`` keyword.
    """

    # ==================== QUERIES ====================

    def find_token(self, tenant_id: str, username: str) -> Optional[Token]:
        return get_record(self.session, Token, {"username": username}, tenant_id=tenant_id)

    def get_tokens_by_usernames(self, tenant_id: str, usernames: Iterable[str]) -> Dict[str, Token]:
        """Ledger rows for the given usernames, keyed by username."""
        usernames = list(usernames)
        if not usernames:
            return {}
        rows = list_records(self.session, Token, {"username": usernames}, tenant_id=tenant_id)
        return {row.username: row for row in rows}

    @tenant_aware
    @operation()
    def get_token(self, username: str, tenant_id: Optional[str] = None) -> TokenRead:
        """
        Fetch one token.

        Raises:
            RepositoryError: NOT_FOUND when the tenant has no such token
        """
        tenant_id = self._get_current_tenant_id()
        token = self.find_token(tenant_id, username)
        if token is None:
            raise not_found("Token", username=username, tenant_id=tenant_id)
        return TokenRead.model_validate(token)

    @tenant_aware
    @operation()
    def list_tokens(
        self,
        status: Optional[TokenStatus] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        tenant_id: Optional[str] = None,
    ) -> List[TokenRead]:
        tenant_id = self._get_current_tenant_id()
        filters = {"status": status.value} if status else None
        rows = list_records(
            self.session, Token, filters, tenant_id=tenant_id, limit=limit, offset=offset
        )
        return [TokenRead.model_validate(row) for row in rows]

    @tenant_aware
    @operation()
    def status_counts(self, tenant_id: Optional[str] = None) -> Dict[str, int]:
        """Number of tokens per status for the current tenant."""
        tenant_id = self._get_current_tenant_id()
        rows = (
            self.session.query(Token.status, func.count(Token.id))
            .filter(Token.tenant_id == tenant_id)
            .group_by(Token.status)
            .all()
        )
        counts = {status.value: 0 for status in TokenStatus}
        counts.update({status: count for status, count in rows})
        return counts

    # ==================== MUTATIONS ====================

    @tenant_aware
    @operation()
    def create_token(self, token_data: TokenCreate, tenant_id: Optional[str] = None) -> TokenRead:
        """
        Insert a never-used token.

        Raises:
            RepositoryError: DUPLICATE when the username already exists
        """
        tenant_id = self._get_current_tenant_id()

        existing = self.session.query(Token.id).filter(Token.username == token_data.username).first()
        if existing is not None:
            raise duplicate("Token", username=token_data.username)

        try:
            token = Token(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                username=token_data.username,
                password=token_data.password,
                wlan_id=token_data.wlan_id,
                token_config_id=token_data.token_config_id,
                valid_time_seconds=token_data.valid_time_seconds,
                max_devices=token_data.max_devices,
                status=token_data.status.value,
                device_count=0,
                usage_count=0,
                bandwidth_used_down_mb=0.0,
                bandwidth_used_up_mb=0.0,
            )
            self.session.add(token)
            self.session.flush()
        except Exception as e:
            self._handle_service_exception("create_token", e, token_data.username)

        self.logger.info(
            "Created token",
            extra={"username": token.username, "token_status": token.status},
        )
        return TokenRead.model_validate(token)

    @tenant_aware
    @operation()
    def mark_sold(self, sale: TokenSaleRequest, tenant_id: Optional[str] = None) -> TokenRead:
        """
        Purchase callback: AVAILABLE/UNUSED -> SOLD, recording a TokenSale.

        Raises:
            RepositoryError: NOT_FOUND for an unknown username
            InvalidTokenTransitionError: When the token is not available for sale
        """
        tenant_id = self._get_current_tenant_id()
        token = self._require_token(tenant_id, sale.username)

        self.apply_status(token, TokenStatus.SOLD)
        token.sold_at = utc_now()
        self.session.add(
            TokenSale.create(
                tenant_id=tenant_id,
                token_id=token.id,
                channel=sale.channel,
                amount=sale.amount,
                sold_by=sale.sold_by,
            )
        )
        self.session.flush()

        self.logger.info(
            "Token sold",
            extra={"username": token.username, "channel": sale.channel.value, "amount": sale.amount},
        )
        return TokenRead.model_validate(token)

    @tenant_aware
    @operation()
    def mark_active(
        self, username: str, first_used_at: Optional[datetime] = None, tenant_id: Optional[str] = None
    ) -> TokenRead:
        """First observed use: sets ``first_used_at`` once and moves to ACTIVE."""
        tenant_id = self._get_current_tenant_id()
        token = self._require_token(tenant_id, username)
        if token.first_used_at is None:
            token.first_used_at = first_used_at or utc_now()
        self.apply_status(token, TokenStatus.ACTIVE)
        self.session.flush()
        return TokenRead.model_validate(token)

    @tenant_aware
    @operation()
    def expire(self, username: str, tenant_id: Optional[str] = None) -> TokenRead:
        """Mark a used token EXPIRED. Raises for a token that was never used."""
        tenant_id = self._get_current_tenant_id()
        token = self._require_token(tenant_id, username)
        self.apply_status(token, TokenStatus.EXPIRED)
        self.session.flush()
        return TokenRead.model_validate(token)

    @tenant_aware
    @operation()
    def disable(self, username: str, tenant_id: Optional[str] = None) -> TokenRead:
        tenant_id = self._get_current_tenant_id()
        token = self._require_token(tenant_id, username)
        self.apply_status(token, TokenStatus.DISABLED)
        self.session.flush()
        return TokenRead.model_validate(token)

    @tenant_aware
    @operation()
    def invalidate(self, username: str, tenant_id: Optional[str] = None) -> TokenRead:
        """Admin void. Never raises for status reasons; a terminal token is returned unchanged."""
        tenant_id = self._get_current_tenant_id()
        token = self._require_token(tenant_id, username)
        if token.is_terminal:
            self.logger.info(
                "Token already terminal, invalidate is a no-op",
                extra={"username": token.username, "token_status": token.status},
            )
            return TokenRead.model_validate(token)

        self.apply_status(token, TokenStatus.INVALIDATED)
        self.session.flush()
        return TokenRead.model_validate(token)

    # ==================== HELPERS ====================

    def _require_token(self, tenant_id: str, username: str) -> Token:
        token = self.find_token(tenant_id, username)
        if token is None:
            raise not_found("Token", username=username, tenant_id=tenant_id)
        return token

    def apply_status(self, token: Token, target: TokenStatus) -> bool:
        """Validate and set a new status. Returns True when the status changed."""
        current = token.token_status
        validate_transition(current, target, token.first_used_at)
        if current == target:
            return False

        token.status = target.value
        self.logger.info(
            "Token status changed",
            extra={"username": token.username, "from_status": current.value, "to_status": target.value},
        )
        return True

