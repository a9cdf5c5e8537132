"""
Enums used across the guest_wifi_sync package.

Kept in their own module so models, schemas and services can share them
without circular imports.
"""

import enum


class TokenStatus(str, enum.Enum):
    """Lifecycle states of a guest access token."""

    AVAILABLE = "AVAILABLE"
    UNUSED = "UNUSED"
    SOLD = "SOLD"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    DISABLED = "DISABLED"
    INVALIDATED = "INVALIDATED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_pre_use(self) -> bool:
        return self in PRE_USE_STATUSES

    @property
    def rank(self) -> int:
        """Position along the lifecycle; status never moves to a lower rank."""
        return STATUS_RANK[self]


TERMINAL_STATUSES = frozenset({TokenStatus.EXPIRED, TokenStatus.DISABLED, TokenStatus.INVALIDATED})
PRE_USE_STATUSES = frozenset({TokenStatus.AVAILABLE, TokenStatus.UNUSED, TokenStatus.SOLD})

STATUS_RANK = {
    TokenStatus.AVAILABLE: 0,
    TokenStatus.UNUSED: 0,
    TokenStatus.SOLD: 1,
    TokenStatus.ACTIVE: 2,
    TokenStatus.EXPIRED: 3,
    TokenStatus.DISABLED: 3,
    TokenStatus.INVALIDATED: 3,
}


class SyncType(str, enum.Enum):
    """Kinds of device reconciliation runs recorded in the sync log."""

    TOKEN_SYNC = "TOKEN_SYNC"
    HEALTH_CHECK = "HEALTH_CHECK"
    GUEST_PASS_SYNC = "GUEST_PASS_SYNC"


class SyncStatus(str, enum.Enum):
    """Outcome of a sync log entry."""

    SUCCESS = "SUCCESS"
    DEVICE_UNREACHABLE = "DEVICE_UNREACHABLE"
    ERROR = "ERROR"


class SaleChannel(str, enum.Enum):
    """Where a token sale originated."""

    DIRECT = "DIRECT"
    POS = "POS"


class MacAclListType(str, enum.Enum):
    """Network level access list kinds."""

    BLACKLIST = "BLACKLIST"
    WHITELIST = "WHITELIST"


class ConfigUpdateOutcome(str, enum.Enum):
    """Result of a three-step R710 configuration update."""

    SUCCESS = "SUCCESS"
    WRITE_ERROR = "WRITE_ERROR"
    UNVERIFIED = "UNVERIFIED"
    DEVICE_UNREACHABLE = "DEVICE_UNREACHABLE"
