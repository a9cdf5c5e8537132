"""
Factory Boy factories for ledger and device rows.

Factories write through the session bound by ``bind_factories``
(see tests/unit/conftest.py) and commit, like the sync engine does.
"""

import factory

from guest_wifi_sync.db import DeviceConnectionHistory, DeviceRegistry, Token, TokenDevice
from guest_wifi_sync.db.db_base import utc_now
from guest_wifi_sync.enums import TokenStatus

# ==================== BASE FACTORIES ====================


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Base factory with common patterns."""

    class Meta:
        abstract = True
        sqlalchemy_session_persistence = "commit"


# ==================== TOKEN FACTORIES ====================


class TokenFactory(BaseFactory):
    """Never-used token; override ``status``/``first_used_at`` per test."""

    class Meta:
        model = Token

    id = factory.Faker("uuid4")
    tenant_id = "test-tenant-123"
    username = factory.Sequence(lambda n: f"TK{n:06d}")
    password = factory.Sequence(lambda n: f"pw{n:06d}")
    status = TokenStatus.AVAILABLE.value
    first_used_at = None
    device_count = 0
    usage_count = 0
    bandwidth_used_down_mb = 0.0
    bandwidth_used_up_mb = 0.0


class ActiveTokenFactory(TokenFactory):
    status = TokenStatus.ACTIVE.value
    first_used_at = factory.LazyFunction(utc_now)


# ==================== DEVICE FACTORIES ====================


class DeviceRegistryFactory(BaseFactory):
    class Meta:
        model = DeviceRegistry

    id = factory.Faker("uuid4")
    tenant_id = "test-tenant-123"
    mac_address = factory.Sequence(lambda n: f"AA:BB:CC:00:{n // 256:02X}:{n % 256:02X}")
    first_seen_at = factory.LazyFunction(utc_now)
    first_seen_system = "ESP32"
    total_connections = 0


class TokenDeviceFactory(BaseFactory):
    class Meta:
        model = TokenDevice

    id = factory.Faker("uuid4")
    token_id = factory.LazyAttribute(lambda o: o.token.id)
    mac_address = "AA:BB:CC:DD:EE:01"
    is_online = True
    first_seen = factory.LazyFunction(utc_now)
    last_seen = factory.LazyFunction(utc_now)

    class Params:
        token = factory.SubFactory(TokenFactory)


class OpenHistoryFactory(BaseFactory):
    """An open DeviceConnectionHistory row."""

    class Meta:
        model = DeviceConnectionHistory

    id = factory.Faker("uuid4")
    tenant_id = factory.LazyAttribute(lambda o: o.token.tenant_id)
    token_id = factory.LazyAttribute(lambda o: o.token.id)
    mac_address = "AA:BB:CC:DD:EE:01"
    bandwidth_used_down_mb = 0.0
    bandwidth_used_up_mb = 0.0
    connected_at = factory.LazyFunction(utc_now)
    disconnected_at = None

    class Params:
        token = factory.SubFactory(TokenFactory)


ALL_FACTORIES = (
    TokenFactory,
    ActiveTokenFactory,
    DeviceRegistryFactory,
    TokenDeviceFactory,
    OpenHistoryFactory,
)


def bind_factories(session) -> None:
    """Point every factory at the given session."""
    for factory_class in ALL_FACTORIES:
        factory_class._meta.sqlalchemy_session = session
