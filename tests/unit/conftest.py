"""
Unit test conftest.py - Component-specific fixtures.

This module provides fixtures specific to unit testing:
- Service fixtures sharing the test session
- Device client doubles (only when necessary)
- Factory binding for ledger rows
"""

from unittest.mock import Mock

import pytest

from guest_wifi_sync.clients.portal_client import PortalClient
from guest_wifi_sync.clients.r710_client import R710Client
from guest_wifi_sync.config import PortalConfig
from guest_wifi_sync.context.tenant_context import tenant_context
from guest_wifi_sync.services.device_tracking_service import DeviceTrackingService
from guest_wifi_sync.services.guest_pass_service import GuestPassService
from guest_wifi_sync.services.sync_engine import SyncEngine
from guest_wifi_sync.services.token_ledger import TokenLedger
from tests.fixtures.factories import bind_factories
from tests.fixtures.payloads import FIXED_NOW, PORTAL_URL, R710_HOST, make_response


# ==================== FACTORY BINDING ====================


@pytest.fixture(scope="function")
def factories(db_session):
    """Bind factory_boy factories to the test session."""
    bind_factories(db_session)
    return db_session


# ==================== SERVICE FIXTURES ====================


@pytest.fixture(scope="function")
def ledger(db_session):
    """Token ledger with test session."""
    return TokenLedger(session=db_session)


@pytest.fixture(scope="function")
def device_tracking(db_session):
    """Device tracking service with test session."""
    return DeviceTrackingService(session=db_session)


@pytest.fixture(scope="function")
def sync_engine(db_session, mock_portal, factories):
    """Sync engine over a mocked portal with a fixed clock."""
    return SyncEngine(mock_portal, session=db_session, clock=lambda: FIXED_NOW)


@pytest.fixture(scope="function")
def guest_pass_service(db_session, mock_r710, factories):
    """Guest pass service over a mocked R710 with a fixed clock."""
    return GuestPassService(mock_r710, session=db_session, clock=lambda: FIXED_NOW)


@pytest.fixture
def in_tenant(sample_tenant_id):
    """Run the test body inside the sample tenant context."""
    with tenant_context(sample_tenant_id):
        yield sample_tenant_id


# ==================== MOCK FIXTURES (ONLY WHEN NECESSARY) ====================


@pytest.fixture(scope="function")
def mock_portal():
    """
    Mock portal client for sync engine tests.

    Tests set ``batch_lookup.return_value`` or ``side_effect`` as needed.
    """
    portal = Mock(spec=PortalClient)
    portal.device_id = PORTAL_URL
    portal.batch_lookup.return_value = {"success": True, "tokens": []}
    portal.health.return_value = {"success": True, "status": "ok"}
    return portal


@pytest.fixture(scope="function")
def mock_r710():
    """Mock R710 client; tests set guest pass replies as needed."""
    client = Mock(spec=R710Client)
    client.device_host = R710_HOST
    client.query_guest_tokens.return_value = []
    return client


@pytest.fixture(scope="function")
def mock_http_session():
    """
    Mock requests session for client tests.

    ``request`` returns a 200 JSON response by default.
    """
    session = Mock()
    session.request.return_value = make_response(200, {"success": True})
    return session


@pytest.fixture
def portal_config():
    return PortalConfig(base_url=f"{PORTAL_URL}/", api_key="secret-key")
