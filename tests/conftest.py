"""
Shared test fixtures.

Provides an in-memory SQLite database, a per-test session that creates
and drops every table, and common identifiers.
"""

import pytest
from sqlalchemy.orm import Session

from guest_wifi_sync.config import reset_config
from guest_wifi_sync.db import DatabaseConfig, DatabaseManager, import_all_models
from guest_wifi_sync.db.db_config import Base, initialize_db
from guest_wifi_sync.exceptions import clear_correlation_id
from guest_wifi_sync.utils.logger import reset_logging


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        url=None,
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    return initialize_db(db_config)


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test so each test
    starts from an empty ledger.
    """
    session = db_manager.get_session()
    Base.metadata.create_all(db_manager.engine)

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def clean_globals():
    """Reset global config, logger and correlation id between tests."""
    yield
    reset_config()
    reset_logging()
    clear_correlation_id()


@pytest.fixture
def sample_tenant_id() -> str:
    """Standard tenant ID for testing."""
    return "test-tenant-123"
