"""
Constants for the guest WiFi token synchronization core.

This module centralizes the magic strings and limits used when talking to
captive-portal devices so that clients, codecs and services agree on them.
"""

from enum import Enum


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    DATABASE_URL = "DATABASE_URL"
    DB_TYPE = "DB_TYPE"
    DB_NAME = "DB_NAME"
    DB_HOST = "DB_HOST"
    DB_PORT = "DB_PORT"
    DB_USER = "DB_USER"
    DB_PASSWORD = "DB_PASSWORD"
    DB_ECHO = "DB_ECHO"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    PORTAL_BASE_URL = "PORTAL_BASE_URL"
    PORTAL_API_KEY = "PORTAL_API_KEY"
    R710_HOST = "R710_HOST"
    R710_USERNAME = "R710_USERNAME"
    R710_PASSWORD = "R710_PASSWORD"


class PortalEndpoint(str, Enum):
    """ESP32 portal API paths."""

    HEALTH = "/api/health"
    CREATE_TOKEN = "/api/token"
    EXTEND_TOKEN = "/api/token/extend"
    DISABLE_TOKEN = "/api/token/disable"
    BATCH_INFO = "/api/token/batch_info"
    LIST_TOKENS = "/api/tokens/list"
    PURGE_TOKENS = "/api/tokens/purge"


class R710Endpoint(str, Enum):
    """R710 admin web endpoints."""

    LOGIN = "/admin/login.jsp"
    LOGOUT = "/admin/_logout.jsp"
    CONF = "/admin/_conf.jsp"
    CMDSTAT = "/admin/_cmdstat.jsp"
    DASHBOARD = "/admin/dashboard.jsp"
    GUEST_DATA = "/admin/mon_guestdata.jsp"
    CREATE_GUEST = "/admin/mon_createguest.jsp"


class R710Component(str, Enum):
    """R710 configuration components addressed by ajax-request."""

    SYSTEM = "system"
    WLAN_LIST = "wlansvc-list"
    GUEST_SERVICE_LIST = "guestservice-list"
    GUEST_LIST = "guest-list"


# Device limits
MAX_BATCH_SIZE = 20
TOKEN_CODE_PATTERN = r"^[A-Za-z0-9]{8}$"
MAC_ADDRESS_PATTERN = r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$"
MAX_TOKEN_DURATION_MINUTES = 43200
MAX_BUSINESS_ID_LENGTH = 36
DEFAULT_RETRY_AFTER_SECONDS = 5

# Phrases a device may place in a per-token error even inside a successful envelope
NOT_FOUND_PHRASES = ("not found", "no such token", "does not exist", "invalid token")

R710_CSRF_HEADER = "HTTP_X_CSRF_TOKEN"
R710_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"
