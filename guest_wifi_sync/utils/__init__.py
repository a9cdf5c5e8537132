"""Utility modules for the guest WiFi sync core."""

# Generic read helpers
from .crud_helpers import get_record, list_records

# Logging utilities
from .logger import ContextAwareLogger, configure_logging, get_logger

# Retry helper for callers of device operations
from .retry_utils import backoff_delay, call_with_retry

__all__ = [
    # Logging utilities
    "ContextAwareLogger",
    "configure_logging",
    "get_logger",
    # Generic read helpers
    "get_record",
    "list_records",
    # Retry
    "backoff_delay",
    "call_with_retry",
]
