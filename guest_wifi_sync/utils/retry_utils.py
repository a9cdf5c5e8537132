"""
Caller-side retry for device calls.

The sync engine and device clients never retry on their own. Schedulers
and request handlers that want another attempt after a device-unreachable
failure wrap the call with ``call_with_retry``.
"""

import time
from typing import Callable, Optional, TypeVar

from ..config import RetryPolicy, get_config
from ..exceptions import DeviceBusyError, DeviceUnreachableError
from .logger import get_logger

T = TypeVar("T")


def backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Delay in seconds before retry number ``attempt`` (1-based)."""
    return min(policy.backoff_base_seconds**attempt, policy.backoff_max_seconds)


def call_with_retry(
    func: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``func`` and retry it on DeviceUnreachableError.

    DeviceBusyError waits at least the device's Retry-After. Any other
    exception propagates immediately. After the final attempt the last
    error is re-raised.
    """
    policy = policy or get_config().retry
    logger = get_logger()

    attempt = 1
    while True:
        try:
            return func()
        except DeviceBusyError as e:
            if not policy.retry_on_busy or attempt >= policy.max_attempts:
                raise
            delay = max(float(e.retry_after), backoff_delay(attempt, policy))
            last_error: DeviceUnreachableError = e
        except DeviceUnreachableError as e:
            if attempt >= policy.max_attempts:
                raise
            delay = backoff_delay(attempt, policy)
            last_error = e

        logger.warning(
            "Device unreachable, retrying",
            extra={
                "attempt": attempt,
                "max_attempts": policy.max_attempts,
                "delay_seconds": delay,
                "error_code": last_error.error_code.value,
            },
        )
        sleep(delay)
        attempt += 1
