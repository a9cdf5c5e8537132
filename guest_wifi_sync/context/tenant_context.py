"""
Tenant context management.

Every token belongs to exactly one tenant (the business that sells it).
The current tenant lives in thread-local storage so services and log
records can be scoped without threading the id through every call.
"""

import threading
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Generator, Optional, Union

from ..exceptions import ErrorCode, ValidationError
from ..utils.logger import get_logger


class TenantContext:
    """
    Manages tenant context throughout the application using thread-local storage.
    """

    _thread_local = threading.local()

    @classmethod
    def set_current_tenant(cls, tenant_id: str) -> None:
        """
        Set the current tenant ID for the execution context.

        Raises:
            ValidationError: If tenant_id is empty or invalid
        """
        if not tenant_id or not isinstance(tenant_id, str) or not tenant_id.strip():
            raise ValidationError(
                "tenant_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
                value=tenant_id,
            )

        cls._thread_local.tenant_id = tenant_id.strip()
        get_logger().debug(f"Current tenant set to: {tenant_id}")

    @classmethod
    def get_current_tenant_id(cls) -> Optional[str]:
        """Get the current tenant ID, or None if not set."""
        return getattr(cls._thread_local, "tenant_id", None)

    @classmethod
    def clear_current_tenant(cls) -> None:
        if hasattr(cls._thread_local, "tenant_id"):
            delattr(cls._thread_local, "tenant_id")


@contextmanager
def tenant_context(tenant_id: str) -> Generator[None, None, None]:
    """
    Context manager for tenant operations.

    Sets the current tenant for the duration of the context and restores the
    previous one afterward.
    """
    previous_tenant = TenantContext.get_current_tenant_id()
    TenantContext.set_current_tenant(tenant_id)
    try:
        yield
    finally:
        if previous_tenant:
            TenantContext.set_current_tenant(previous_tenant)
        else:
            TenantContext.clear_current_tenant()


def tenant_aware(tenant_id: Union[Optional[str], Callable] = None):
    """
    Parameterized decorator to make a function tenant-aware.

    Uses the decorator argument, then a ``tenant_id`` keyword argument, then
    the current context. Raises ValidationError when none is available.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            effective_tenant_id = (
                tenant_id or kwargs.get("tenant_id") or TenantContext.get_current_tenant_id()
            )

            if effective_tenant_id and isinstance(effective_tenant_id, str):
                with tenant_context(effective_tenant_id):
                    return func(*args, **kwargs)

            raise ValidationError(
                "No tenant ID provided for tenant-aware function",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
            )

        return wrapper

    # Handle usage as @tenant_aware (without args)
    if callable(tenant_id):
        func = tenant_id
        tenant_id = None
        return decorator(func)

    return decorator
