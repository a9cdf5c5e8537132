"""
Base service implementation with common functionality for all services.

Services own a SQLAlchemy session unless one is handed to them, in which
case the caller stays in charge of committing and closing it.
"""

import logging
from contextlib import contextmanager
from typing import NoReturn, Optional

from sqlalchemy.orm import Session

from ..context.tenant_context import TenantContext
from ..db.db_config import get_db_manager
from ..exceptions import BaseError, ErrorCode, RepositoryError, ServiceError, ValidationError
from ..utils.logger import get_logger


class SessionManagedService:
    """
    Service that owns and manages its own database session.

    Passing ``session`` shares an existing session (tests, or several
    services coordinating one unit of work).
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if session is not None:
            self.session = session
            self._owns_session = False
        else:
            self.session = self._create_session()
            self._owns_session = True

        self.logger = logger or get_logger()

    def _create_session(self) -> Session:
        """Create a new session from the global database manager."""
        return get_db_manager().session_factory()

    def _get_current_tenant_id(self) -> str:
        """Get current tenant ID from context with validation."""
        tenant_id = TenantContext.get_current_tenant_id()
        if not tenant_id:
            raise ValidationError(
                "No tenant context set - ensure tenant_context is active",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
            )
        return tenant_id

    def _handle_service_exception(
        self, operation: str, exception: Exception, record_id: Optional[str] = None
    ) -> NoReturn:
        """
        Log and re-raise an exception from a service operation.

        BaseError subclasses pass through unchanged (they already logged
        themselves); anything else is wrapped in a ServiceError.
        """
        if isinstance(exception, RepositoryError) and exception.error_code == ErrorCode.NOT_FOUND:
            self.logger.warning(
                f"Record not found in {operation}",
                extra={
                    "operation": operation,
                    "record_id": record_id,
                    "error_type": type(exception).__name__,
                },
            )
            raise exception
        if isinstance(exception, BaseError):
            raise exception

        error_msg = f"Error in {operation}: {str(exception)}"
        self.logger.error(
            error_msg,
            extra={
                "operation": operation,
                "record_id": record_id,
                "error_type": type(exception).__name__,
                "error_details": str(exception),
            },
            exc_info=True,
        )
        raise ServiceError(
            error_msg,
            error_code=ErrorCode.INTERNAL_ERROR,
            operation=operation,
            record_id=record_id,
            cause=exception,
        )

    @contextmanager
    def transaction(self):
        """
        Context manager for transactional operations.

        Usage:
            with service.transaction():
                service.mark_sold(...)
                # Auto-commits on success, rollback on exception
        """
        try:
            yield self.session
            if self._owns_session:
                self.session.commit()
        except Exception:
            if self._owns_session:
                self.session.rollback()
            raise

    def commit(self):
        """Manually commit the current transaction."""
        if self._owns_session:
            self.session.commit()

    def rollback(self):
        """Manually rollback the current transaction."""
        if self._owns_session:
            self.session.rollback()

    def close(self):
        """Close the session if we own it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()
