"""
Audit Logger

Every account and ledger action is logged as an AuditEvent.

The audit logger:
- Always writes a structured local log line
- Persists to audit storage when one is configured
- Never raises: a storage failure is logged and reported as False
- Supports correlation IDs to trace the events of one request
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from budgetpal.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from budgetpal.models.expense import Expense
from budgetpal.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("budgetpal.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_user_signed_up(
        self,
        user_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful signup."""
        await self.log(AuditEventBuilder.user_signed_up(
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_signup_rejected(
        self,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.signup_rejected(
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_login_succeeded(
        self,
        user_id: UUID,
        session_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login_succeeded(
            user_id=user_id,
            session_id=session_id,
            correlation_id=correlation_id,
        ))

    async def log_login_failed(
        self,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed login. `reason` is internal only, never shown."""
        await self.log(AuditEventBuilder.login_failed(
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_logout(
        self,
        user_id: UUID,
        session_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.logout(
            user_id=user_id,
            session_id=session_id,
            correlation_id=correlation_id,
        ))

    async def log_expense_added(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_added(
            expense=expense,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense=expense,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: UUID,
        user_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_ownership_check_failed(
        self,
        expense_id: Optional[UUID],
        user_id: UUID,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ownership_check_failed(
            expense_id=expense_id,
            user_id=user_id,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_unauthenticated_access(
        self,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.unauthenticated_access(
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_store_failure(
        self,
        operation: str,
        error_message: str,
        actor_user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a persistence fault (the raw error stays in the audit trail)."""
        await self.log(AuditEventBuilder.store_failure(
            operation=operation,
            error_message=error_message,
            actor_user_id=actor_user_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and pass it through all
    subsequent operations.
    """
    return uuid4()
