"""
Audit Models for BudgetPal

Every account and ledger action is recorded as an audit event.
Audit logs are append-only; they are never modified or deleted.

Audit events never carry passwords, password hashes or session tokens.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from budgetpal.models.expense import Expense, utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    USER_SIGNED_UP = "user_signed_up"
    SIGNUP_REJECTED = "signup_rejected"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"

    # Ledger
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Authorization
    OWNERSHIP_CHECK_FAILED = "ownership_check_failed"
    UNAUTHENTICATED_ACCESS = "unauthenticated_access"

    # System events
    STORE_FAILURE = "store_failure"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'user', 'expense', 'session')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who did it
    actor_user_id: Optional[UUID] = Field(
        default=None,
        description="Authenticated user that triggered the event"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events raised by one request"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "actor_user_id": str(self.actor_user_id) if self.actor_user_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.user_signed_up(user_id, correlation_id)
        event = AuditEventBuilder.expense_added(expense, correlation_id)
    """

    @staticmethod
    def user_signed_up(
        user_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_UP,
            entity_type="user",
            entity_id=user_id,
            actor_user_id=user_id,
            correlation_id=correlation_id,
            description="New user signed up",
            is_user_action=True,
        )

    @staticmethod
    def signup_rejected(
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            correlation_id=correlation_id,
            description=f"Signup rejected: {reason}",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def login_succeeded(
        user_id: UUID,
        session_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            entity_type="session",
            entity_id=user_id,
            actor_user_id=user_id,
            correlation_id=correlation_id,
            description="User logged in",
            details={"session_id": session_id},
            is_user_action=True,
        )

    @staticmethod
    def login_failed(
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            correlation_id=correlation_id,
            description="Login failed",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def logout(
        user_id: UUID,
        session_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGOUT,
            entity_type="session",
            entity_id=user_id,
            actor_user_id=user_id,
            correlation_id=correlation_id,
            description="User logged out",
            details={"session_id": session_id},
            is_user_action=True,
        )

    @staticmethod
    def expense_added(
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense.id,
            actor_user_id=expense.owner_user_id,
            correlation_id=correlation_id,
            description=f"Expense added: {expense.category_type.value} {expense.amount}",
            details=expense.to_log_dict(),
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense.id,
            actor_user_id=expense.owner_user_id,
            correlation_id=correlation_id,
            description=f"Expense updated: {expense.category_type.value} {expense.amount}",
            details=expense.to_log_dict(),
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        user_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            actor_user_id=user_id,
            correlation_id=correlation_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def ownership_check_failed(
        expense_id: Optional[UUID],
        user_id: UUID,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OWNERSHIP_CHECK_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            actor_user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} matched no expense owned by the caller",
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def unauthenticated_access(
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHENTICATED_ACCESS,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Anonymous caller attempted: {operation}",
            details={"operation": operation},
        )

    @staticmethod
    def store_failure(
        operation: str,
        error_message: str,
        actor_user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_FAILURE,
            severity=AuditSeverity.ERROR,
            actor_user_id=actor_user_id,
            correlation_id=correlation_id,
            description=f"Store failure during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
