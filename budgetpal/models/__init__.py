"""
Data Models Package

This package contains all Pydantic models used in BudgetPal.
All data flowing through the system must conform to these schemas.
"""

from budgetpal.models.expense import (
    Expense,
    ExpenseCategory,
    User,
    UserIdentity,
    utc_now,
)
from budgetpal.models.session import (
    AuthContext,
    RequestContext,
    Session,
)
from budgetpal.models.results import (
    ActionResult,
    CategorySlice,
    DashboardView,
    ExpenseSummary,
)
from budgetpal.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Domain models
    "Expense",
    "ExpenseCategory",
    "User",
    "UserIdentity",
    "utc_now",
    # Session models
    "AuthContext",
    "RequestContext",
    "Session",
    # Result models
    "ActionResult",
    "CategorySlice",
    "DashboardView",
    "ExpenseSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
