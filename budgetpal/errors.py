"""
Domain errors for BudgetPal.

Every public operation raises one of these (or returns normally).
Each carries the message that is safe to show to the user; the
flows in `budgetpal.orchestrator` turn them into `{"error": ...}`
payloads.
"""

from typing import Optional


class BudgetPalError(Exception):
    """Base class for all domain errors."""

    default_message = "Something went wrong"

    def __init__(self, user_message: Optional[str] = None):
        self.user_message = user_message or self.default_message
        super().__init__(self.user_message)


class ValidationError(BudgetPalError):
    """Missing or malformed input."""

    default_message = "Invalid input"

    def __init__(self, user_message: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(user_message)


class Unauthenticated(BudgetPalError):
    """No session, or the session expired or was logged out."""

    default_message = "You must be logged in to do that"


class NotFoundOrForbidden(BudgetPalError):
    """
    The target row does not exist or belongs to someone else.

    The two cases are deliberately not distinguished.
    """

    default_message = "Expense not found"


class EmailTaken(BudgetPalError):
    """A user with this email already exists."""

    default_message = "Email already registered"


class InvalidCredentials(BudgetPalError):
    """Unknown email or wrong password (same message for both)."""

    default_message = "Invalid email or password"


class StoreFailure(BudgetPalError):
    """Unexpected persistence fault, translated into an opaque message."""

    default_message = "Something went wrong, please try again"
