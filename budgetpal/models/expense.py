"""
Core Data Models for BudgetPal

These models define the schemas for users and expenses flowing
through the system. They are designed to:
1. Enforce type safety at runtime
2. Be serializable for storage and logging
3. Carry ownership explicitly (every expense names its owner)
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    The canonical form is upper-case; `parse` accepts any casing.
    """
    FOOD = "FOOD"
    RENT = "RENT"
    ENTERTAINMENT = "ENTERTAINMENT"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value) -> "ExpenseCategory":
        """Normalize free-form input ("food", " Rent ") to a category."""
        if isinstance(value, cls):
            return value
        if value is None:
            raise ValueError("Category is required")
        normalized = str(value).strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(c.value for c in cls)
            raise ValueError(f"Unknown category: {value!r}. Allowed: {allowed}")


# =============================================================================
# USERS
# =============================================================================

class UserIdentity(BaseModel):
    """
    The part of a user that travels with a session.

    Never carries the password hash.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: Optional[str] = None
    email: str


class User(BaseModel):
    """
    A registered user.

    `password_hash` is None for accounts that can only sign in through
    an external provider; such accounts cannot log in with a password.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique user ID"
    )
    name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Display name"
    )
    email: str = Field(
        ...,
        min_length=3,
        max_length=320,
        description="Login email (unique, case-sensitive as stored)"
    )
    password_hash: Optional[str] = Field(
        default=None,
        repr=False,
        description="bcrypt hash of the password"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the user signed up"
    )

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def identity(self) -> UserIdentity:
        return UserIdentity(id=self.id, name=self.name, email=self.email)


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(BaseModel):
    """
    A single recorded expense.

    `owner_user_id` and `id` never change after creation; only amount,
    description and category can be edited.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    owner_user_id: UUID = Field(
        ...,
        description="User who owns this expense"
    )

    # Timestamps
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the expense was recorded (sort key)"
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        description="Last edit timestamp"
    )

    # Content
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount in currency units"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
    )
    category_type: ExpenseCategory

    def to_log_dict(self) -> dict:
        """Fields that are safe to put in a log line."""
        return {
            "expense_id": str(self.id),
            "owner_user_id": str(self.owner_user_id),
            "amount": str(self.amount),
            "category_type": self.category_type.value,
        }
