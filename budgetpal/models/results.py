"""
Result models handed to the presentation layer.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from budgetpal.models.expense import Expense, ExpenseCategory, UserIdentity


class ActionResult(BaseModel):
    """
    Outcome of a form submission.

    Exactly one of `message` / `error` is meaningful; `redirect_to`
    is set when the caller should navigate away.
    """

    ok: bool
    message: Optional[str] = None
    error: Optional[str] = None
    redirect_to: Optional[str] = None

    @classmethod
    def success(
        cls,
        message: Optional[str] = None,
        redirect_to: Optional[str] = None,
    ) -> "ActionResult":
        return cls(ok=True, message=message, redirect_to=redirect_to)

    @classmethod
    def failure(
        cls,
        error: str,
        redirect_to: Optional[str] = None,
    ) -> "ActionResult":
        return cls(ok=False, error=error, redirect_to=redirect_to)

    def to_payload(self) -> dict:
        """The `{message, error}` state object forms render from."""
        return {"message": self.message, "error": self.error}


class CategorySlice(BaseModel):
    """One pie-chart slice."""

    name: str
    value: Decimal


class ExpenseSummary(BaseModel):
    """Aggregates over a list of expenses."""

    total_balance: Decimal = Decimal("0")
    category_totals: dict[ExpenseCategory, Decimal] = Field(default_factory=dict)
    chart_data: list[CategorySlice] = Field(default_factory=list)

    @property
    def has_data(self) -> bool:
        """False means render "no data", not an empty chart."""
        return bool(self.category_totals)


class DashboardView(BaseModel):
    """Everything the dashboard page renders."""

    user: UserIdentity
    expenses: list[Expense] = Field(default_factory=list)
    summary: ExpenseSummary = Field(default_factory=ExpenseSummary)
    category_filter: Optional[ExpenseCategory] = None
