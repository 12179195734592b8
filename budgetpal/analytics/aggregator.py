"""
Expense aggregation for the dashboard.

Pure functions over a list of expenses. Categories with no expenses
are left out of the per-category results rather than reported as zero.
"""

from decimal import Decimal
from typing import Iterable

from budgetpal.models.expense import Expense, ExpenseCategory
from budgetpal.models.results import CategorySlice, ExpenseSummary


def total_balance(expenses: Iterable[Expense]) -> Decimal:
    """Sum of all amounts; 0 for no expenses."""
    return sum((expense.amount for expense in expenses), Decimal("0"))


def group_by_category(expenses: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    """Total amount per category, in the order categories first appear."""
    totals: dict[ExpenseCategory, Decimal] = {}
    for expense in expenses:
        totals[expense.category_type] = (
            totals.get(expense.category_type, Decimal("0")) + expense.amount
        )
    return totals


def chart_data(category_totals: dict[ExpenseCategory, Decimal]) -> list[CategorySlice]:
    """Pie-chart slices (`{name, value}`), one per category present."""
    return [
        CategorySlice(name=category.value, value=value)
        for category, value in category_totals.items()
    ]


def summarize(expenses: Iterable[Expense]) -> ExpenseSummary:
    """Total, per-category totals and chart slices in one pass."""
    expenses = list(expenses)
    totals = group_by_category(expenses)
    return ExpenseSummary(
        total_balance=sum(totals.values(), Decimal("0")),
        category_totals=totals,
        chart_data=chart_data(totals),
    )
