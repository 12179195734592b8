"""Expense analytics."""

from budgetpal.analytics.aggregator import (
    chart_data,
    group_by_category,
    summarize,
    total_balance,
)

__all__ = ["chart_data", "group_by_category", "summarize", "total_balance"]
