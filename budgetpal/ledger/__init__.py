"""Expense ledger package."""

from budgetpal.ledger.service import ExpenseLedgerService
from budgetpal.ledger.signals import RefreshSignal

__all__ = ["ExpenseLedgerService", "RefreshSignal"]
