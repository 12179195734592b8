"""
In-memory storage implementation.

Same contracts as the SQL storage (unique email, owner-scoped
mutations, newest-first listing), kept in process memory. Used by the
test suite and for running without a database.
"""

import threading
from decimal import Decimal
from typing import Optional
from uuid import UUID

from budgetpal.models.audit import AuditEvent
from budgetpal.models.expense import Expense, ExpenseCategory, User, utc_now
from budgetpal.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    UserStorageInterface,
)


class InMemoryUserStorage(UserStorageInterface):
    """Users keyed by id, with a unique email index."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: dict[UUID, User] = {}
        self._ids_by_email: dict[str, UUID] = {}

    async def create_user(self, user: User) -> User:
        with self._lock:
            if user.email in self._ids_by_email:
                raise DuplicateError("A user with this email already exists")
            self._users[user.id] = user.model_copy()
            self._ids_by_email[user.email] = user.id
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        user_id = self._ids_by_email.get(email)
        if user_id is None:
            return None
        return self._users[user_id].model_copy()

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    def has_user(self, user_id: UUID) -> bool:
        return user_id in self._users


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """
    Expenses keyed by id.

    If `users` is given, inserts check the owner exists (the foreign key).
    """

    def __init__(self, users: Optional[InMemoryUserStorage] = None):
        self._lock = threading.Lock()
        self._expenses: dict[UUID, Expense] = {}
        self._users = users

    def _owned(self, expense_id: UUID, owner_user_id: UUID) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        if expense is None or expense.owner_user_id != owner_user_id:
            return None
        return expense

    async def save_expense(self, expense: Expense) -> Expense:
        if self._users is not None and not self._users.has_user(expense.owner_user_id):
            raise NotFoundError(f"Owner not found: {expense.owner_user_id}")
        with self._lock:
            if expense.id in self._expenses:
                raise StorageError(f"Expense already exists: {expense.id}")
            self._expenses[expense.id] = expense.model_copy()
        return expense

    async def get_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
    ) -> Optional[Expense]:
        expense = self._owned(expense_id, owner_user_id)
        return expense.model_copy() if expense else None

    async def update_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
        amount: Decimal,
        description: str,
        category_type: ExpenseCategory,
    ) -> Optional[Expense]:
        with self._lock:
            current = self._owned(expense_id, owner_user_id)
            if current is None:
                return None
            updated = current.model_copy(update={
                "amount": amount,
                "description": description,
                "category_type": category_type,
                "updated_at": utc_now(),
            })
            self._expenses[expense_id] = updated
        return updated.model_copy()

    async def delete_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
    ) -> bool:
        with self._lock:
            if self._owned(expense_id, owner_user_id) is None:
                return False
            del self._expenses[expense_id]
        return True

    async def list_expenses_for_owner(
        self,
        owner_user_id: UUID,
        category: Optional[ExpenseCategory] = None,
    ) -> list[Expense]:
        expenses = [
            expense.model_copy()
            for expense in self._expenses.values()
            if expense.owner_user_id == owner_user_id
            and (category is None or expense.category_type == category)
        ]
        expenses.sort(key=lambda e: e.created_at, reverse=True)
        return expenses


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
