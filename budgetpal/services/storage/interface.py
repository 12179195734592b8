"""
Abstract Storage Interface

Business logic talks to these interfaces only. Implementations:
1. SQLAlchemy over any relational database (production)
2. In-memory (tests and local experiments)

Ownership is part of the contract: every expense read, update and
delete is keyed by the pair (expense id, owner user id), never by the
expense id alone.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from budgetpal.models.audit import AuditEvent
from budgetpal.models.expense import Expense, ExpenseCategory, User


class UserStorageInterface(ABC):
    """
    Abstract interface for user (credential) storage.

    Email is unique. The store, not the caller, is the final arbiter
    of that constraint.
    """

    @abstractmethod
    async def create_user(self, user: User) -> User:
        """
        Persist a new user.

        Args:
            user: The user to insert

        Returns:
            The stored user

        Raises:
            DuplicateError: If a user with the same email exists
            StorageError: If the insert fails for any other reason
        """
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Look up a user by exact email.

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        """
        Look up a user by ID.

        Returns:
            The user if found, None otherwise
        """
        pass


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def save_expense(self, expense: Expense) -> Expense:
        """
        Insert a new expense.

        Raises:
            NotFoundError: If the owner does not exist
            StorageError: If the insert fails (including a duplicate id)
        """
        pass

    @abstractmethod
    async def get_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
    ) -> Optional[Expense]:
        """
        Fetch an expense only if it belongs to `owner_user_id`.

        Returns:
            The expense, or None when it is missing or owned by someone else
        """
        pass

    @abstractmethod
    async def update_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
        amount: Decimal,
        description: str,
        category_type: ExpenseCategory,
    ) -> Optional[Expense]:
        """
        Update amount, description and category in one statement filtered
        by (id, owner).

        Returns:
            The updated expense, or None when zero rows matched
        """
        pass

    @abstractmethod
    async def delete_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
    ) -> bool:
        """
        Delete in one statement filtered by (id, owner).

        Returns:
            True if a row was deleted, False when zero rows matched
        """
        pass

    @abstractmethod
    async def list_expenses_for_owner(
        self,
        owner_user_id: UUID,
        category: Optional[ExpenseCategory] = None,
    ) -> list[Expense]:
        """
        List an owner's expenses, newest first.

        Args:
            owner_user_id: Whose expenses to list
            category: Restrict to one category (None means all)
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
