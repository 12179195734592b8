"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
SQLAlchemy for relational databases and an in-memory variant for tests.
"""

from budgetpal.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    UserStorageInterface,
)
from budgetpal.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserStorage,
)
from budgetpal.services.storage.sql import (
    SqlAuditStorage,
    SqlExpenseStorage,
    SqlStoreClient,
    SqlUserStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryUserStorage",
    # SQL implementation
    "SqlAuditStorage",
    "SqlExpenseStorage",
    "SqlStoreClient",
    "SqlUserStorage",
]
