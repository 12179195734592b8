"""Services package."""

from budgetpal.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserStorage,
    NotFoundError,
    SqlAuditStorage,
    SqlExpenseStorage,
    SqlStoreClient,
    SqlUserStorage,
    StorageError,
    UserStorageInterface,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryUserStorage",
    "NotFoundError",
    "SqlAuditStorage",
    "SqlExpenseStorage",
    "SqlStoreClient",
    "SqlUserStorage",
    "StorageError",
    "UserStorageInterface",
]
