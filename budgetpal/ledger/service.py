"""
Expense Ledger Service

Create, read, update and delete expenses, always on behalf of the
user in an AuthContext.

DESIGN DECISION: ownership is enforced by the storage predicate
(expense id AND owner id), not by a read-then-check. A foreign,
missing or malformed id all match zero rows and all surface as the
same NotFoundOrForbidden.

Every protected call checks, in order:
1. The caller is authenticated
2. The input is valid
3. The owner-scoped store operation matched a row
"""

from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

from budgetpal.audit import AuditLogger, create_correlation_id
from budgetpal.config.settings import AppSettings, get_settings
from budgetpal.errors import NotFoundOrForbidden, StoreFailure, Unauthenticated
from budgetpal.ledger.signals import RefreshSignal
from budgetpal.models.expense import Expense, ExpenseCategory, UserIdentity, utc_now
from budgetpal.models.session import AuthContext
from budgetpal.services.storage import (
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
)
from budgetpal.validation import ExpenseForm, parse_form

ExpenseId = Union[UUID, str]


class ExpenseLedgerService:
    """Owner-scoped expense CRUD."""

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        refresh_signal: Optional[RefreshSignal] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._refresh_signal = refresh_signal or RefreshSignal()
        self._settings = settings or get_settings().app

    @property
    def refresh_signal(self) -> RefreshSignal:
        return self._refresh_signal

    async def add_expense(
        self,
        auth: AuthContext,
        amount: Any,
        description: Any,
        category_type: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record a new expense for the authenticated user.

        Raises:
            Unauthenticated: No valid session
            ValidationError: Bad amount, description or category
            StoreFailure: The insert failed
        """
        correlation_id = correlation_id or create_correlation_id()
        user = await self._require_user(auth, "add_expense", correlation_id)
        form = self._parse_form(amount, description, category_type)

        now = utc_now()
        expense = Expense(
            owner_user_id=user.id,
            amount=form.amount,
            description=form.description,
            category_type=form.category_type,
            created_at=now,
            updated_at=now,
        )

        try:
            saved = await self._storage.save_expense(expense)
        except NotFoundError as e:
            # The session outlived its user row
            if self._audit_logger:
                await self._audit_logger.log_unauthenticated_access(
                    operation="add_expense",
                    correlation_id=correlation_id,
                )
            raise Unauthenticated() from e
        except StorageError as e:
            await self._store_failed("add_expense", e, user.id, correlation_id)
            raise StoreFailure("Something went wrong with adding the expense") from e

        if self._audit_logger:
            await self._audit_logger.log_expense_added(
                expense=saved,
                correlation_id=correlation_id,
            )

        self._refresh()
        return saved

    async def edit_expense(
        self,
        auth: AuthContext,
        expense_id: ExpenseId,
        amount: Any,
        description: Any,
        category_type: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Change amount, description and category of one of the user's expenses.

        Raises:
            Unauthenticated: No valid session
            ValidationError: Bad amount, description or category
            NotFoundOrForbidden: No expense with this id belongs to the user
            StoreFailure: The update failed
        """
        correlation_id = correlation_id or create_correlation_id()
        user = await self._require_user(auth, "edit_expense", correlation_id)
        form = self._parse_form(amount, description, category_type)
        target_id = await self._parse_expense_id(expense_id, user, "edit_expense", correlation_id)

        try:
            updated = await self._storage.update_owned_expense(
                expense_id=target_id,
                owner_user_id=user.id,
                amount=form.amount,
                description=form.description,
                category_type=form.category_type,
            )
        except StorageError as e:
            await self._store_failed("edit_expense", e, user.id, correlation_id)
            raise StoreFailure("Something went wrong with updating the expense") from e

        if updated is None:
            await self._ownership_failed(target_id, user, "edit_expense", correlation_id)
            raise NotFoundOrForbidden()

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                expense=updated,
                correlation_id=correlation_id,
            )

        self._refresh()
        return updated

    async def delete_expense(
        self,
        auth: AuthContext,
        expense_id: ExpenseId,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete one of the user's expenses.

        Raises:
            Unauthenticated: No valid session
            NotFoundOrForbidden: No expense with this id belongs to the user
            StoreFailure: The delete failed
        """
        correlation_id = correlation_id or create_correlation_id()
        user = await self._require_user(auth, "delete_expense", correlation_id)
        target_id = await self._parse_expense_id(expense_id, user, "delete_expense", correlation_id)

        try:
            deleted = await self._storage.delete_owned_expense(
                expense_id=target_id,
                owner_user_id=user.id,
            )
        except StorageError as e:
            await self._store_failed("delete_expense", e, user.id, correlation_id)
            raise StoreFailure("Something went wrong with deleting the expense") from e

        if not deleted:
            await self._ownership_failed(target_id, user, "delete_expense", correlation_id)
            raise NotFoundOrForbidden()

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense_id=target_id,
                user_id=user.id,
                correlation_id=correlation_id,
            )

        self._refresh()

    async def list_expenses(
        self,
        auth: AuthContext,
        category_filter: Optional[ExpenseCategory] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """
        The user's expenses, newest first, optionally for one category.

        Raises:
            Unauthenticated: No valid session
            StoreFailure: The query failed
        """
        correlation_id = correlation_id or create_correlation_id()
        user = await self._require_user(auth, "list_expenses", correlation_id)

        try:
            return await self._storage.list_expenses_for_owner(
                owner_user_id=user.id,
                category=category_filter,
            )
        except StorageError as e:
            await self._store_failed("list_expenses", e, user.id, correlation_id)
            raise StoreFailure("Something went wrong with loading your expenses") from e

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require_user(
        self,
        auth: AuthContext,
        operation: str,
        correlation_id: UUID,
    ) -> UserIdentity:
        if not auth.is_authenticated:
            if self._audit_logger:
                await self._audit_logger.log_unauthenticated_access(
                    operation=operation,
                    correlation_id=correlation_id,
                )
        return auth.require_user()

    def _parse_form(self, amount: Any, description: Any, category_type: Any) -> ExpenseForm:
        return parse_form(
            ExpenseForm,
            {
                "amount": amount,
                "description": description,
                "categoryType": category_type,
            },
            context={"max_expense_amount": Decimal(str(self._settings.max_expense_amount))},
        )

    async def _parse_expense_id(
        self,
        expense_id: ExpenseId,
        user: UserIdentity,
        operation: str,
        correlation_id: UUID,
    ) -> UUID:
        if isinstance(expense_id, UUID):
            return expense_id
        try:
            return UUID(str(expense_id).strip())
        except (ValueError, AttributeError, TypeError):
            await self._ownership_failed(None, user, operation, correlation_id)
            raise NotFoundOrForbidden()

    async def _ownership_failed(
        self,
        expense_id: Optional[UUID],
        user: UserIdentity,
        operation: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_ownership_check_failed(
                expense_id=expense_id,
                user_id=user.id,
                operation=operation,
                correlation_id=correlation_id,
            )

    async def _store_failed(
        self,
        operation: str,
        error: Exception,
        user_id: UUID,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_store_failure(
                operation=operation,
                error_message=str(error),
                actor_user_id=user_id,
                correlation_id=correlation_id,
            )

    def _refresh(self) -> None:
        self._refresh_signal.emit(self._settings.dashboard_path)
