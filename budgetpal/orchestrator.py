"""
Main Orchestrator for BudgetPal

This module ties together all the components and defines the
form-submission flows the presentation layer calls:
1. Accounts (sign up, log in, log out)
2. Expenses (add, edit, delete) and the dashboard

DESIGN DECISION: the flows are the boundary. Every call:
- Resolves the session once into an AuthContext
- Gets a correlation id for its audit events
- Returns an ActionResult (`{"message"}` or `{"error"}` plus an
  optional redirect); domain errors never escape as exceptions

The process entry point builds everything with create_app_components()
and calls AppComponents.close() on shutdown.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import structlog

from budgetpal.analytics import summarize
from budgetpal.audit import AuditLogger, create_correlation_id
from budgetpal.config.settings import (
    AppSettings,
    AuthSettings,
    DatabaseSettings,
    get_settings,
    validate_all_settings,
)
from budgetpal.errors import BudgetPalError, StoreFailure, Unauthenticated
from budgetpal.ledger import ExpenseLedgerService, RefreshSignal
from budgetpal.models.expense import ExpenseCategory
from budgetpal.models.results import ActionResult, DashboardView
from budgetpal.models.session import RequestContext, Session
from budgetpal.services.auth import (
    Authenticator,
    BcryptPasswordHasher,
    SessionResolver,
    SessionTokenService,
)
from budgetpal.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserStorage,
    SqlAuditStorage,
    SqlExpenseStorage,
    SqlStoreClient,
    SqlUserStorage,
    UserStorageInterface,
)

logger = structlog.get_logger(__name__)

ALL_CATEGORIES = "ALL"


def parse_category_filter(value: Optional[str]) -> Optional[ExpenseCategory]:
    """
    Turn the dashboard's category query parameter into a filter.

    Matching is case-insensitive. Absent, empty, `ALL` and unknown
    values all mean "every category".
    """
    if value is None:
        return None
    normalized = str(value).strip().upper()
    if not normalized or normalized == ALL_CATEGORIES:
        return None
    try:
        return ExpenseCategory.parse(normalized)
    except ValueError:
        logger.info("unknown_category_filter", value=normalized)
        return None


async def _unexpected_failure(
    audit_logger: Optional[AuditLogger],
    operation: str,
    error: Exception,
    correlation_id,
) -> ActionResult:
    if audit_logger:
        await audit_logger.log_error(
            error_type=type(error).__name__,
            error_message=str(error),
            details={"operation": operation},
            correlation_id=correlation_id,
        )
    else:
        logger.error("unexpected_failure", operation=operation, error=str(error))
    return ActionResult.failure(StoreFailure.default_message)


class AccountFlow:
    """
    Sign up, log in and log out.

    Flow:
    1. Sign up → redirect to the login page
    2. Log in → issue a session, redirect to the dashboard
    3. Log out → revoke the session, redirect home
    """

    def __init__(
        self,
        authenticator: Authenticator,
        resolver: SessionResolver,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._authenticator = authenticator
        self._resolver = resolver
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    async def sign_up(self, form: Mapping[str, Any]) -> ActionResult:
        """Handle the signup form (`name`, `email`, `password`)."""
        correlation_id = create_correlation_id()
        try:
            await self._authenticator.sign_up(
                name=form.get("name"),
                email=form.get("email"),
                password=form.get("password"),
                correlation_id=correlation_id,
            )
        except BudgetPalError as e:
            return ActionResult.failure(e.user_message)
        except Exception as e:
            return await _unexpected_failure(self._audit_logger, "sign_up", e, correlation_id)

        return ActionResult.success(redirect_to=self._settings.login_path)

    async def login(
        self,
        form: Mapping[str, Any],
    ) -> tuple[ActionResult, Optional[Session]]:
        """
        Handle the login form (`email`, `password`).

        Returns:
            (result, session). `session` is None unless login succeeded.
        """
        correlation_id = create_correlation_id()
        try:
            session = await self._authenticator.login(
                email=form.get("email"),
                password=form.get("password"),
                correlation_id=correlation_id,
            )
        except BudgetPalError as e:
            return ActionResult.failure(e.user_message), None
        except Exception as e:
            result = await _unexpected_failure(self._audit_logger, "login", e, correlation_id)
            return result, None

        return ActionResult.success(redirect_to=self._settings.dashboard_path), session

    async def logout(self, request: RequestContext) -> ActionResult:
        """End the request's session (if any) and send the user home."""
        correlation_id = create_correlation_id()
        auth = self._resolver.resolve(request)
        await self._authenticator.logout(auth, correlation_id=correlation_id)
        return ActionResult.success(redirect_to=self._settings.home_path)


class ExpenseFlow:
    """
    Expense form submissions and the dashboard.

    Anonymous callers get an error with a redirect to the home page.
    """

    def __init__(
        self,
        ledger: ExpenseLedgerService,
        resolver: SessionResolver,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._ledger = ledger
        self._resolver = resolver
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    def _failure(self, error: BudgetPalError) -> ActionResult:
        if isinstance(error, Unauthenticated):
            return ActionResult.failure(error.user_message, redirect_to=self._settings.home_path)
        return ActionResult.failure(error.user_message)

    async def add(self, request: RequestContext, form: Mapping[str, Any]) -> ActionResult:
        """Handle the add-expense form (`amount`, `description`, `categoryType`)."""
        correlation_id = create_correlation_id()
        auth = self._resolver.resolve(request)
        try:
            await self._ledger.add_expense(
                auth,
                amount=form.get("amount"),
                description=form.get("description"),
                category_type=form.get("categoryType"),
                correlation_id=correlation_id,
            )
        except BudgetPalError as e:
            return self._failure(e)
        except Exception as e:
            return await _unexpected_failure(self._audit_logger, "add_expense", e, correlation_id)

        return ActionResult.success("Expense added successfully")

    async def edit(self, request: RequestContext, form: Mapping[str, Any]) -> ActionResult:
        """Handle the edit-expense form (`id`, `amount`, `description`, `categoryType`)."""
        correlation_id = create_correlation_id()
        auth = self._resolver.resolve(request)
        try:
            await self._ledger.edit_expense(
                auth,
                expense_id=form.get("id"),
                amount=form.get("amount"),
                description=form.get("description"),
                category_type=form.get("categoryType"),
                correlation_id=correlation_id,
            )
        except BudgetPalError as e:
            return self._failure(e)
        except Exception as e:
            return await _unexpected_failure(self._audit_logger, "edit_expense", e, correlation_id)

        return ActionResult.success("Expense updated successfully")

    async def delete(self, request: RequestContext, form: Mapping[str, Any]) -> ActionResult:
        """Handle the delete-expense form (`id`)."""
        correlation_id = create_correlation_id()
        auth = self._resolver.resolve(request)
        try:
            await self._ledger.delete_expense(
                auth,
                expense_id=form.get("id"),
                correlation_id=correlation_id,
            )
        except BudgetPalError as e:
            return self._failure(e)
        except Exception as e:
            return await _unexpected_failure(self._audit_logger, "delete_expense", e, correlation_id)

        return ActionResult.success("Expense deleted successfully")

    async def dashboard(
        self,
        request: RequestContext,
        category: Optional[str] = None,
    ) -> tuple[Optional[DashboardView], ActionResult]:
        """
        Load the dashboard: the user's expenses plus totals and chart data.

        Totals and chart cover the filtered list.

        Returns:
            (view, result). `view` is None when the result is a failure.
        """
        correlation_id = create_correlation_id()
        auth = self._resolver.resolve(request)
        category_filter = parse_category_filter(category)

        try:
            expenses = await self._ledger.list_expenses(
                auth,
                category_filter=category_filter,
                correlation_id=correlation_id,
            )
        except BudgetPalError as e:
            return None, self._failure(e)
        except Exception as e:
            result = await _unexpected_failure(self._audit_logger, "dashboard", e, correlation_id)
            return None, result

        view = DashboardView(
            user=auth.require_user(),
            expenses=expenses,
            summary=summarize(expenses),
            category_filter=category_filter,
        )
        return view, ActionResult.success()


@dataclass
class AppComponents:
    """Everything the presentation layer needs, plus the store to close."""

    account_flow: AccountFlow
    expense_flow: ExpenseFlow
    resolver: SessionResolver
    refresh_signal: RefreshSignal
    audit_logger: AuditLogger
    store_client: Optional[SqlStoreClient] = None
    storages: dict = field(default_factory=dict)

    def close(self) -> None:
        """Release the database engine. Safe to call more than once."""
        if self.store_client is not None:
            self.store_client.close()


def _check_settings(overrides: dict, use_database: bool) -> None:
    """Log every environment-loaded settings group that fails validation."""
    results = validate_all_settings()
    for name, override in overrides.items():
        if override is not None or (name == "database" and not use_database):
            continue
        if not results[name]:
            logger.error("settings_invalid", group=name, error=results[f"{name}_error"])


def create_app_components(
    use_database: bool = True,
    database_settings: Optional[DatabaseSettings] = None,
    auth_settings: Optional[AuthSettings] = None,
    app_settings: Optional[AppSettings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_database: Whether to use the SQL store.
                     Set to False for in-memory storage (tests, demos).
        database_settings / auth_settings / app_settings: Override the
                     settings loaded from the environment.

    Returns:
        AppComponents. Call close() on shutdown.

    Raises:
        ConnectionError: If the database cannot be reached
        ValidationError: If a settings group loaded from the environment
                     is invalid (each failing group is logged first)
    """
    settings = None
    if database_settings is None or auth_settings is None or app_settings is None:
        settings = get_settings()
        _check_settings(
            {"database": database_settings, "auth": auth_settings, "app": app_settings},
            use_database,
        )
    auth_settings = auth_settings or settings.auth
    app_settings = app_settings or settings.app

    store_client = None
    users: UserStorageInterface
    expenses: ExpenseStorageInterface
    audit_storage: AuditStorageInterface

    if use_database:
        store_client = SqlStoreClient(database_settings or settings.database)
        store_client.connect()
        try:
            store_client.create_schema()
        except Exception:
            store_client.close()
            raise
        users = SqlUserStorage(store_client)
        expenses = SqlExpenseStorage(store_client)
        audit_storage = SqlAuditStorage(store_client)
    else:
        memory_users = InMemoryUserStorage()
        users = memory_users
        expenses = InMemoryExpenseStorage(memory_users)
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    tokens = SessionTokenService(auth_settings)
    resolver = SessionResolver(tokens)
    refresh_signal = RefreshSignal()

    authenticator = Authenticator(
        users=users,
        tokens=tokens,
        hasher=BcryptPasswordHasher(auth_settings.bcrypt_rounds),
        audit_logger=audit_logger,
        settings=auth_settings,
    )
    ledger = ExpenseLedgerService(
        storage=expenses,
        audit_logger=audit_logger,
        refresh_signal=refresh_signal,
        settings=app_settings,
    )

    return AppComponents(
        account_flow=AccountFlow(authenticator, resolver, audit_logger, app_settings),
        expense_flow=ExpenseFlow(ledger, resolver, audit_logger, app_settings),
        resolver=resolver,
        refresh_signal=refresh_signal,
        audit_logger=audit_logger,
        store_client=store_client,
        storages={"users": users, "expenses": expenses, "audit": audit_storage},
    )
