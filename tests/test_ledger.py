"""Tests for the owner-scoped expense ledger."""

import pytest
from decimal import Decimal
from uuid import uuid4

from budgetpal.errors import NotFoundOrForbidden, StoreFailure, Unauthenticated, ValidationError
from budgetpal.ledger import ExpenseLedgerService
from budgetpal.models.audit import AuditEventType
from budgetpal.models.expense import ExpenseCategory
from budgetpal.models.session import AuthContext
from budgetpal.services.storage import InMemoryExpenseStorage, StorageError


class BrokenExpenseStorage(InMemoryExpenseStorage):
    """Expense storage whose every call fails."""

    async def save_expense(self, expense):
        raise StorageError("connection reset")

    async def list_expenses_for_owner(self, owner_user_id, category=None):
        raise StorageError("connection reset")


def event_types(audit_storage):
    return [event.event_type for event in audit_storage.events]


class TestAddExpense:
    """Tests for ExpenseLedgerService.add_expense."""

    def test_add_expense(self, run, ledger, sign_in):
        """Test that the expense belongs to the caller with a canonical category."""
        auth = sign_in()
        expense = run(ledger.add_expense(auth, "42.50", "Groceries", "food"))
        assert expense.owner_user_id == auth.user_id
        assert expense.amount == Decimal("42.50")
        assert expense.category_type == ExpenseCategory.FOOD
        assert expense.created_at is not None

    def test_anonymous_add(self, run, ledger, audit_storage):
        """Test that an anonymous caller is refused and audited."""
        with pytest.raises(Unauthenticated):
            run(ledger.add_expense(AuthContext.anonymous(), "1", "x", "FOOD"))
        assert event_types(audit_storage) == [AuditEventType.UNAUTHENTICATED_ACCESS]

    def test_authentication_checked_before_input(self, run, ledger):
        """Test that bad input from an anonymous caller is still Unauthenticated."""
        with pytest.raises(Unauthenticated):
            run(ledger.add_expense(AuthContext.anonymous(), "abc", "", "nope"))

    def test_invalid_input(self, run, ledger, sign_in, expense_storage):
        """Test that invalid input stores nothing."""
        auth = sign_in()
        with pytest.raises(ValidationError):
            run(ledger.add_expense(auth, "-3", "Groceries", "FOOD"))
        assert run(expense_storage.list_expenses_for_owner(auth.user_id)) == []

    def test_amount_over_configured_maximum(self, run, expense_storage, sign_in, app_settings):
        """Test that the maximum amount comes from the app settings."""
        ledger = ExpenseLedgerService(
            storage=expense_storage,
            settings=app_settings.model_copy(update={"max_expense_amount": 100.0}),
        )
        with pytest.raises(ValidationError):
            run(ledger.add_expense(sign_in(), "100.01", "TV", "ENTERTAINMENT"))

    def test_refresh_signal(self, run, ledger, sign_in, refresh_signal):
        """Test that subscribers are told the dashboard changed."""
        paths = []
        refresh_signal.subscribe(paths.append)
        run(ledger.add_expense(sign_in(), "5", "Coffee", "FOOD"))
        assert paths == ["/dashboard"]

    def test_failing_subscriber_does_not_fail_add(self, run, ledger, sign_in, refresh_signal):
        """Test that a broken subscriber does not undo a committed add."""
        def broken(path):
            raise RuntimeError("boom")

        refresh_signal.subscribe(broken)
        auth = sign_in()
        run(ledger.add_expense(auth, "5", "Coffee", "FOOD"))
        assert len(run(ledger.list_expenses(auth))) == 1

    def test_store_failure(self, run, sign_in, audit_logger, audit_storage, app_settings):
        """Test that store faults become an opaque StoreFailure."""
        ledger = ExpenseLedgerService(
            storage=BrokenExpenseStorage(),
            audit_logger=audit_logger,
            settings=app_settings,
        )
        with pytest.raises(StoreFailure) as exc:
            run(ledger.add_expense(sign_in(), "5", "Coffee", "FOOD"))
        assert "connection reset" not in exc.value.user_message
        assert AuditEventType.STORE_FAILURE in event_types(audit_storage)


class TestEditExpense:
    """Tests for ExpenseLedgerService.edit_expense."""

    def test_edit_own_expense(self, run, ledger, sign_in):
        """Test that the owner can change amount, description and category."""
        auth = sign_in()
        expense = run(ledger.add_expense(auth, "10", "Lunch", "FOOD"))
        updated = run(ledger.edit_expense(auth, str(expense.id), "12.5", "Dinner", "other"))
        assert updated.id == expense.id
        assert updated.owner_user_id == auth.user_id
        assert updated.amount == Decimal("12.50")
        assert updated.description == "Dinner"
        assert updated.category_type == ExpenseCategory.OTHER
        assert updated.created_at == expense.created_at

    def test_edit_foreign_expense(self, run, ledger, sign_in, expense_storage):
        """Test that editing another user's expense fails and changes nothing."""
        jane = sign_in("jane@x.com")
        bob = sign_in("bob@x.com")
        expense = run(ledger.add_expense(jane, "10", "Lunch", "FOOD"))

        with pytest.raises(NotFoundOrForbidden):
            run(ledger.edit_expense(bob, expense.id, "999", "Hacked", "RENT"))

        stored = run(expense_storage.get_owned_expense(expense.id, jane.user_id))
        assert stored.amount == Decimal("10.00")
        assert stored.description == "Lunch"

    def test_foreign_and_missing_look_the_same(self, run, ledger, sign_in):
        """Test that a foreign id and a missing id give the same error."""
        jane = sign_in("jane@x.com")
        bob = sign_in("bob@x.com")
        expense = run(ledger.add_expense(jane, "10", "Lunch", "FOOD"))

        with pytest.raises(NotFoundOrForbidden) as foreign:
            run(ledger.edit_expense(bob, expense.id, "1", "x", "FOOD"))
        with pytest.raises(NotFoundOrForbidden) as missing:
            run(ledger.edit_expense(bob, uuid4(), "1", "x", "FOOD"))
        assert foreign.value.user_message == missing.value.user_message

    def test_malformed_id(self, run, ledger, sign_in, audit_storage):
        """Test that an id that is not a UUID is NotFoundOrForbidden."""
        with pytest.raises(NotFoundOrForbidden):
            run(ledger.edit_expense(sign_in(), "12", "1", "x", "FOOD"))
        assert AuditEventType.OWNERSHIP_CHECK_FAILED in event_types(audit_storage)

    def test_edit_validates_input(self, run, ledger, sign_in):
        """Test that edits go through the same validation as adds."""
        auth = sign_in()
        expense = run(ledger.add_expense(auth, "10", "Lunch", "FOOD"))
        with pytest.raises(ValidationError):
            run(ledger.edit_expense(auth, expense.id, "10", "", "FOOD"))


class TestDeleteExpense:
    """Tests for ExpenseLedgerService.delete_expense."""

    def test_delete_own_expense(self, run, ledger, sign_in):
        """Test that the owner can delete."""
        auth = sign_in()
        expense = run(ledger.add_expense(auth, "10", "Lunch", "FOOD"))
        run(ledger.delete_expense(auth, expense.id))
        assert run(ledger.list_expenses(auth)) == []

    def test_delete_foreign_expense(self, run, ledger, sign_in):
        """Test that deleting another user's expense fails and keeps it."""
        jane = sign_in("jane@x.com")
        bob = sign_in("bob@x.com")
        expense = run(ledger.add_expense(jane, "10", "Lunch", "FOOD"))

        with pytest.raises(NotFoundOrForbidden):
            run(ledger.delete_expense(bob, expense.id))
        assert len(run(ledger.list_expenses(jane))) == 1

    def test_delete_twice(self, run, ledger, sign_in):
        """Test that a second delete of the same id is NotFoundOrForbidden."""
        auth = sign_in()
        expense = run(ledger.add_expense(auth, "10", "Lunch", "FOOD"))
        run(ledger.delete_expense(auth, expense.id))
        with pytest.raises(NotFoundOrForbidden):
            run(ledger.delete_expense(auth, expense.id))

    def test_anonymous_delete(self, run, ledger):
        """Test that anonymous deletes are refused."""
        with pytest.raises(Unauthenticated):
            run(ledger.delete_expense(AuthContext.anonymous(), uuid4()))


class TestListExpenses:
    """Tests for ExpenseLedgerService.list_expenses."""

    def test_newest_first(self, run, ledger, sign_in):
        """Test descending created_at order."""
        auth = sign_in()
        first = run(ledger.add_expense(auth, "1", "First", "FOOD"))
        second = run(ledger.add_expense(auth, "2", "Second", "RENT"))
        third = run(ledger.add_expense(auth, "3", "Third", "FOOD"))
        ids = [e.id for e in run(ledger.list_expenses(auth))]
        assert ids == [third.id, second.id, first.id]

    def test_category_filter(self, run, ledger, sign_in):
        """Test that a filter restricts the list to one category."""
        auth = sign_in()
        run(ledger.add_expense(auth, "1", "Lunch", "FOOD"))
        run(ledger.add_expense(auth, "2", "Flat", "RENT"))
        expenses = run(ledger.list_expenses(auth, ExpenseCategory.RENT))
        assert [e.description for e in expenses] == ["Flat"]

    def test_users_are_isolated(self, run, ledger, sign_in):
        """Test that each user only sees their own expenses."""
        jane = sign_in("jane@x.com")
        bob = sign_in("bob@x.com")
        run(ledger.add_expense(jane, "1", "Jane's", "FOOD"))
        assert run(ledger.list_expenses(bob)) == []

    def test_anonymous_list(self, run, ledger):
        """Test that anonymous callers cannot list."""
        with pytest.raises(Unauthenticated):
            run(ledger.list_expenses(AuthContext.anonymous()))
