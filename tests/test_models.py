"""
Tests for BudgetPal models

Test strategy:
1. Unit tests for models and domain errors
2. Service tests against in-memory storage
3. Storage tests against in-memory SQLite (no external database)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from budgetpal.errors import (
    EmailTaken,
    InvalidCredentials,
    NotFoundOrForbidden,
    StoreFailure,
    Unauthenticated,
    ValidationError,
)
from budgetpal.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from budgetpal.models.expense import Expense, ExpenseCategory, User, UserIdentity
from budgetpal.models.results import ActionResult
from budgetpal.models.session import AuthContext, Session


class TestExpenseModels:
    """Tests for expense and user models."""

    def test_category_parse_is_case_insensitive(self):
        """Test that category names are normalized to upper case."""
        assert ExpenseCategory.parse("food") == ExpenseCategory.FOOD
        assert ExpenseCategory.parse("  Rent ") == ExpenseCategory.RENT

    def test_category_parse_rejects_unknown(self):
        """Test that unknown and missing categories raise ValueError."""
        with pytest.raises(ValueError):
            ExpenseCategory.parse("TRAVEL")
        with pytest.raises(ValueError):
            ExpenseCategory.parse(None)

    def test_all_categories_exist(self):
        """Test the fixed set of categories."""
        assert {c.value for c in ExpenseCategory} == {
            "FOOD", "RENT", "ENTERTAINMENT", "OTHER",
        }

    def test_expense_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (Decimal("0"), Decimal("-1.00")):
            with pytest.raises(ValueError):
                Expense(
                    owner_user_id=uuid4(),
                    amount=amount,
                    description="Test",
                    category_type=ExpenseCategory.OTHER,
                )

    def test_expense_rejects_empty_description(self):
        """Test that an empty description is rejected."""
        with pytest.raises(ValueError):
            Expense(
                owner_user_id=uuid4(),
                amount=Decimal("1.00"),
                description="   ",
                category_type=ExpenseCategory.OTHER,
            )

    def test_expense_log_dict_has_no_description(self):
        """Test that log output carries ids and amount only."""
        expense = Expense(
            owner_user_id=uuid4(),
            amount=Decimal("42.50"),
            description="Groceries",
            category_type=ExpenseCategory.FOOD,
        )
        log = expense.to_log_dict()
        assert log["amount"] == "42.50"
        assert log["category_type"] == "FOOD"
        assert "description" not in log

    def test_user_without_hash_has_no_password(self):
        """Test that external-auth-only users cannot use a password."""
        user = User(email="jane@x.com")
        assert not user.has_password

    def test_user_identity_drops_hash(self):
        """Test that the identity never carries the password hash."""
        user = User(name="Jane", email="jane@x.com", password_hash="$2b$hash")
        identity = user.identity()
        assert identity.id == user.id
        assert not hasattr(identity, "password_hash")
        assert "$2b$hash" not in repr(user)


class TestSessionModels:
    """Tests for sessions and auth contexts."""

    def test_anonymous_context(self):
        """Test that the anonymous context has no user."""
        auth = AuthContext.anonymous()
        assert not auth.is_authenticated
        assert auth.user_id is None
        with pytest.raises(Unauthenticated):
            auth.require_user()

    def test_authenticated_context(self):
        """Test that require_user returns the bound identity."""
        identity = UserIdentity(id=uuid4(), name="Jane", email="jane@x.com")
        auth = AuthContext(user=identity, session_id="abc")
        assert auth.is_authenticated
        assert auth.require_user() == identity

    def test_session_token_not_in_repr(self):
        """Test that the token is hidden from repr."""
        now = datetime.now(timezone.utc)
        session = Session(
            session_id="abc",
            token="very-secret-token",
            user=UserIdentity(id=uuid4(), email="jane@x.com"),
            issued_at=now,
            expires_at=now,
        )
        assert "very-secret-token" not in repr(session)
        assert session.request_context().session_token == "very-secret-token"


class TestResultModels:
    """Tests for ActionResult payloads."""

    def test_success_payload(self):
        """Test the {message, error} payload on success."""
        result = ActionResult.success("Expense added successfully")
        assert result.ok
        assert result.to_payload() == {"message": "Expense added successfully", "error": None}

    def test_failure_payload(self):
        """Test the {message, error} payload on failure."""
        result = ActionResult.failure("Invalid email", redirect_to="/")
        assert not result.ok
        assert result.to_payload() == {"message": None, "error": "Invalid email"}
        assert result.redirect_to == "/"


class TestErrors:
    """Tests for domain error messages."""

    def test_default_messages(self):
        """Test the user-facing default of each error kind."""
        assert EmailTaken().user_message == "Email already registered"
        assert InvalidCredentials().user_message == "Invalid email or password"
        assert NotFoundOrForbidden().user_message == "Expense not found"
        assert str(StoreFailure()) == "Something went wrong, please try again"

    def test_custom_message_and_field(self):
        """Test that ValidationError keeps its message and field."""
        error = ValidationError("Invalid email", field="email")
        assert error.user_message == "Invalid email"
        assert error.field == "email"


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.LOGOUT,
            description="Test event",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            correlation_id=correlation_id,
            description="Test",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "system_error"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_builder_expense_added(self):
        """Test AuditEventBuilder.expense_added."""
        expense = Expense(
            owner_user_id=uuid4(),
            amount=Decimal("10.00"),
            description="Lunch",
            category_type=ExpenseCategory.FOOD,
        )
        event = AuditEventBuilder.expense_added(expense)
        assert event.event_type == AuditEventType.EXPENSE_ADDED
        assert event.entity_id == expense.id
        assert event.actor_user_id == expense.owner_user_id
        assert event.is_user_action

    def test_builder_store_failure_is_error(self):
        """Test that store failures are logged at ERROR severity."""
        event = AuditEventBuilder.store_failure("add_expense", "disk I/O error")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk I/O error"

    def test_builder_ownership_check_failed(self):
        """Test that ownership failures are warnings naming the operation."""
        event = AuditEventBuilder.ownership_check_failed(None, uuid4(), "delete_expense")
        assert event.severity == AuditSeverity.WARNING
        assert event.details == {"operation": "delete_expense"}
