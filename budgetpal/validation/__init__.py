"""Form validation package."""

from budgetpal.validation.forms import (
    ExpenseForm,
    LoginForm,
    SignUpForm,
    parse_form,
)

__all__ = ["ExpenseForm", "LoginForm", "SignUpForm", "parse_form"]
