"""
Form DTOs

Every form submission is parsed into one of these models in a single
validation pass before it reaches business logic. Validation failures
become `budgetpal.errors.ValidationError` carrying the first problem
found, phrased for the user.

Checks run in a fixed order so the user always sees the same message
for the same input:

SIGNUP:  missing email/password -> short password -> malformed email
EXPENSE: amount -> description -> category
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, ClassVar, Mapping, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from budgetpal.errors import ValidationError
from budgetpal.models.expense import ExpenseCategory

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

CENTS = Decimal("0.01")

MAX_DESCRIPTION_LENGTH = 500

FormT = TypeVar("FormT", bound=BaseModel)


class SignUpForm(BaseModel):
    """Signup form: name, email, password."""
    model_config = ConfigDict(extra="ignore")

    error_messages: ClassVar[dict[str, str]] = {
        "name": "Please enter a valid name",
        "email": "Invalid email",
        "password": "Please enter a valid password",
    }

    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode='after')
    def validate_credentials(self, info: ValidationInfo) -> 'SignUpForm':
        context = info.context or {}
        min_length = context.get("min_password_length", 6)

        if not self.email or not self.password:
            raise ValueError("No email or password entered, please ensure you do so")

        if len(self.password) < min_length:
            raise ValueError(
                f"Please enter a password of at least {min_length} characters"
            )

        if len(self.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError("Please enter a shorter password")

        if "@" not in self.email:
            raise ValueError("Invalid email")

        return self


class LoginForm(BaseModel):
    """
    Login form.

    Nothing is rejected here: missing fields fail authentication with
    the same message as a wrong password.
    """
    model_config = ConfigDict(extra="ignore")

    error_messages: ClassVar[dict[str, str]] = {}

    email: str = ""
    password: str = ""

    @field_validator('email', 'password', mode='before')
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_complete(self) -> bool:
        return bool(self.email and self.password)


class ExpenseForm(BaseModel):
    """
    Add/edit expense form.

    `categoryType` is accepted as the form field name; the category is
    normalized to its upper-case canonical form.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    error_messages: ClassVar[dict[str, str]] = {
        "amount": "Please enter a valid amount greater than zero",
        "description": "Please enter a description",
        "category_type": "Please choose a valid category",
        "categoryType": "Please choose a valid category",
    }

    amount: Decimal
    description: str
    category_type: ExpenseCategory = Field(..., alias="categoryType")

    @field_validator('amount', mode='before')
    @classmethod
    def parse_amount(cls, v: Any) -> Decimal:
        """Accept numbers and numeric strings; reject NaN/Infinity."""
        if v is None or isinstance(v, bool):
            raise ValueError(cls.error_messages["amount"])
        try:
            amount = Decimal(str(v).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(cls.error_messages["amount"])
        if not amount.is_finite():
            raise ValueError(cls.error_messages["amount"])
        try:
            return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ValueError("Amount is too large")

    @field_validator('amount')
    @classmethod
    def check_amount_range(cls, v: Decimal, info: ValidationInfo) -> Decimal:
        if v <= 0:
            raise ValueError(cls.error_messages["amount"])
        max_amount = (info.context or {}).get("max_expense_amount")
        if max_amount is not None and v > Decimal(str(max_amount)):
            raise ValueError("Amount is too large")
        return v

    @field_validator('description', mode='before')
    @classmethod
    def check_description(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError(cls.error_messages["description"])
        if len(str(v).strip()) > MAX_DESCRIPTION_LENGTH:
            raise ValueError("Description is too long")
        return str(v).strip()

    @field_validator('category_type', mode='before')
    @classmethod
    def normalize_category(cls, v: Any) -> ExpenseCategory:
        try:
            return ExpenseCategory.parse(v)
        except ValueError:
            raise ValueError(cls.error_messages["category_type"])


def _first_error_message(model_cls: type[BaseModel], exc: PydanticValidationError) -> tuple[str, Optional[str]]:
    """Pick the user-facing message and field for the first error."""
    first = exc.errors()[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else None

    error = (first.get("ctx") or {}).get("error")
    if error is not None:
        return str(error), field

    messages = getattr(model_cls, "error_messages", {})
    if field and field in messages:
        return messages[field], field
    return first.get("msg", "Invalid input"), field


def parse_form(
    model_cls: type[FormT],
    data: Mapping[str, Any],
    context: Optional[dict] = None,
) -> FormT:
    """
    Validate raw form data into a DTO.

    Raises:
        ValidationError: with the first problem found, phrased for the user
    """
    try:
        return model_cls.model_validate(dict(data), context=context)
    except PydanticValidationError as e:
        message, field = _first_error_message(model_cls, e)
        raise ValidationError(message, field=field) from e
