"""
Account operations: sign up, log in, log out.

DESIGN DECISION: login never says which part was wrong. Unknown email,
wrong password, missing fields and password-less accounts all fail
with the same InvalidCredentials message.
"""

import asyncio
from typing import Optional
from uuid import UUID

from budgetpal.audit import AuditLogger, create_correlation_id
from budgetpal.config.settings import AuthSettings
from budgetpal.errors import EmailTaken, InvalidCredentials, StoreFailure, ValidationError
from budgetpal.models.expense import User
from budgetpal.models.session import AuthContext, Session
from budgetpal.services.auth.hashing import BcryptPasswordHasher
from budgetpal.services.auth.tokens import SessionTokenService
from budgetpal.services.storage import DuplicateError, StorageError, UserStorageInterface
from budgetpal.validation import LoginForm, SignUpForm, parse_form

SIGNUP_FAILED_MESSAGE = "Something went wrong with creating the user"


class Authenticator:
    """Creates users and exchanges credentials for sessions."""

    def __init__(
        self,
        users: UserStorageInterface,
        tokens: SessionTokenService,
        hasher: Optional[BcryptPasswordHasher] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AuthSettings] = None,
    ):
        self._users = users
        self._tokens = tokens
        self._settings = settings or tokens.settings
        self._hasher = hasher or BcryptPasswordHasher(self._settings.bcrypt_rounds)
        self._audit_logger = audit_logger

    async def sign_up(
        self,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> UUID:
        """
        Register a new user.

        Returns:
            The new user's ID

        Raises:
            ValidationError: Missing email/password, short password or bad email
            EmailTaken: The email is already registered
            StoreFailure: The user could not be stored
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            form = parse_form(
                SignUpForm,
                {"name": name, "email": email, "password": password},
                context={"min_password_length": self._settings.min_password_length},
            )
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_signup_rejected(
                    reason=e.user_message,
                    correlation_id=correlation_id,
                )
            raise

        try:
            existing = await self._users.get_user_by_email(form.email)
        except StorageError as e:
            await self._store_failed("sign_up", e, correlation_id)
            raise StoreFailure(SIGNUP_FAILED_MESSAGE) from e

        if existing is not None:
            await self._email_taken(correlation_id)
            raise EmailTaken()

        password_hash = await asyncio.to_thread(self._hasher.hash, form.password)
        user = User(name=form.name, email=form.email, password_hash=password_hash)

        # The unique index settles races between two signups for one email
        try:
            created = await self._users.create_user(user)
        except DuplicateError as e:
            await self._email_taken(correlation_id)
            raise EmailTaken() from e
        except StorageError as e:
            await self._store_failed("sign_up", e, correlation_id)
            raise StoreFailure(SIGNUP_FAILED_MESSAGE) from e

        if self._audit_logger:
            await self._audit_logger.log_user_signed_up(
                user_id=created.id,
                correlation_id=correlation_id,
            )

        return created.id

    async def login(
        self,
        email: Optional[str],
        password: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> Session:
        """
        Exchange email and password for a session.

        Raises:
            InvalidCredentials: For every kind of bad login
            StoreFailure: The user lookup failed
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            form = parse_form(LoginForm, {"email": email, "password": password})
        except ValidationError as e:
            await self._login_failed("malformed_input", correlation_id)
            raise InvalidCredentials() from e

        if not form.is_complete:
            await self._login_failed("missing_fields", correlation_id)
            raise InvalidCredentials()

        try:
            user = await self._users.get_user_by_email(form.email)
        except StorageError as e:
            await self._store_failed("login", e, correlation_id)
            raise StoreFailure() from e

        if user is None:
            await self._login_failed("unknown_email", correlation_id)
            raise InvalidCredentials()

        if not user.has_password:
            await self._login_failed("no_password_set", correlation_id)
            raise InvalidCredentials()

        matches = await asyncio.to_thread(self._hasher.verify, form.password, user.password_hash)
        if not matches:
            await self._login_failed("password_mismatch", correlation_id)
            raise InvalidCredentials()

        session = self._tokens.issue(user.identity())

        if self._audit_logger:
            await self._audit_logger.log_login_succeeded(
                user_id=user.id,
                session_id=session.session_id,
                correlation_id=correlation_id,
            )

        return session

    async def logout(
        self,
        auth: AuthContext,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        End the session in `auth`.

        Logging out an anonymous context, or the same session twice,
        does nothing.
        """
        if not auth.is_authenticated or not auth.session_id or auth.expires_at is None:
            return
        if self._tokens.revocations.is_revoked(auth.session_id):
            return

        self._tokens.revoke(auth.session_id, auth.expires_at)

        if self._audit_logger:
            await self._audit_logger.log_logout(
                user_id=auth.user_id,
                session_id=auth.session_id,
                correlation_id=correlation_id,
            )

    async def _login_failed(self, reason: str, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_login_failed(
                reason=reason,
                correlation_id=correlation_id,
            )

    async def _email_taken(self, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_signup_rejected(
                reason=EmailTaken.default_message,
                correlation_id=correlation_id,
            )

    async def _store_failed(self, operation: str, error: Exception, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_store_failure(
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )
