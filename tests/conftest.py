"""Shared fixtures: in-memory stores, fast bcrypt, signed-in users."""

import asyncio

import pytest

from budgetpal.audit import AuditLogger
from budgetpal.config.settings import AppSettings, AuthSettings, DatabaseSettings
from budgetpal.ledger import ExpenseLedgerService, RefreshSignal
from budgetpal.services.auth import (
    Authenticator,
    BcryptPasswordHasher,
    SessionResolver,
    SessionTokenService,
)
from budgetpal.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserStorage,
    SqlStoreClient,
)


def run_async(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def run():
    return run_async


@pytest.fixture
def auth_settings():
    return AuthSettings(
        secret_key="test-secret-key-0123456789abcdef",
        bcrypt_rounds=4,
    )


@pytest.fixture
def app_settings():
    return AppSettings()


@pytest.fixture
def db_settings():
    return DatabaseSettings(url="sqlite://", connect_attempts=1)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def user_storage():
    return InMemoryUserStorage()


@pytest.fixture
def expense_storage(user_storage):
    return InMemoryExpenseStorage(user_storage)


@pytest.fixture
def tokens(auth_settings):
    return SessionTokenService(auth_settings)


@pytest.fixture
def resolver(tokens):
    return SessionResolver(tokens)


@pytest.fixture
def authenticator(user_storage, tokens, audit_logger, auth_settings):
    return Authenticator(
        users=user_storage,
        tokens=tokens,
        hasher=BcryptPasswordHasher(auth_settings.bcrypt_rounds),
        audit_logger=audit_logger,
        settings=auth_settings,
    )


@pytest.fixture
def refresh_signal():
    return RefreshSignal()


@pytest.fixture
def ledger(expense_storage, audit_logger, refresh_signal, app_settings):
    return ExpenseLedgerService(
        storage=expense_storage,
        audit_logger=audit_logger,
        refresh_signal=refresh_signal,
        settings=app_settings,
    )


@pytest.fixture
def sign_in(run, authenticator, resolver):
    """Sign up + log in; returns the AuthContext for the new user."""

    def _sign_in(email="jane@x.com", password="secret1", name="Jane"):
        run(authenticator.sign_up(name, email, password))
        session = run(authenticator.login(email, password))
        return resolver.resolve(session.request_context())

    return _sign_in


@pytest.fixture
def store_client(db_settings):
    client = SqlStoreClient(db_settings)
    client.connect()
    client.create_schema()
    yield client
    client.close()
