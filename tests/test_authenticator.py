"""Tests for signup, login, logout and password hashing."""

import pytest

from budgetpal.errors import EmailTaken, InvalidCredentials, StoreFailure, ValidationError
from budgetpal.models.audit import AuditEventType
from budgetpal.models.expense import User
from budgetpal.services.auth import Authenticator, BcryptPasswordHasher
from budgetpal.services.storage import InMemoryUserStorage, StorageError


class FailingUserStorage(InMemoryUserStorage):
    """User storage whose inserts always fail."""

    async def create_user(self, user):
        raise StorageError("database is locked")


class RacingUserStorage(InMemoryUserStorage):
    """Lookup says the email is free; the insert hits the unique index."""

    async def get_user_by_email(self, email):
        return None


def event_types(audit_storage):
    return [event.event_type for event in audit_storage.events]


class TestPasswordHasher:
    """Tests for the bcrypt hashing collaborator."""

    def test_hash_and_verify(self):
        """Test that a hash verifies its own password only."""
        hasher = BcryptPasswordHasher(rounds=4)
        password_hash = hasher.hash("secret1")
        assert password_hash != "secret1"
        assert hasher.verify("secret1", password_hash)
        assert not hasher.verify("secret2", password_hash)

    def test_hashes_are_salted(self):
        """Test that the same password hashes differently each time."""
        hasher = BcryptPasswordHasher(rounds=4)
        assert hasher.hash("secret1") != hasher.hash("secret1")

    def test_cost_factor_in_hash(self):
        """Test that the configured rounds end up in the hash."""
        assert BcryptPasswordHasher(rounds=5).hash("secret1").startswith("$2b$05$")

    def test_malformed_hash_never_verifies(self):
        """Test that garbage hashes return False instead of raising."""
        hasher = BcryptPasswordHasher(rounds=4)
        assert not hasher.verify("secret1", "not-a-bcrypt-hash")
        assert not hasher.verify("secret1", "")

    def test_long_password(self):
        """Test that passwords over 72 bytes are refused and never verify."""
        hasher = BcryptPasswordHasher(rounds=4)
        with pytest.raises(ValueError):
            hasher.hash("x" * 73)
        assert not hasher.verify("x" * 73, hasher.hash("x" * 72))


class TestSignUp:
    """Tests for Authenticator.sign_up."""

    def test_sign_up_stores_hashed_password(self, run, authenticator, user_storage):
        """Test that signup persists the user with a bcrypt hash."""
        user_id = run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        user = run(user_storage.get_user_by_id(user_id))
        assert user.email == "jane@x.com"
        assert user.name == "Jane"
        assert user.password_hash.startswith("$2b$")
        assert user.password_hash != "secret1"

    def test_sign_up_audited(self, run, authenticator, audit_storage):
        """Test that a successful signup is audited."""
        run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        assert AuditEventType.USER_SIGNED_UP in event_types(audit_storage)

    def test_duplicate_email(self, run, authenticator):
        """Test that a registered email is rejected regardless of name or password."""
        run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        with pytest.raises(EmailTaken) as exc:
            run(authenticator.sign_up("Other", "jane@x.com", "different-pass"))
        assert exc.value.user_message == "Email already registered"

    def test_email_is_case_sensitive(self, run, authenticator):
        """Test that emails are compared exactly as stored."""
        run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        run(authenticator.sign_up("Jane", "Jane@x.com", "secret1"))

    def test_short_password_creates_no_user(self, run, authenticator, user_storage, audit_storage):
        """Test that a short password fails validation and stores nothing."""
        with pytest.raises(ValidationError):
            run(authenticator.sign_up("Jane", "jane@x.com", "12345"))
        assert run(user_storage.get_user_by_email("jane@x.com")) is None
        assert event_types(audit_storage) == [AuditEventType.SIGNUP_REJECTED]

    def test_unique_index_race_is_email_taken(self, run, tokens, auth_settings):
        """Test that a duplicate caught by the store surfaces as EmailTaken."""
        users = RacingUserStorage()
        authenticator = Authenticator(users=users, tokens=tokens, settings=auth_settings)
        run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        with pytest.raises(EmailTaken):
            run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))

    def test_store_failure_is_opaque(self, run, tokens, auth_settings, audit_logger, audit_storage):
        """Test that insert faults become a generic message and are audited."""
        authenticator = Authenticator(
            users=FailingUserStorage(),
            tokens=tokens,
            audit_logger=audit_logger,
            settings=auth_settings,
        )
        with pytest.raises(StoreFailure) as exc:
            run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        assert exc.value.user_message == "Something went wrong with creating the user"
        assert "locked" not in exc.value.user_message
        assert AuditEventType.STORE_FAILURE in event_types(audit_storage)


class TestLogin:
    """Tests for Authenticator.login."""

    def test_login_issues_session(self, run, authenticator):
        """Test that correct credentials give a session bound to the user."""
        user_id = run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        session = run(authenticator.login("jane@x.com", "secret1"))
        assert session.user.id == user_id
        assert session.user.name == "Jane"
        assert session.expires_at > session.issued_at

    def test_wrong_password_and_unknown_email_look_the_same(self, run, authenticator):
        """Test that both failures carry the same message."""
        run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        with pytest.raises(InvalidCredentials) as wrong_password:
            run(authenticator.login("jane@x.com", "wrong-pass"))
        with pytest.raises(InvalidCredentials) as unknown_email:
            run(authenticator.login("nobody@x.com", "secret1"))
        assert wrong_password.value.user_message == unknown_email.value.user_message
        assert wrong_password.value.user_message == "Invalid email or password"

    def test_missing_fields(self, run, authenticator):
        """Test that empty input fails like a wrong password."""
        with pytest.raises(InvalidCredentials):
            run(authenticator.login(None, None))
        with pytest.raises(InvalidCredentials):
            run(authenticator.login("jane@x.com", ""))

    def test_account_without_password(self, run, authenticator, user_storage):
        """Test that external-auth-only accounts cannot log in with a password."""
        run(user_storage.create_user(User(email="oauth@x.com")))
        with pytest.raises(InvalidCredentials):
            run(authenticator.login("oauth@x.com", "anything"))

    def test_failed_login_audited_without_password(self, run, authenticator, audit_storage):
        """Test that failed logins are audited and never record the password."""
        with pytest.raises(InvalidCredentials):
            run(authenticator.login("nobody@x.com", "hunter22"))
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.LOGIN_FAILED
        assert "hunter22" not in str(event.to_log_dict())


class TestLogout:
    """Tests for Authenticator.logout."""

    def test_logout_invalidates_session(self, run, authenticator, resolver):
        """Test that a logged-out token resolves to anonymous."""
        run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        session = run(authenticator.login("jane@x.com", "secret1"))
        auth = resolver.resolve(session.request_context())
        assert auth.is_authenticated

        run(authenticator.logout(auth))
        assert not resolver.resolve(session.request_context()).is_authenticated

    def test_logout_is_idempotent(self, run, authenticator, resolver, audit_storage):
        """Test that logging out twice, or while anonymous, is not an error."""
        run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        session = run(authenticator.login("jane@x.com", "secret1"))
        auth = resolver.resolve(session.request_context())

        run(authenticator.logout(auth))
        run(authenticator.logout(auth))
        run(authenticator.logout(resolver.resolve(session.request_context())))

        assert event_types(audit_storage).count(AuditEventType.LOGOUT) == 1

    def test_logout_leaves_other_sessions(self, run, authenticator, resolver):
        """Test that logout only revokes the session it was given."""
        run(authenticator.sign_up("Jane", "jane@x.com", "secret1"))
        first = run(authenticator.login("jane@x.com", "secret1"))
        second = run(authenticator.login("jane@x.com", "secret1"))

        run(authenticator.logout(resolver.resolve(first.request_context())))

        assert resolver.resolve(second.request_context()).is_authenticated
