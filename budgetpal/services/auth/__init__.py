"""Authentication services: password hashing, session tokens, accounts."""

from budgetpal.services.auth.authenticator import Authenticator
from budgetpal.services.auth.hashing import BcryptPasswordHasher
from budgetpal.services.auth.resolver import SessionResolver
from budgetpal.services.auth.tokens import SessionRevocationList, SessionTokenService

__all__ = [
    "Authenticator",
    "BcryptPasswordHasher",
    "SessionResolver",
    "SessionRevocationList",
    "SessionTokenService",
]
