"""
Password hashing.

Passwords are stored only as bcrypt hashes. bcrypt looks at the first
72 bytes of a password; longer passwords are refused at signup and
never verify.
"""

import bcrypt

from budgetpal.validation.forms import MAX_PASSWORD_BYTES


class BcryptPasswordHasher:
    """Salted bcrypt hashing with a configurable cost factor."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """
        Hash a password with a fresh salt.

        Raises:
            ValueError: If the password is longer than 72 bytes
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError("Password is longer than 72 bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("ascii")

    def verify(self, password: str, password_hash: str) -> bool:
        """True if `password` matches `password_hash`. Malformed hashes never match."""
        if not password or not password_hash:
            return False
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("ascii"))
        except (ValueError, UnicodeEncodeError):
            return False
