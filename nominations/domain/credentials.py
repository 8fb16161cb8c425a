"""
Credential helpers - Password policy and confirmation codes.

Default implementations of the PasswordPolicy and CodeGenerator ports.
"""

import secrets
import string
from dataclasses import dataclass

import bcrypt

# bcrypt only reads this many bytes of a password
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class BcryptPasswordPolicy:
    """
    Password policy backed by bcrypt.

    A password is accepted when it is at least `min_length` characters
    long, fits in bcrypt's 72-byte input, and contains at least one
    letter and one digit.
    """

    min_length: int = 8
    cost: int = 10

    def validate(self, raw_password: str) -> str | None:
        if len(raw_password) < self.min_length:
            return f"must be at least {self.min_length} characters"
        if len(raw_password.encode()) > BCRYPT_MAX_BYTES:
            return f"must be at most {BCRYPT_MAX_BYTES} bytes"
        if not any(ch in string.ascii_letters for ch in raw_password):
            return "must contain a letter"
        if not any(ch.isdigit() for ch in raw_password):
            return "must contain a digit"
        return None

    def hash(self, raw_password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(raw_password.encode(), bcrypt.gensalt(rounds=self.cost)).decode()

    def verify(self, raw_password: str, hashed: str) -> bool:
        """Passwords bcrypt cannot hash never match."""
        if len(raw_password.encode()) > BCRYPT_MAX_BYTES:
            return False
        return bcrypt.checkpw(raw_password.encode(), hashed.encode())


@dataclass(frozen=True)
class TokenCodeGenerator:
    """URL-safe confirmation codes drawn from the secrets module."""

    nbytes: int = 24

    def generate(self) -> str:
        return secrets.token_urlsafe(self.nbytes)
