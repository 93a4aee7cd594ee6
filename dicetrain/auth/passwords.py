"""Lobby password hashing."""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError


class PasswordGuard:
    """
    Hashes and checks lobby passwords.

    Uses Argon2 so the host never keeps the plain text around once the lobby
    is created. Tests pass a cheap ``PasswordHasher`` to keep them fast.
    """

    def __init__(self, hasher: PasswordHasher | None = None):
        self._hasher = hasher or PasswordHasher()

    def hash_password(self, password: str) -> str:
        """Hash a password using Argon2."""
        return self._hasher.hash(password)

    def verify_password(self, password: str | None, password_hash: str | None) -> bool:
        """Check a join attempt against the lobby hash.

        A lobby without a hash admits everyone.
        """
        if password_hash is None:
            return True
        if password is None:
            return False
        try:
            return self._hasher.verify(password_hash, password)
        except (VerifyMismatchError, InvalidHashError):
            return False
