"""
Credential Hasher - Argon2id password hashing.

Hashes are self-describing (algorithm, cost and salt are encoded in the
string), so cost changes only affect newly written hashes.
"""

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

from lazla_api.config import settings
from lazla_api.exceptions import InvalidInputError

MAX_PASSWORD_LENGTH = 256


class CredentialHasher:
    """One-way password hashing and verification."""

    def __init__(
        self,
        time_cost: int | None = None,
        memory_cost: int | None = None,
        parallelism: int | None = None,
    ) -> None:
        self.password_hasher = PasswordHasher(
            time_cost=time_cost or settings.password_hash_time_cost,
            memory_cost=memory_cost or settings.password_hash_memory_cost,
            parallelism=parallelism or settings.password_hash_parallelism,
            type=Type.ID,
        )

    def hash(self, plaintext: str) -> str:
        """
        Hash a password with a fresh random salt.

        Raises:
            InvalidInputError: Empty or oversized password
        """
        if not plaintext:
            raise InvalidInputError("password is required")
        if len(plaintext) > MAX_PASSWORD_LENGTH:
            raise InvalidInputError(f"password must be at most {MAX_PASSWORD_LENGTH} characters")
        return self.password_hasher.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Check a password against a stored hash. Malformed hashes verify as False."""
        if not plaintext or not hashed:
            return False
        try:
            return self.password_hasher.verify(hashed, plaintext)
        except (VerificationError, InvalidHashError):
            return False
