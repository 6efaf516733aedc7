"""
CairnAuth - Password hashing.

Password fields store argon2id hashes. PBKDF2-HMAC-SHA256 is accepted as a
second scheme so hashes imported from elsewhere still verify:

    $argon2id$v=19$m=65536,t=2,p=4$<salt>$<hash>
    $pbkdf2_sha256$<iterations>$<salt>$<hash>
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from typing import Literal

from argon2 import PasswordHasher as Argon2PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

Algorithm = Literal["argon2id", "pbkdf2_sha256"]

_ARGON2_PREFIX = "$argon2id$"
_PBKDF2_PREFIX = "$pbkdf2_sha256$"


class PasswordHasher:
    """
    Hashes and verifies password field values.

    Args:
        algorithm: Scheme used for new hashes
        time_cost: Argon2 passes
        memory_cost: Argon2 memory in KiB
        parallelism: Argon2 lanes
        hash_len: Digest length in bytes (both schemes)
        salt_len: Salt length in bytes (both schemes)
        iterations: PBKDF2 rounds

    Tests lower the Argon2 costs, e.g.
    ``PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)``.
    """

    def __init__(
        self,
        algorithm: Algorithm = "argon2id",
        time_cost: int = 2,
        memory_cost: int = 65536,
        parallelism: int = 4,
        hash_len: int = 32,
        salt_len: int = 16,
        iterations: int = 600000,
    ):
        if algorithm not in ("argon2id", "pbkdf2_sha256"):
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")

        self.algorithm = algorithm
        self.hash_len = hash_len
        self.salt_len = salt_len
        self.iterations = iterations
        self._argon2 = Argon2PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            salt_len=salt_len,
        )
        self._dummy_hash: str | None = None

    def hash(self, password: str) -> str:
        if self.algorithm == "argon2id":
            return self._argon2.hash(password)

        salt = secrets.token_bytes(self.salt_len)
        digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, self.iterations, dklen=self.hash_len)
        return (
            f"{_PBKDF2_PREFIX}{self.iterations}$"
            f"{base64.b64encode(salt).decode()}${base64.b64encode(digest).decode()}"
        )

    def verify(self, password_hash: str, password: str) -> bool:
        """True when ``password`` matches; False on mismatch or an unreadable hash."""
        if password_hash.startswith(_ARGON2_PREFIX):
            try:
                return self._argon2.verify(password_hash, password)
            except (VerificationError, InvalidHashError):
                return False
        if password_hash.startswith(_PBKDF2_PREFIX):
            return self._verify_pbkdf2(password_hash, password)
        return False

    @staticmethod
    def _verify_pbkdf2(password_hash: str, password: str) -> bool:
        try:
            _, _, rounds, salt_b64, digest_b64 = password_hash.split("$")
            iterations = int(rounds)
            salt = base64.b64decode(salt_b64)
            expected = base64.b64decode(digest_b64)
        except ValueError:
            return False

        actual = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, iterations, dklen=len(expected))
        return hmac.compare_digest(actual, expected)

    def dummy_hash(self) -> str:
        """
        A fixed hash of a random secret, verified against when no account
        matches so the miss costs as much as a wrong password.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(secrets.token_urlsafe(16))
        return self._dummy_hash

    def check_needs_rehash(self, password_hash: str) -> bool:
        """True if the hash was made with another scheme or other parameters."""
        if self.algorithm == "argon2id":
            if not password_hash.startswith(_ARGON2_PREFIX):
                return True
            try:
                return self._argon2.check_needs_rehash(password_hash)
            except InvalidHashError:
                return True

        if not password_hash.startswith(_PBKDF2_PREFIX):
            return True
        try:
            return int(password_hash.split("$")[2]) != self.iterations
        except (IndexError, ValueError):
            return True


# ============================================================================
# Default hasher
# ============================================================================

_default_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Hasher used by Password fields that were not given their own."""
    global _default_hasher
    if _default_hasher is None:
        _default_hasher = PasswordHasher()
    return _default_hasher


def set_password_hasher(hasher: PasswordHasher | None) -> None:
    """Replace the default hasher; ``None`` restores the stock argon2id one."""
    global _default_hasher
    _default_hasher = hasher
