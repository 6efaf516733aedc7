"""
CairnAuth - Password auth strategy.

Validates a username/password pair against one designated list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..faults import ListConfigFault
from .hashing import PasswordHasher

if TYPE_CHECKING:
    from ..core import Cairn

logger = logging.getLogger("cairn.auth")

FAILURE_MESSAGE = "Invalid username or password"


@dataclass(frozen=True)
class AuthResult:
    """
    Outcome of a credential check.

    Bad credentials are an ordinary result with ``success=False``, never an
    exception.
    """

    success: bool
    item: Optional[Dict[str, Any]] = None
    list_key: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls) -> "AuthResult":
        return cls(success=False, message=FAILURE_MESSAGE)


class PasswordAuthStrategy:
    """
    Username/password strategy over a list.

    Example:
        >>> strategy = cairn.create_auth_strategy("User")
        >>> result = await strategy.validate("jed@example.com", "correct horse")
        >>> result.success
        True
    """

    auth_type = "password"

    def __init__(
        self,
        cairn: "Cairn",
        list_key: str,
        identity_field: str = "email",
        secret_field: str = "password",
    ):
        self.cairn = cairn
        self.list_key = list_key
        self.identity_field = identity_field
        self.secret_field = secret_field

        from ..fields import Password

        schema = cairn.lists[list_key]
        if identity_field not in schema.fields:
            raise ListConfigFault(list_key, f"auth identity field '{identity_field}' is not declared")
        secret = schema.fields.get(secret_field)
        if not isinstance(secret, Password):
            raise ListConfigFault(list_key, f"auth secret field '{secret_field}' must be a Password field")
        self._secret = secret

    @property
    def hasher(self) -> PasswordHasher:
        return self._secret.hasher

    async def validate(self, username: Optional[str], password: Optional[str]) -> AuthResult:
        """
        Check credentials.

        Exactly one item must carry ``username`` in the identity field. A
        missing item, an ambiguous match and a wrong password all produce
        the same failure result, and all of them run one hash verification.
        Store errors propagate.
        """
        username = username or ""
        password = password or ""

        schema = self.cairn.lists[self.list_key]
        matches = await schema.find_raw({self.identity_field: username}) if username else []

        if len(matches) != 1:
            self.hasher.verify(self.hasher.dummy_hash(), password)
            logger.info("Sign-in failed for list %s", self.list_key)
            return AuthResult.failure()

        item = matches[0]
        password_hash = item.get(self.secret_field)
        if not password_hash:
            self.hasher.verify(self.hasher.dummy_hash(), password)
            logger.info("Sign-in failed for list %s", self.list_key)
            return AuthResult.failure()

        if not self.hasher.verify(password_hash, password):
            logger.info("Sign-in failed for list %s", self.list_key)
            return AuthResult.failure()

        logger.info("Sign-in succeeded: %s %s", self.list_key, item["id"])
        return AuthResult(success=True, item=item, list_key=self.list_key)

    def __repr__(self) -> str:
        return f"PasswordAuthStrategy(list_key={self.list_key!r}, identity_field={self.identity_field!r})"
