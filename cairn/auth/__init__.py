"""
CairnAuth - credential validation for lists.
"""

from .hashing import PasswordHasher, get_password_hasher, set_password_hasher
from .strategy import AuthResult, PasswordAuthStrategy

__all__ = [
    "AuthResult",
    "PasswordAuthStrategy",
    "PasswordHasher",
    "get_password_hasher",
    "set_password_hasher",
]
