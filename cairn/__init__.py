"""
Cairn - declarative lists, access control and sessions over an async item
store, served as an ASGI application.
"""

__version__ = "0.1.0"

from .access import AccessArgs, Authentication, Operation, OwnerPolicy
from .admin import AdminUI
from .auth import AuthResult, PasswordAuthStrategy, PasswordHasher
from .config import CairnConfig, ConfigError, ConfigLoader
from .core import Cairn
from .faults import (
    AccessDeniedFault,
    AdapterConfigFault,
    Fault,
    ItemNotFoundFault,
    ListConfigFault,
    StoreUnavailableFault,
    ValidationFault,
)
from .fields import CloudinaryImage, File, Password, Relationship, Select, Text
from .lists import ListSchema
from .request import Request
from .response import Response
from .server import WebServer
from .store import SQLiteItemStore, create_store

__all__ = [
    "AccessArgs",
    "AccessDeniedFault",
    "AdapterConfigFault",
    "AdminUI",
    "AuthResult",
    "Authentication",
    "Cairn",
    "CairnConfig",
    "CloudinaryImage",
    "ConfigError",
    "ConfigLoader",
    "Fault",
    "File",
    "ItemNotFoundFault",
    "ListConfigFault",
    "ListSchema",
    "Operation",
    "OwnerPolicy",
    "Password",
    "PasswordAuthStrategy",
    "PasswordHasher",
    "Relationship",
    "Request",
    "Response",
    "SQLiteItemStore",
    "Select",
    "StoreUnavailableFault",
    "Text",
    "ValidationFault",
    "WebServer",
    "create_store",
]
