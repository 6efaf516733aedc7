"""
CairnSessions - signed-cookie sessions bound to list items.
"""

from .core import Session, SessionID
from .manager import SessionManager
from .store import MemorySessionStore, SessionStore
from .transport import CookieTransport

__all__ = [
    "CookieTransport",
    "MemorySessionStore",
    "Session",
    "SessionID",
    "SessionManager",
    "SessionStore",
]
