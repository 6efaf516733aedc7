"""
CairnSessions - Core types.

- SessionID: opaque cryptographic identifier
- Session: server-side state bound (optionally) to an authenticated item
"""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional


# ============================================================================
# SessionID - Opaque Cryptographic Identifier
# ============================================================================

class SessionID:
    """
    Opaque session identifier.

    Rules:
    - Never encode meaning (no user ID, no timestamps)
    - 32 random bytes, URL-safe encoded, ``sess_`` prefix

    Example:
        >>> sid = SessionID()
        >>> SessionID.from_string(str(sid)) == sid
        True
    """

    __slots__ = ("_raw", "_encoded")

    PREFIX = "sess_"

    def __init__(self, raw: bytes | None = None):
        if raw is None:
            raw = secrets.token_bytes(32)
        elif len(raw) != 32:
            raise ValueError("Session ID must be exactly 32 bytes")

        self._raw = raw
        self._encoded = f"{self.PREFIX}{base64.urlsafe_b64encode(raw).decode().rstrip('=')}"

    def __str__(self) -> str:
        return self._encoded

    def __repr__(self) -> str:
        return f"SessionID({self._encoded[:16]}...)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionID):
            return False
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    @classmethod
    def from_string(cls, encoded: str) -> "SessionID":
        """
        Parse session ID from encoded string.

        Raises:
            ValueError: If format is invalid
        """
        if not encoded.startswith(cls.PREFIX):
            raise ValueError("Invalid session ID format: must start with 'sess_'")

        raw_b64 = encoded[len(cls.PREFIX):]
        raw_b64 += "=" * (-len(raw_b64) % 4)
        try:
            raw = base64.urlsafe_b64decode(raw_b64)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid session ID encoding: {e}")

        return cls(raw)


# ============================================================================
# Session
# ============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """
    Server-side session.

    A session is anonymous until :meth:`bind` attaches the list key and
    item id of an authenticated item.

    Example:
        >>> session = Session(id=SessionID())
        >>> session.bind("User", "u1")
        >>> session.is_authenticated
        True
    """

    id: SessionID
    list_key: Optional[str] = None
    item_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    expires_at: Optional[datetime] = None

    @classmethod
    def new(cls, ttl: Optional[timedelta] = None) -> "Session":
        now = _utcnow()
        return cls(
            id=SessionID(),
            created_at=now,
            expires_at=now + ttl if ttl else None,
        )

    def bind(self, list_key: str, item_id: str) -> None:
        self.list_key = list_key
        self.item_id = item_id

    def unbind(self) -> None:
        self.list_key = None
        self.item_id = None

    @property
    def is_authenticated(self) -> bool:
        return self.list_key is not None and self.item_id is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or _utcnow()) >= self.expires_at

    def max_age(self, now: datetime | None = None) -> Optional[int]:
        """Seconds until expiry, for the cookie Max-Age."""
        if self.expires_at is None:
            return None
        return max(0, int((self.expires_at - (now or _utcnow())).total_seconds()))
