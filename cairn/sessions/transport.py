"""
CairnSessions - Cookie transport.

Carries the session ID in an HMAC-signed cookie. A cookie whose signature
does not verify is treated as absent.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..response import CookieSigner

if TYPE_CHECKING:
    from ..request import Request
    from ..response import Response
    from .core import Session


class CookieTransport:
    """
    Signed-cookie session transport.

    Example:
        >>> transport = CookieTransport(CookieSigner("qwerty"))
        >>> transport.inject(response, session)
        >>> transport.extract(request)
        'sess_...'
    """

    def __init__(
        self,
        signer: CookieSigner,
        cookie_name: str = "cairn.sid",
        *,
        path: str = "/",
        secure: bool = False,
        httponly: bool = True,
        samesite: str = "Lax",
    ):
        self.signer = signer
        self.cookie_name = cookie_name
        self.path = path
        self.secure = secure
        self.httponly = httponly
        self.samesite = samesite

    def extract(self, request: "Request") -> Optional[str]:
        raw = request.cookie(self.cookie_name)
        if not raw:
            return None
        return self.signer.unsign(raw)

    def inject(self, response: "Response", session: "Session") -> None:
        response.set_cookie(
            self.cookie_name,
            self.signer.sign(str(session.id)),
            max_age=session.max_age(),
            path=self.path,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )

    def clear(self, response: "Response") -> None:
        response.delete_cookie(self.cookie_name, path=self.path)
