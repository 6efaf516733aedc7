"""
CairnSessions - Session manager.

Binds signed-cookie sessions to authenticated list items:

    anonymous --(successful validate)--> authenticated(list_key, item_id)
    authenticated --(destroy or expiry)--> anonymous

Request state keys populated by :meth:`SessionManager.validate`:
- ``session``: the resolved Session or None
- ``authentication``: an Authentication (anonymous when signed out)
- ``user``: the authenticated item or None
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from ..access import Authentication
from .core import Session, SessionID
from .store import MemorySessionStore, SessionStore
from .transport import CookieTransport

if TYPE_CHECKING:
    from ..auth.strategy import AuthResult
    from ..core import Cairn
    from ..request import Request
    from ..response import Response
    from ..server import Handler

logger = logging.getLogger("cairn.sessions")

_UNSET = object()


class SessionManager:
    """
    Session lifecycle over a store and a cookie transport.

    Example:
        >>> manager = SessionManager(cairn, transport=CookieTransport(CookieSigner("qwerty")))
        >>> await manager.create(request, response, auth_result)
        >>> (await manager.authentication(request)).item_id
        'u1'
    """

    def __init__(
        self,
        cairn: "Cairn",
        transport: CookieTransport,
        store: Optional[SessionStore] = None,
        ttl: timedelta = timedelta(days=30),
    ):
        self.cairn = cairn
        self.transport = transport
        self.store = store if store is not None else MemorySessionStore()
        self.ttl = ttl

    async def resolve(self, request: "Request") -> Optional[Session]:
        """Load the request's session; invalid, unknown or expired ids yield None."""
        cached = request.state.get("session", _UNSET)
        if cached is not _UNSET:
            return cached

        session = None
        raw = self.transport.extract(request)
        if raw:
            try:
                session = await self.store.load(SessionID.from_string(raw))
            except ValueError:
                logger.debug("Ignoring malformed session id")
        request.state["session"] = session
        return session

    async def authentication(self, request: "Request") -> Authentication:
        """
        Resolve the caller's authentication context.

        A session bound to an item that no longer exists counts as anonymous.
        """
        cached = request.state.get("authentication")
        if cached is not None:
            return cached

        auth = Authentication.anonymous()
        item = None
        session = await self.resolve(request)
        if session is not None and session.is_authenticated:
            item = await self.cairn.store.get(session.list_key, session.item_id)
            if item is not None:
                auth = Authentication(list_key=session.list_key, item=item)
            else:
                logger.info("Session bound to missing %s %s", session.list_key, session.item_id)

        request.state["authentication"] = auth
        request.state["user"] = item
        return auth

    async def create(self, request: "Request", response: "Response", result: "AuthResult") -> Session:
        """
        Start an authenticated session for a successful auth result.

        Any previous session of the request is discarded and a fresh id
        issued.
        """
        previous = await self.resolve(request)
        if previous is not None:
            await self.store.delete(previous.id)

        session = Session.new(self.ttl)
        session.bind(result.list_key, result.item["id"])
        await self.store.save(session)
        self.transport.inject(response, session)

        request.state["session"] = session
        request.state["authentication"] = Authentication(list_key=result.list_key, item=result.item)
        request.state["user"] = result.item
        logger.info("Session started for %s %s", result.list_key, result.item["id"])
        return session

    async def destroy(self, request: "Request", response: "Response") -> None:
        session = await self.resolve(request)
        if session is not None:
            await self.store.delete(session.id)
            logger.info("Session ended for %s %s", session.list_key, session.item_id)
        self.transport.clear(response)

        request.state["session"] = None
        request.state["authentication"] = Authentication.anonymous()
        request.state["user"] = None

    async def validate(self, request: "Request", next: "Handler") -> "Response":
        """Middleware: populate the request's authentication state."""
        await self.authentication(request)
        return await next(request)
