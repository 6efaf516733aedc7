"""
Session routes and the development reset route.

    GET /api/session    who is signed in
    GET /api/signin     ?username=&password=
    GET /api/signout
    GET /reset-db       drop and reseed, then redirect to the admin

A failed reset answers with an empty 500 rather than leaving the request
without a response, so clients are not left waiting on the connection.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from cairn import AdminUI, Cairn, CairnConfig, PasswordAuthStrategy, Request, Response, WebServer

logger = logging.getLogger("cairn_site")

SESSION_USER_FIELDS = ("name", "twitterId", "twitterUsername")


def register_routes(
    server: WebServer,
    cairn: Cairn,
    strategy: PasswordAuthStrategy,
    admin: AdminUI,
    config: CairnConfig,
    initial_data: Mapping[str, Any],
) -> None:

    @server.get("/api/session")
    async def session_info(request: Request) -> Response:
        session = await cairn.session.resolve(request)
        item_id = session.item_id if session is not None else None

        data: Dict[str, Any] = {"signedIn": bool(item_id)}
        if item_id:
            data["userId"] = item_id

        user = request.state.get("user")
        if user:
            for key in SESSION_USER_FIELDS:
                if user.get(key) is not None:
                    data[key] = user[key]
        return Response.json(data)

    @server.get("/api/signin")
    async def signin(request: Request) -> Response:
        # Store faults propagate to the exception middleware (HTTP 500)
        result = await strategy.validate(
            request.query_param("username"),
            request.query_param("password"),
        )
        if not result.success:
            host = request.client[0] if request.client else "unknown"
            logger.info("Rejected sign-in from %s", host)
            return Response.json({"success": False})

        response = Response.json({"success": True, "itemId": result.item["id"]})
        await cairn.session.create(request, response, result)
        return response

    @server.get("/api/signout")
    async def signout(request: Request) -> Response:
        response = Response.json({"success": True})
        await cairn.session.destroy(request, response)
        return response

    if not config.enable_reset_route:
        return

    @server.get("/reset-db")
    async def reset_db(request: Request) -> Response:
        # Unsafe under concurrent traffic; development only
        logger.warning("Resetting database via /reset-db")
        try:
            await cairn.drop_database()
            await cairn.create_items(initial_data)
        except Exception:
            logger.exception("Database reset failed")
            return Response(b"", status=500)
        return Response.redirect(admin.admin_path)
