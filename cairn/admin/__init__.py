"""
CairnAdmin - Admin UI and JSON item API.

HTML pages (jinja2):
    GET  {admin}                 index of lists
    GET  {admin}/{list}          item labels of one list
    GET  {admin}/signin          sign-in form
    POST {admin}/signin          sign in with the configured auth strategy
    GET  {admin}/signout         end the session

JSON API, run under the caller's session authentication:
    GET    {admin}/api/{list}        list items (query params filter)
    POST   {admin}/api/{list}        create item
    GET    {admin}/api/{list}/{id}   read item
    PATCH  {admin}/api/{list}/{id}   update item
    DELETE {admin}/api/{list}/{id}   delete item

Create and update accept a JSON object or a multipart/form-data body.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from ..faults import BadRequestFault, RouteNotFoundFault
from ..fields import Relationship
from ..lists import ListSchema
from ..request import Request
from ..response import Response

if TYPE_CHECKING:
    from ..auth.strategy import PasswordAuthStrategy
    from ..core import Cairn
    from ..server import WebServer

logger = logging.getLogger("cairn.admin")


class AdminUI:
    def __init__(
        self,
        cairn: "Cairn",
        admin_path: str = "/admin",
        auth_strategy: Optional["PasswordAuthStrategy"] = None,
    ):
        self.cairn = cairn
        self.admin_path = "/" + admin_path.strip("/")
        self.auth_strategy = auth_strategy
        self.env = Environment(
            loader=PackageLoader("cairn.admin", "templates"),
            autoescape=select_autoescape(enabled_extensions=["html"], default_for_string=True),
            enable_async=True,
        )

    def mount(self, server: "WebServer") -> None:
        p = self.admin_path
        server.get(p)(self.index)
        server.get(f"{p}/signin")(self.signin_form)
        server.post(f"{p}/signin")(self.signin)
        server.get(f"{p}/signout")(self.signout)
        server.get(f"{p}/api/{{list_key}}")(self.api_list)
        server.post(f"{p}/api/{{list_key}}")(self.api_create)
        server.get(f"{p}/api/{{list_key}}/{{item_id}}")(self.api_get)
        server.patch(f"{p}/api/{{list_key}}/{{item_id}}")(self.api_update)
        server.delete(f"{p}/api/{{list_key}}/{{item_id}}")(self.api_delete)
        server.get(f"{p}/{{list_key}}")(self.list_page)
        logger.debug("Admin UI mounted at %s", p)

    # ========================================================================
    # Helpers
    # ========================================================================

    def _schema(self, list_key: str) -> ListSchema:
        schema = self.cairn.lists.get(list_key)
        if schema is None:
            raise RouteNotFoundFault()
        return schema

    async def _render(self, template: str, status: int = 200, **context: Any) -> Response:
        html = await self.env.get_template(template).render_async(
            project_name=self.cairn.name,
            admin_path=self.admin_path,
            **context,
        )
        return Response.html(html, status=status)

    async def _requires_signin(self, request: Request) -> bool:
        if self.auth_strategy is None:
            return False
        auth = await self.cairn.session.authentication(request)
        return not auth.is_authenticated

    @staticmethod
    async def _payload(request: Request, schema: ListSchema) -> Dict[str, Any]:
        """
        Item input from a JSON object or a multipart form.

        In a multipart form, repeated parts fill a to-many relationship and
        file parts become upload objects with raw content.
        """
        if not request.is_multipart():
            data = await request.json()
            if not isinstance(data, dict):
                raise BadRequestFault(message="Expected a JSON object")
            return data

        form = await request.multipart()
        data: Dict[str, Any] = {}
        for name, values in form.fields.items():
            field = schema.fields.get(name)
            many = isinstance(field, Relationship) and field.many
            data[name] = values if many else values[-1]
        for name, upload in form.files.items():
            data[name] = {
                "filename": upload.filename,
                "content": upload.content,
                "mimetype": upload.content_type,
            }
        return data

    # ========================================================================
    # HTML
    # ========================================================================

    async def index(self, request: Request) -> Response:
        if await self._requires_signin(request):
            return Response.redirect(f"{self.admin_path}/signin")

        auth = await self.cairn.session.authentication(request)
        lists = []
        for key, schema in self.cairn.lists.items():
            items = await schema.list_items(auth)
            lists.append({"key": key, "count": len(items)})
        return await self._render("index.html", lists=lists, user=request.state.get("user"))

    async def list_page(self, request: Request) -> Response:
        if await self._requires_signin(request):
            return Response.redirect(f"{self.admin_path}/signin")

        schema = self._schema(request.path_params["list_key"])
        auth = await self.cairn.session.authentication(request)
        items = await schema.list_items(auth)
        return await self._render("list.html", list_key=schema.key, items=items, user=request.state.get("user"))

    async def signin_form(self, request: Request) -> Response:
        return await self._render("signin.html", error=None)

    async def signin(self, request: Request) -> Response:
        if self.auth_strategy is None:
            raise RouteNotFoundFault()

        form = await request.form()
        result = await self.auth_strategy.validate(form.get("username"), form.get("password"))
        if not result.success:
            return await self._render("signin.html", error=result.message)

        response = Response.redirect(self.admin_path)
        await self.cairn.session.create(request, response, result)
        return response

    async def signout(self, request: Request) -> Response:
        response = Response.redirect(f"{self.admin_path}/signin")
        await self.cairn.session.destroy(request, response)
        return response

    # ========================================================================
    # JSON API
    # ========================================================================

    async def api_list(self, request: Request) -> Response:
        schema = self._schema(request.path_params["list_key"])
        auth = await self.cairn.session.authentication(request)
        items = await schema.list_items(auth, where=request.query_params)
        return Response.json({"items": items, "count": len(items)})

    async def api_create(self, request: Request) -> Response:
        schema = self._schema(request.path_params["list_key"])
        auth = await self.cairn.session.authentication(request)
        item = await schema.create_item(await self._payload(request, schema), auth)
        return Response.json(item, status=201)

    async def api_get(self, request: Request) -> Response:
        schema = self._schema(request.path_params["list_key"])
        auth = await self.cairn.session.authentication(request)
        return Response.json(await schema.get_item(request.path_params["item_id"], auth))

    async def api_update(self, request: Request) -> Response:
        schema = self._schema(request.path_params["list_key"])
        auth = await self.cairn.session.authentication(request)
        data = await self._payload(request, schema)
        return Response.json(await schema.update_item(request.path_params["item_id"], data, auth))

    async def api_delete(self, request: Request) -> Response:
        schema = self._schema(request.path_params["list_key"])
        auth = await self.cairn.session.authentication(request)
        return Response.json(await schema.delete_item(request.path_params["item_id"], auth))
