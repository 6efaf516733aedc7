"""
Request - ASGI request wrapper.

Lazily parses query string, headers, cookies and body from the ASGI scope
and receive channel. Parsed values are cached on the instance.
"""

from __future__ import annotations

import json as stdlib_json
from dataclasses import dataclass, field
from http.cookies import CookieError, SimpleCookie
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl

from python_multipart import MultipartParser
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header

from .faults import BadRequestFault


@dataclass
class UploadedFile:
    """One file part of a multipart body, held in memory."""

    filename: str
    content_type: Optional[str]
    content: bytes


@dataclass
class MultipartForm:
    fields: Dict[str, List[str]] = field(default_factory=dict)
    files: Dict[str, UploadedFile] = field(default_factory=dict)


class Request:
    """
    Request object handed to route handlers and middleware.

    ``state`` is a per-request scratch dict; the session middleware stores
    the resolved session, authentication and user item there.
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[dict]],
        *,
        max_body_size: int = 10_485_760,  # 10 MiB
    ):
        self.scope = scope
        self._receive = receive
        self.max_body_size = max_body_size

        self.state: Dict[str, Any] = {}
        self.path_params: Dict[str, str] = {}

        self._body: Optional[bytes] = None
        self._json: Any = None
        self._form: Optional[Dict[str, str]] = None
        self._multipart: Optional[MultipartForm] = None
        self._query_params: Optional[Dict[str, str]] = None
        self._headers: Optional[Dict[str, str]] = None
        self._cookies: Optional[Dict[str, str]] = None

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("utf-8")

    @property
    def client(self) -> Optional[tuple]:
        return self.scope.get("client")

    # ========================================================================
    # Query, headers, cookies
    # ========================================================================

    @property
    def query_params(self) -> Dict[str, str]:
        """Query parameters; the first value wins for repeated names."""
        if self._query_params is None:
            params: Dict[str, str] = {}
            for name, value in parse_qsl(self.query_string, keep_blank_values=True):
                params.setdefault(name, value)
            self._query_params = params
        return self._query_params

    def query_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.query_params.get(name, default)

    @property
    def headers(self) -> Dict[str, str]:
        if self._headers is None:
            headers: Dict[str, str] = {}
            for raw_name, raw_value in self.scope.get("headers", []):
                name = raw_name.decode("latin-1").lower()
                value = raw_value.decode("latin-1")
                headers[name] = f"{headers[name]}, {value}" if name in headers else value
            self._headers = headers
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name.lower(), default)

    @property
    def cookies(self) -> Mapping[str, str]:
        if self._cookies is None:
            cookie_header = self.header("cookie", "")
            cookies: Dict[str, str] = {}
            if cookie_header:
                cookie = SimpleCookie()
                try:
                    cookie.load(cookie_header)
                except CookieError:
                    cookie = SimpleCookie()
                cookies = {key: morsel.value for key, morsel in cookie.items()}
            self._cookies = cookies
        return self._cookies

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    def content_type(self) -> Optional[str]:
        return self.header("content-type")

    # ========================================================================
    # Body
    # ========================================================================

    async def body(self) -> bytes:
        """
        Read full request body (idempotent).

        Raises:
            BadRequestFault: If the body exceeds ``max_body_size``
        """
        if self._body is not None:
            return self._body

        chunks = []
        total = 0
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            total += len(chunk)
            if total > self.max_body_size:
                raise BadRequestFault(message="Request body too large")
            chunks.append(chunk)
            if not message.get("more_body", False):
                break

        self._body = b"".join(chunks)
        return self._body

    async def json(self) -> Any:
        """
        Parse request body as JSON. An empty body parses as ``{}``.

        Raises:
            BadRequestFault: If JSON is malformed
        """
        if self._json is not None:
            return self._json

        body_bytes = await self.body()
        if not body_bytes.strip():
            self._json = {}
            return self._json
        try:
            self._json = stdlib_json.loads(body_bytes.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise BadRequestFault(message=f"Invalid UTF-8 in JSON payload: {e}")
        except stdlib_json.JSONDecodeError as e:
            raise BadRequestFault(message=f"Invalid JSON: {e}")
        return self._json

    async def form(self) -> Dict[str, str]:
        """
        Parse an ``application/x-www-form-urlencoded`` body.

        Raises:
            BadRequestFault: If the body has another content type
        """
        if self._form is not None:
            return self._form

        ct = (self.content_type() or "").split(";")[0].strip().lower()
        if ct != "application/x-www-form-urlencoded":
            raise BadRequestFault(message=f"Expected form data, got {ct or 'no content type'}")

        body_str = (await self.body()).decode("utf-8")
        form: Dict[str, str] = {}
        for name, value in parse_qsl(body_str, keep_blank_values=True):
            form.setdefault(name, value)
        self._form = form
        return self._form

    def is_multipart(self) -> bool:
        media_type, _ = parse_options_header(self.content_type() or "")
        return media_type == b"multipart/form-data"

    async def multipart(self) -> MultipartForm:
        """
        Parse a ``multipart/form-data`` body with python-multipart.

        Text parts are collected per name in arrival order; for file parts
        the last one with a given name wins. The whole body is bounded by
        ``max_body_size``, so parts are kept in memory.

        Raises:
            BadRequestFault: If the body is not multipart, has no boundary
                or cannot be parsed
        """
        if self._multipart is not None:
            return self._multipart

        media_type, options = parse_options_header(self.content_type() or "")
        if media_type != b"multipart/form-data":
            raise BadRequestFault(message="Expected multipart/form-data")
        boundary = options.get(b"boundary")
        if not boundary:
            raise BadRequestFault(message="No boundary in multipart content type")

        form = MultipartForm()
        part: Dict[str, Any] = {}
        header = {"name": bytearray(), "value": bytearray()}

        def on_part_begin():
            part.clear()
            part.update(headers={}, data=bytearray())

        def on_header_field(data: bytes, start: int, end: int):
            header["name"].extend(data[start:end])

        def on_header_value(data: bytes, start: int, end: int):
            header["value"].extend(data[start:end])

        def on_header_end():
            name = header["name"].decode("latin-1").lower()
            part["headers"][name] = header["value"].decode("utf-8", errors="replace")
            header["name"] = bytearray()
            header["value"] = bytearray()

        def on_part_data(data: bytes, start: int, end: int):
            part["data"].extend(data[start:end])

        def on_part_end():
            _, disposition = parse_options_header(part["headers"].get("content-disposition", ""))
            name = disposition.get(b"name")
            if not name:
                return
            name = name.decode("utf-8")
            filename = disposition.get(b"filename")
            if filename is None:
                value = part["data"].decode("utf-8", errors="replace")
                form.fields.setdefault(name, []).append(value)
            else:
                form.files[name] = UploadedFile(
                    filename=filename.decode("utf-8", errors="replace"),
                    content_type=part["headers"].get("content-type"),
                    content=bytes(part["data"]),
                )

        parser = MultipartParser(boundary, callbacks={
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
            "on_header_end": on_header_end,
        })
        try:
            parser.write(await self.body())
            parser.finalize()
        except MultipartParseError as e:
            raise BadRequestFault(message=f"Malformed multipart body: {e}") from e

        self._multipart = form
        return form

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
