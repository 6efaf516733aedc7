"""
Shared test fixtures and helpers for the Cairn test suite.
"""

from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
import pytest

from cairn import CairnConfig, Request
from cairn.auth.hashing import PasswordHasher, set_password_hasher
from cairn_site.app import create_app, create_cairn


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    for name, value in headers or []:
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "query_string": query_string.encode("utf-8"),
        "headers": raw_headers,
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }


def make_receive(body: bytes = b"", chunks: Optional[List[bytes]] = None):
    """Build an ASGI receive callable that yields the body once."""
    messages = []
    if chunks is not None:
        for i, chunk in enumerate(chunks):
            messages.append({"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1})
    else:
        messages.append({"type": "http.request", "body": body, "more_body": False})

    async def receive():
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    return receive


@pytest.fixture
def make_request():
    def factory(method="GET", path="/", *, query_string="", headers=None, body=b"", **kwargs):
        return Request(make_scope(method, path, query_string, headers), make_receive(body), **kwargs)
    return factory


# ============================================================================
# Project Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def fast_hasher():
    """Argon2 with minimal cost so sign-in tests stay quick."""
    hasher = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)
    set_password_hasher(hasher)
    yield hasher
    set_password_hasher(None)


@pytest.fixture
def config(tmp_path):
    static = tmp_path / "static"
    static.mkdir()
    return CairnConfig(
        database_url="sqlite:///:memory:",
        static_path=str(static),
        enable_reset_route=True,
    )


@pytest.fixture
def cairn(config):
    """Site lists over an unconnected in-memory store."""
    return create_cairn(config)


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
def site_client(app):
    """
    Factory for an httpx client bound to the site app.

    ASGITransport does not send lifespan events, so startup runs here.
    """

    @asynccontextmanager
    async def open_client():
        await app.startup()
        try:
            async with httpx.AsyncClient(
                transport=httpx.ASGITransport(app=app),
                base_url="http://testserver",
            ) as client:
                yield client
        finally:
            await app.shutdown()

    return open_client
