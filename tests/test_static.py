"""
Static file middleware.
"""

import pytest

from cairn.response import Response
from cairn.static import StaticMiddleware


async def fallthrough(request):
    return Response("fallthrough", media_type="text/plain", status=404)


@pytest.fixture
def static_dir(tmp_path):
    root = tmp_path / "static"
    (root / "css").mkdir(parents=True)
    (root / "css" / "site.css").write_text("body { color: red; }")
    (root / "logo.webp").write_bytes(b"RIFF....WEBP")
    (tmp_path / "secret.txt").write_text("keep out")
    return root


class TestStaticMiddleware:

    @pytest.mark.asyncio
    async def test_serves_file(self, static_dir, make_request):
        mw = StaticMiddleware({"/static": str(static_dir)})
        response = await mw(make_request(path="/static/css/site.css"), fallthrough)
        assert response.status == 200
        assert response.body == b"body { color: red; }"
        assert response.headers["content-type"].startswith("text/css")
        assert response.headers["etag"].startswith('W/"')
        assert "max-age=3600" in response.headers["cache-control"]

    @pytest.mark.asyncio
    async def test_extra_mime_types(self, static_dir, make_request):
        mw = StaticMiddleware({"/static": str(static_dir)})
        response = await mw(make_request(path="/static/logo.webp"), fallthrough)
        assert response.headers["content-type"] == "image/webp"

    @pytest.mark.asyncio
    async def test_head_has_no_body(self, static_dir, make_request):
        mw = StaticMiddleware({"/static": str(static_dir)})
        response = await mw(make_request("HEAD", "/static/css/site.css"), fallthrough)
        assert response.status == 200
        assert response.body == b""
        assert response.headers["content-length"] == str(len("body { color: red; }"))

    @pytest.mark.asyncio
    async def test_not_modified(self, static_dir, make_request):
        mw = StaticMiddleware({"/static": str(static_dir)})
        first = await mw(make_request(path="/static/css/site.css"), fallthrough)
        etag = first.headers["etag"]

        second = await mw(
            make_request(path="/static/css/site.css", headers=[("if-none-match", etag)]),
            fallthrough,
        )
        assert second.status == 304
        assert second.body == b""

    @pytest.mark.asyncio
    async def test_missing_file_falls_through(self, static_dir, make_request):
        mw = StaticMiddleware({"/static": str(static_dir)})
        response = await mw(make_request(path="/static/nope.css"), fallthrough)
        assert response.body == b"fallthrough"

    @pytest.mark.asyncio
    async def test_other_prefix_falls_through(self, static_dir, make_request):
        mw = StaticMiddleware({"/static": str(static_dir)})
        response = await mw(make_request(path="/statics/css/site.css"), fallthrough)
        assert response.body == b"fallthrough"

    @pytest.mark.asyncio
    async def test_post_falls_through(self, static_dir, make_request):
        mw = StaticMiddleware({"/static": str(static_dir)})
        response = await mw(make_request("POST", "/static/css/site.css"), fallthrough)
        assert response.body == b"fallthrough"

    @pytest.mark.asyncio
    async def test_traversal_forbidden(self, static_dir, make_request):
        mw = StaticMiddleware({"/static": str(static_dir)})
        response = await mw(make_request(path="/static/../secret.txt"), fallthrough)
        assert response.status == 403

    @pytest.mark.asyncio
    async def test_longest_prefix_wins(self, static_dir, tmp_path, make_request):
        other = tmp_path / "css-override"
        other.mkdir()
        (other / "site.css").write_text("override")

        mw = StaticMiddleware({"/static": str(static_dir)})
        mw.mount("/static/css", str(other))
        response = await mw(make_request(path="/static/css/site.css"), fallthrough)
        assert response.body == b"override"
