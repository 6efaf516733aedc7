"""
Static File Middleware - serves files under URL prefixes.

Features:
- Prefix -> directory mapping, longest prefix wins
- Content-type detection via mimetypes + custom mappings
- Weak ETag with If-None-Match support
- Directory traversal prevention with resolved-path containment
"""

from __future__ import annotations

import hashlib
import mimetypes
import os
from email.utils import formatdate
from pathlib import Path
from typing import Dict, Optional, Tuple

from .middleware import Handler
from .request import Request
from .response import Response

_EXTRA_MIME_TYPES: Dict[str, str] = {
    ".woff2": "font/woff2",
    ".woff": "font/woff",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".map": "application/json",
    ".mjs": "application/javascript",
    ".ico": "image/x-icon",
}

for _ext, _mime in _EXTRA_MIME_TYPES.items():
    mimetypes.add_type(_mime, _ext)


class StaticMiddleware:
    """
    Serve files for GET/HEAD requests whose path falls under a registered
    prefix; everything else falls through to the next handler.

    Args:
        directories: URL prefix -> filesystem directory,
            e.g. ``{"/static": "./static"}``
        cache_max_age: Cache-Control max-age in seconds
    """

    def __init__(self, directories: Optional[Dict[str, str]] = None, cache_max_age: int = 3600):
        self._cache_max_age = cache_max_age
        self._directories: Dict[str, Path] = {}
        for url_prefix, fs_dir in (directories or {}).items():
            self.mount(url_prefix, fs_dir)

    def mount(self, url_prefix: str, directory: str) -> None:
        prefix = "/" + url_prefix.strip("/")
        self._directories[prefix] = Path(directory).resolve()

    async def __call__(self, request: Request, next: Handler) -> Response:
        if request.method not in ("GET", "HEAD"):
            return await next(request)

        match = self._lookup(request.path)
        if match is None:
            return await next(request)

        directory, relative_path = match
        response = self._serve_file(request, directory, relative_path)
        if response is None:
            return await next(request)
        return response

    def _lookup(self, path: str) -> Optional[Tuple[Path, str]]:
        for prefix in sorted(self._directories, key=len, reverse=True):
            if path == prefix or path.startswith(prefix + "/"):
                return self._directories[prefix], path[len(prefix):].lstrip("/")
        return None

    def _serve_file(self, request: Request, directory: Path, relative_path: str) -> Optional[Response]:
        """Attempt to serve a single file. Returns None on miss."""
        if not relative_path:
            return None

        file_path = (directory / relative_path).resolve()
        try:
            file_path.relative_to(directory)
        except ValueError:
            return Response(b"Forbidden", status=403, media_type="text/plain; charset=utf-8")

        if not file_path.is_file():
            return None

        try:
            st = file_path.stat()
        except OSError:
            return None

        etag = self._compute_etag(st)
        client_etag = request.header("if-none-match")
        if client_etag and self._etag_matches(client_etag, etag):
            return Response(b"", status=304, headers={"etag": etag})

        try:
            content = file_path.read_bytes()
        except OSError:
            return None

        headers = {
            "etag": etag,
            "last-modified": formatdate(st.st_mtime, usegmt=True),
            "cache-control": f"public, max-age={self._cache_max_age}",
            "content-length": str(len(content)),
        }
        body = b"" if request.method == "HEAD" else content
        return Response(body, status=200, headers=headers, media_type=self._detect_content_type(file_path))

    @staticmethod
    def _detect_content_type(path: Path) -> str:
        mime, _ = mimetypes.guess_type(str(path))
        return mime or "application/octet-stream"

    @staticmethod
    def _compute_etag(st: os.stat_result) -> str:
        """Weak ETag from inode + mtime + size."""
        raw = f"{st.st_ino}-{st.st_mtime_ns}-{st.st_size}"
        digest = hashlib.md5(raw.encode(), usedforsecurity=False).hexdigest()[:16]
        return f'W/"{digest}"'

    @staticmethod
    def _etag_matches(client_header: str, etag: str) -> bool:
        if client_header.strip() == "*":
            return True
        tags = [t.strip().removeprefix("W/").strip('"') for t in client_header.split(",")]
        return etag.removeprefix("W/").strip('"') in tags
