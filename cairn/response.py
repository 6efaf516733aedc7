"""
Response - HTTP response builder.

Provides:
- ASGI response sending
- JSON/HTML/text/redirect factories
- Fault -> status mapping
- Cookies with multi-value Set-Cookie and HMAC signing
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from base64 import urlsafe_b64decode, urlsafe_b64encode
from datetime import datetime, timezone
from email.utils import formatdate
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from .faults import STATUS_MAP, Fault, MethodNotAllowedFault

logger = logging.getLogger("cairn.response")


def _json_default_serializer(o):
    """Default JSON serializer for non-standard types."""
    if isinstance(o, (set, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)


# ============================================================================
# CookieSigner
# ============================================================================

class CookieSigner:
    """
    HMAC cookie signer.

    Signed form is ``signature.value``, both urlsafe base64 without padding.
    """

    def __init__(self, secret_key: Union[str, bytes], algorithm: str = "sha256"):
        if isinstance(secret_key, str):
            secret_key = secret_key.encode("utf-8")
        if not secret_key:
            raise ValueError("Cookie secret must not be empty")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self._hash_func = getattr(hashlib, algorithm)

    @staticmethod
    def _b64(data: bytes) -> str:
        return urlsafe_b64encode(data).decode("ascii").rstrip("=")

    @staticmethod
    def _unb64(data: str) -> bytes:
        return urlsafe_b64decode(data + "=" * (-len(data) % 4))

    def sign(self, value: str) -> str:
        value_bytes = value.encode("utf-8")
        signature = hmac.new(self.secret_key, value_bytes, self._hash_func).digest()
        return f"{self._b64(signature)}.{self._b64(value_bytes)}"

    def unsign(self, signed_value: str) -> Optional[str]:
        """Return the original value if the signature is valid, else None."""
        try:
            sig_b64, val_b64 = signed_value.split(".", 1)
            signature = self._unb64(sig_b64)
            value_bytes = self._unb64(val_b64)
        except ValueError:
            return None

        expected = hmac.new(self.secret_key, value_bytes, self._hash_func).digest()
        if not hmac.compare_digest(signature, expected):
            return None
        try:
            return value_bytes.decode("utf-8")
        except UnicodeDecodeError:
            return None


# ============================================================================
# Response
# ============================================================================

class Response:
    """
    HTTP response.

    Headers are stored lower-cased; a list value is emitted as repeated
    headers (used for Set-Cookie).
    """

    def __init__(
        self,
        content: Union[bytes, str] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, Union[str, List[str]]]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
    ):
        self.status = status
        self.encoding = encoding
        self.body = content.encode(encoding) if isinstance(content, str) else content

        self._headers: Dict[str, Union[str, List[str]]] = {}
        if headers:
            for key, value in headers.items():
                self._headers[key.lower()] = list(value) if isinstance(value, (list, tuple)) else value

        if media_type:
            self._headers["content-type"] = media_type

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        return self._headers

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(cls, obj: Any, status: int = 200, *, headers: Optional[Mapping[str, str]] = None) -> "Response":
        content = json.dumps(obj, default=_json_default_serializer)
        return cls(
            content=content,
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def html(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content=content, status=status, media_type="text/html; charset=utf-8", **kwargs)

    @classmethod
    def redirect(cls, url: str, status: int = 302, *, headers: Optional[Dict[str, str]] = None) -> "Response":
        redirect_headers = {"location": url}
        if headers:
            redirect_headers.update(headers)
        return cls(content=b"", status=status, headers=redirect_headers)

    @classmethod
    def from_fault(cls, fault: Fault) -> "Response":
        """
        Create a JSON response from a Fault.

        Non-public faults hide their message behind the fault code.
        """
        status = STATUS_MAP.get(fault.code, 500)
        body = {"error": fault.code}
        if fault.public:
            body["message"] = fault.message
        response = cls.json(body, status=status)
        if isinstance(fault, MethodNotAllowedFault) and fault.allowed:
            response.set_header("allow", ", ".join(fault.allowed))
        return response

    # ========================================================================
    # Cookie Helpers
    # ========================================================================

    def set_cookie(
        self,
        name: str,
        value: str,
        *,
        max_age: Optional[int] = None,
        expires: Optional[datetime] = None,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = True,
        samesite: Optional[str] = "Lax",
    ) -> None:
        cookie_parts = [f"{name}={value}"]

        if max_age is not None:
            cookie_parts.append(f"Max-Age={max_age}")
        if expires:
            cookie_parts.append(f"Expires={formatdate(expires.timestamp(), usegmt=True)}")
        cookie_parts.append(f"Path={path}")
        if domain:
            cookie_parts.append(f"Domain={domain}")
        if secure:
            cookie_parts.append("Secure")
        if httponly:
            cookie_parts.append("HttpOnly")
        if samesite:
            cookie_parts.append(f"SameSite={samesite}")

        self.add_header("set-cookie", "; ".join(cookie_parts))

    def delete_cookie(self, name: str, path: str = "/", domain: Optional[str] = None) -> None:
        self.set_cookie(
            name,
            "",
            max_age=0,
            expires=datetime.fromtimestamp(0, tz=timezone.utc),
            path=path,
            domain=domain,
            httponly=False,
            samesite=None,
        )

    # ========================================================================
    # Header Helpers
    # ========================================================================

    @staticmethod
    def _validate_header(name: str, value: str) -> None:
        if "\r" in name or "\n" in name or "\r" in value or "\n" in value:
            raise ValueError(f"Header injection attempt in {name!r}")

    def set_header(self, name: str, value: str) -> None:
        self._validate_header(name, value)
        self._headers[name.lower()] = value

    def add_header(self, name: str, value: str) -> None:
        self._validate_header(name, value)
        name_lower = name.lower()
        existing = self._headers.get(name_lower)
        if existing is None:
            self._headers[name_lower] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            self._headers[name_lower] = [existing, value]

    def _prepare_headers(self) -> List[tuple]:
        headers_list = []
        for name, value in self._headers.items():
            values = value if isinstance(value, list) else [value]
            for v in values:
                headers_list.append((name.encode("latin-1"), v.encode("latin-1")))
        return headers_list

    # ========================================================================
    # ASGI
    # ========================================================================

    async def send_asgi(self, send: Callable[[dict], Awaitable[None]], *, head: bool = False) -> None:
        self._headers.setdefault("content-length", str(len(self.body)))
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(),
        })
        await send({
            "type": "http.response.body",
            "body": b"" if head else self.body,
        })

    def __repr__(self) -> str:
        return f"<Response {self.status}>"
