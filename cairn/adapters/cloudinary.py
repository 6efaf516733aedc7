"""
Cloudinary adapter - image uploads via the Cloudinary upload API.

Uploads are signed requests: the signature is the SHA-1 hex digest of the
alphabetically sorted ``key=value`` parameters joined with ``&``, followed
by the API secret.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..faults import AdapterConfigFault, FileStorageFault

logger = logging.getLogger("cairn.adapters.cloudinary")

_CLOUDINARY_API_BASE = "https://api.cloudinary.com"


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    payload = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, ""))
    return hashlib.sha1(f"{payload}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryAdapter:
    """
    Cloudinary image adapter.

    Raises:
        AdapterConfigFault: at construction when a credential is missing
    """

    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
        folder: Optional[str] = None,
        *,
        api_base_url: str = _CLOUDINARY_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        missing = [
            name for name, value in (
                ("cloud_name", cloud_name),
                ("api_key", api_key),
                ("api_secret", api_secret),
            ) if not value
        ]
        if missing:
            raise AdapterConfigFault(
                message=f"Cloudinary adapter requires {', '.join(missing)}",
                metadata={"missing": missing},
            )

        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.api_base_url}/v1_1/{self.cloud_name}",
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            headers={"User-Agent": "cairn/1.0"},
        )

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {key: value for key, value in params.items() if value not in (None, "")}
        params["timestamp"] = str(int(time.time()))
        params["signature"] = sign_params(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    async def _post(self, endpoint: str, data: Dict[str, Any], files: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.post(endpoint, data=data, files=files)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Cloudinary %s failed: HTTP %s", endpoint, e.response.status_code)
            raise FileStorageFault("cloudinary", f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Cloudinary %s failed: %s", endpoint, e)
            raise FileStorageFault("cloudinary", str(e)) from e

    async def save(self, filename: str, content: bytes, mimetype: Optional[str] = None) -> Dict[str, Any]:
        data = self._signed({"folder": self.folder})
        files = {"file": (filename, content, mimetype or "application/octet-stream")}
        result = await self._post("/image/upload", data, files)

        logger.info("Uploaded %s to Cloudinary as %s", filename, result.get("public_id"))
        return {
            "id": result["public_id"],
            "publicId": result["public_id"],
            "version": result.get("version"),
            "format": result.get("format"),
            "width": result.get("width"),
            "height": result.get("height"),
            "secureUrl": result.get("secure_url"),
            "originalFilename": filename,
            "mimetype": mimetype,
        }

    def public_url(self, stored: Dict[str, Any]) -> Optional[str]:
        if not stored:
            return None
        return stored.get("secureUrl")

    async def delete(self, stored: Dict[str, Any]) -> None:
        public_id = stored.get("publicId") if stored else None
        if not public_id:
            return
        await self._post("/image/destroy", self._signed({"public_id": public_id}))
