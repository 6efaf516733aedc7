"""
Local file adapter - stores uploads on disk under a static directory.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from ..faults import FileStorageFault

logger = logging.getLogger("cairn.adapters.local")


def sanitize_filename(filename: str) -> str:
    """Strip path components and characters unsafe in file names and URLs."""
    filename = os.path.basename(filename.replace("\\", "/"))
    filename = filename.replace("\x00", "")
    for char in ["<", ">", ":", '"', "|", "?", "*", "#", "%", " "]:
        filename = filename.replace(char, "_")

    if len(filename) > 200:
        name, ext = os.path.splitext(filename)
        filename = name[:190] + ext

    return filename or "unnamed"


class LocalFileAdapter:
    """
    Writes each upload to ``{directory}/{id}-{filename}`` and serves it
    from ``{route}/{id}-{filename}``.

    Example:
        >>> adapter = LocalFileAdapter("./static/avatars", "/static/avatars")
        >>> stored = await adapter.save("me.png", b"...", "image/png")
        >>> adapter.public_url(stored)
        '/static/avatars/3f2c...-me.png'
    """

    def __init__(self, directory: str, route: str):
        self.directory = Path(directory)
        self.route = "/" + route.strip("/")

    async def save(self, filename: str, content: bytes, mimetype: Optional[str] = None) -> Dict[str, Any]:
        file_id = uuid.uuid4().hex
        original = sanitize_filename(filename)
        stored_name = f"{file_id}-{original}"

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            (self.directory / stored_name).write_bytes(content)
        except OSError as e:
            raise FileStorageFault("local", str(e)) from e

        logger.debug("Stored %s (%d bytes)", stored_name, len(content))
        return {
            "id": file_id,
            "filename": stored_name,
            "originalFilename": filename,
            "mimetype": mimetype,
            "size": len(content),
        }

    def public_url(self, stored: Dict[str, Any]) -> Optional[str]:
        if not stored or not stored.get("filename"):
            return None
        return f"{self.route}/{stored['filename']}"

    async def delete(self, stored: Dict[str, Any]) -> None:
        name = stored.get("filename") if stored else None
        if not name:
            return
        path = self.directory / os.path.basename(name)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise FileStorageFault("local", str(e)) from e
