"""
Cairn Store - Item store interface.

Stores persist items as JSON documents keyed by (list key, item id). They do
NOT enforce access control; that happens in ListSchema.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Protocol

from ..faults import ValidationFault

# Field names are interpolated into JSON paths; restrict them
_FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_field_name(name: str) -> str:
    if not _FIELD_NAME_RE.match(name):
        raise ValidationFault(f"Invalid field name: {name!r}", field=name)
    return name


class ItemStore(Protocol):
    """
    Abstract item storage interface.

    All methods are async. ``where`` matches stored values by equality;
    ``contains`` matches when a stored list holds the given value.
    """

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def insert(self, list_key: str, item: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def get(self, list_key: str, item_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def find(
        self,
        list_key: str,
        where: Optional[Dict[str, Any]] = None,
        contains: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        ...

    async def update(self, list_key: str, item_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    async def delete(self, list_key: str, item_id: str) -> bool:
        ...

    async def count(self, list_key: str) -> int:
        ...

    async def drop_all(self) -> None:
        ...
