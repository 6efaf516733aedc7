"""
CairnFields - Field catalog.

Field kinds form a closed enumeration; what each kind may do is read from
the ``CAPABILITIES`` table rather than discovered from the field class.

    >>> from cairn.fields import Text, Select
    >>> Select(options=["draft", "published"], default="draft").values
    ['draft', 'published']
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence, Union

from .access import AccessControl, PolicySpec
from .auth.hashing import PasswordHasher, get_password_hasher
from .faults import ValidationFault


class FieldKind(str, Enum):
    TEXT = "text"
    PASSWORD = "password"
    SELECT = "select"
    RELATIONSHIP = "relationship"
    FILE = "file"
    CLOUDINARY_IMAGE = "cloudinary_image"


@dataclass(frozen=True)
class FieldCapabilities:
    readable: bool
    writable: bool
    queryable: bool


CAPABILITIES: dict[FieldKind, FieldCapabilities] = {
    FieldKind.TEXT: FieldCapabilities(readable=True, writable=True, queryable=True),
    FieldKind.PASSWORD: FieldCapabilities(readable=False, writable=True, queryable=False),
    FieldKind.SELECT: FieldCapabilities(readable=True, writable=True, queryable=True),
    FieldKind.RELATIONSHIP: FieldCapabilities(readable=True, writable=True, queryable=True),
    FieldKind.FILE: FieldCapabilities(readable=True, writable=True, queryable=False),
    FieldKind.CLOUDINARY_IMAGE: FieldCapabilities(readable=True, writable=True, queryable=False),
}


class FileAdapter(Protocol):
    """Storage backend used by File and CloudinaryImage fields."""

    async def save(self, filename: str, content: bytes, mimetype: Optional[str] = None) -> dict[str, Any]:
        ...

    def public_url(self, stored: dict[str, Any]) -> Optional[str]:
        ...

    async def delete(self, stored: dict[str, Any]) -> None:
        ...


# ============================================================================
# Field base
# ============================================================================

class Field:
    """
    Base field declaration.

    Attributes:
        kind: Field kind (fixed per subclass)
        access: Resolved field-level access control
        default: Value stored on create when the input omits the field
        name: Field name, set when the owning list is registered
    """

    kind: FieldKind

    def __init__(self, *, access: PolicySpec = None, default: Any = None, label: Optional[str] = None):
        self.access = AccessControl.for_field(access)
        self.default = default
        self.label = label
        self.name: Optional[str] = None
        self.list_key: Optional[str] = None

    def bind(self, name: str, list_key: str) -> None:
        self.name = name
        self.list_key = list_key
        if self.label is None:
            self.label = name[:1].upper() + name[1:]

    @property
    def capabilities(self) -> FieldCapabilities:
        return CAPABILITIES[self.kind]

    def _fail(self, message: str) -> ValidationFault:
        return ValidationFault(f"{self.list_key}.{self.name}: {message}", field=self.name)

    def validate(self, value: Any) -> None:
        """Raise ValidationFault if ``value`` is not acceptable input."""

    async def prepare(self, value: Any) -> Any:
        """Convert validated input to its stored form."""
        return value

    def serialize(self, stored: Any) -> Any:
        """Convert stored form to output form."""
        return stored

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class Text(Field):
    kind = FieldKind.TEXT

    def validate(self, value: Any) -> None:
        if value is not None and not isinstance(value, str):
            raise self._fail("expected a string")


class Password(Field):
    """
    One-way hashed secret. Never emitted on read, whatever the access
    settings say.
    """

    kind = FieldKind.PASSWORD

    def __init__(self, *, min_length: int = 8, hasher: Optional[PasswordHasher] = None, **kwargs):
        super().__init__(**kwargs)
        self.min_length = min_length
        self._hasher = hasher

    @property
    def hasher(self) -> PasswordHasher:
        return self._hasher or get_password_hasher()

    def validate(self, value: Any) -> None:
        if value is None:
            return
        if not isinstance(value, str):
            raise self._fail("expected a string")
        if len(value) < self.min_length:
            raise self._fail(f"must be at least {self.min_length} characters")

    async def prepare(self, value: Any) -> Any:
        if value is None:
            return None
        return self.hasher.hash(value)

    def serialize(self, stored: Any) -> Any:
        return None


class Select(Field):
    kind = FieldKind.SELECT

    def __init__(self, options: Sequence[Union[str, dict[str, str]]], **kwargs):
        super().__init__(**kwargs)
        self.options: list[dict[str, str]] = []
        for option in options:
            if isinstance(option, str):
                self.options.append({"label": option[:1].upper() + option[1:], "value": option})
            else:
                self.options.append({"label": option["label"], "value": option["value"]})
        if self.default is not None and self.default not in self.values:
            raise ValueError(f"Default {self.default!r} is not one of the options {self.values}")

    @property
    def values(self) -> list[str]:
        return [option["value"] for option in self.options]

    def validate(self, value: Any) -> None:
        if value is not None and value not in self.values:
            raise self._fail(f"{value!r} is not one of {', '.join(self.values)}")


class Relationship(Field):
    """Reference to items of another list, stored as an id (or list of ids)."""

    kind = FieldKind.RELATIONSHIP

    def __init__(self, ref: str, many: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.ref = ref
        self.many = many

    def validate(self, value: Any) -> None:
        if value is None:
            return
        if self.many:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise self._fail("expected a list of item ids")
        elif not isinstance(value, str):
            raise self._fail("expected an item id")

    def ids(self, value: Any) -> list[str]:
        if value is None:
            return []
        return list(value) if self.many else [value]

    async def prepare(self, value: Any) -> Any:
        if self.many and value is not None:
            # de-duplicate, keep order
            return list(dict.fromkeys(value))
        return value


class File(Field):
    """
    Uploaded file. Input is ``{"filename": ..., "content": ..., "mimetype":
    optional}`` where content is base64 text from a JSON body or raw bytes
    from a multipart part; the adapter decides where the bytes live.
    """

    kind = FieldKind.FILE

    def __init__(self, adapter: FileAdapter, **kwargs):
        super().__init__(**kwargs)
        self.adapter = adapter

    def validate(self, value: Any) -> None:
        if value is None:
            return
        if not isinstance(value, dict):
            raise self._fail("expected an upload object")
        if not isinstance(value.get("filename"), str) or not value["filename"]:
            raise self._fail("upload requires a filename")
        if not isinstance(value.get("content"), (str, bytes)):
            raise self._fail("upload requires content")

    def _decode(self, value: dict[str, Any]) -> bytes:
        if isinstance(value["content"], bytes):
            return value["content"]
        try:
            return base64.b64decode(value["content"], validate=True)
        except (binascii.Error, ValueError):
            raise self._fail("content is not valid base64") from None

    async def prepare(self, value: Any) -> Any:
        if value is None:
            return None
        content = self._decode(value)
        return await self.adapter.save(value["filename"], content, value.get("mimetype"))

    def serialize(self, stored: Any) -> Any:
        if stored is None:
            return None
        return {**stored, "publicUrl": self.adapter.public_url(stored)}


class CloudinaryImage(File):
    kind = FieldKind.CLOUDINARY_IMAGE
