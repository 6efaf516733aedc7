"""
CairnLists - List schemas.

A list is a named collection of fields plus a label rule and an access
policy. Item operations run through the list so every read and write is
authorized against the caller's :class:`~cairn.access.Authentication`.

Denial rules:
- an operation on an existing item that the list policy denies raises
  ItemNotFoundFault, the same fault a missing item raises
- a denied create raises AccessDeniedFault
- writing a field whose own policy denies the operation raises
  AccessDeniedFault on create and ItemNotFoundFault on update
- writing a field no caller can write raises AccessDeniedFault before the
  item is loaded
- fields the caller may not read are left out of the output

Stored files are removed through their adapter once the item that held
them is deleted or the value is replaced. A failed removal is logged and
does not fail the operation, which has already been committed.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, TYPE_CHECKING

from .access import AccessControl, Authentication, Operation, OwnerPolicy, PolicySpec
from .faults import (
    AccessDeniedFault,
    FileStorageFault,
    ItemNotFoundFault,
    ListConfigFault,
    ValidationFault,
)
from .fields import Field, FieldKind, Relationship

if TYPE_CHECKING:
    from .core import Cairn

logger = logging.getLogger("cairn.lists")

LabelResolver = Callable[[Mapping[str, Any]], str]

_RESERVED = {"id", "_label_"}


class ListSchema:
    """
    Declarative list definition.

    Example:
        >>> cairn.create_list("PostCategory", {
        ...     "name": Text(),
        ...     "slug": Text(),
        ... }, access={"create": True, "read": True, "update": False, "delete": False})
    """

    def __init__(
        self,
        key: str,
        fields: Dict[str, Field],
        *,
        access: PolicySpec = None,
        label_resolver: Optional[LabelResolver] = None,
    ):
        self.key = key
        self.fields: Dict[str, Field] = dict(fields)
        self.access = AccessControl.for_list(access)
        self.label_resolver = label_resolver
        self._cairn: Optional["Cairn"] = None

        for name, field in self.fields.items():
            if name in _RESERVED:
                raise ListConfigFault(key, f"'{name}' is a reserved field name")
            field.bind(name, key)

        self._validate_owner_policies()

    def _validate_owner_policies(self) -> None:
        policies = list(self.access.policies())
        for field in self.fields.values():
            policies.extend(field.access.policies())
        for policy in policies:
            if isinstance(policy, OwnerPolicy):
                policy.validate_against(self)

    def bind(self, cairn: "Cairn") -> None:
        self._cairn = cairn

    @property
    def cairn(self) -> "Cairn":
        if self._cairn is None:
            raise ListConfigFault(self.key, "list is not registered with a Cairn instance")
        return self._cairn

    @property
    def store(self):
        return self.cairn.store

    # ========================================================================
    # Labels & output
    # ========================================================================

    def label_for(self, item: Mapping[str, Any]) -> str:
        if self.label_resolver is not None:
            return self.label_resolver(item)
        if item.get("name"):
            return str(item["name"])
        return str(item.get("id", ""))

    def _can_read_field(self, field: Field, item: Mapping[str, Any], auth: Authentication) -> bool:
        if not field.capabilities.readable:
            return False
        if not field.access.configured:
            return True
        return field.access.check(Operation.READ, item, auth, self.key)

    def to_output(self, item: Mapping[str, Any], authentication: Authentication) -> Dict[str, Any]:
        """
        Project a stored item to what this caller may see.

        The label is resolved from the projection, so a label rule never
        reveals a field the caller cannot read.
        """
        visible: Dict[str, Any] = {"id": item["id"]}
        for name, field in self.fields.items():
            if self._can_read_field(field, item, authentication):
                visible[name] = field.serialize(item.get(name))
        return {"id": item["id"], "_label_": self.label_for(visible), **visible}

    # ========================================================================
    # Input handling
    # ========================================================================

    def _check_known(self, data: Mapping[str, Any]) -> None:
        unknown = [name for name in data if name not in self.fields]
        if unknown:
            raise ValidationFault(f"{self.key}: unknown field(s) {', '.join(sorted(unknown))}")
        for name in data:
            if not self.fields[name].capabilities.writable:
                raise AccessDeniedFault()

    def _check_field_access(
        self,
        operation: Operation,
        data: Mapping[str, Any],
        item: Optional[Mapping[str, Any]],
        auth: Authentication,
    ) -> None:
        for name in data:
            field = self.fields[name]
            if field.access.configured and not field.access.check(operation, item, auth, self.key):
                logger.info("Field access denied: %s.%s %s", self.key, name, operation.value)
                if operation is Operation.CREATE:
                    raise AccessDeniedFault()
                raise ItemNotFoundFault()

    async def _check_references(self, data: Mapping[str, Any]) -> None:
        for name, value in data.items():
            field = self.fields[name]
            if not isinstance(field, Relationship):
                continue
            for ref_id in field.ids(value):
                if await self.store.get(field.ref, ref_id) is None:
                    raise ValidationFault(
                        f"{self.key}.{name}: no {field.ref} item with id {ref_id!r}",
                        field=name,
                    )

    async def _prepare(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        for name, value in data.items():
            self.fields[name].validate(value)
        await self._check_references(data)
        prepared = {}
        for name, value in data.items():
            prepared[name] = await self.fields[name].prepare(value)
        return prepared

    def _with_defaults(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        full = dict(data)
        for name, field in self.fields.items():
            if name not in full and field.default is not None:
                full[name] = field.default
        return full

    # ========================================================================
    # Access-checked operations
    # ========================================================================

    async def create_item(self, data: Mapping[str, Any], authentication: Authentication) -> Dict[str, Any]:
        self._check_known(data)
        proposed = self._with_defaults(data)

        if not self.access.check(Operation.CREATE, proposed, authentication, self.key):
            logger.info("Create denied on %s", self.key)
            raise AccessDeniedFault()
        self._check_field_access(Operation.CREATE, data, proposed, authentication)

        prepared = await self._prepare(proposed)
        item = await self.store.insert(self.key, prepared)
        logger.debug("Created %s %s", self.key, item["id"])
        return self.to_output(item, authentication)

    async def _load_for(self, operation: Operation, item_id: str, auth: Authentication) -> Dict[str, Any]:
        item = await self.store.get(self.key, item_id)
        if item is None or not self.access.check(operation, item, auth, self.key):
            raise ItemNotFoundFault()
        return item

    async def get_item(self, item_id: str, authentication: Authentication) -> Dict[str, Any]:
        item = await self._load_for(Operation.READ, item_id, authentication)
        return self.to_output(item, authentication)

    def _split_where(self, where: Mapping[str, Any]) -> tuple[Dict[str, Any], Dict[str, Any]]:
        equals: Dict[str, Any] = {}
        contains: Dict[str, Any] = {}
        for name, value in where.items():
            if name == "id":
                equals["id"] = value
                continue
            field = self.fields.get(name)
            if field is None:
                raise ValidationFault(f"{self.key}: unknown field '{name}' in filter", field=name)
            if not field.capabilities.queryable:
                raise ValidationFault(f"{self.key}.{name} cannot be used in a filter", field=name)
            if isinstance(field, Relationship) and field.many:
                contains[name] = value
            else:
                equals[name] = value
        return equals, contains

    async def list_items(
        self,
        authentication: Authentication,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        where = dict(where or {})

        # Filtering on a field the caller cannot read would leak its values
        for name in where:
            field = self.fields.get(name)
            if field is not None and field.access.configured and field.access.is_static(Operation.READ) is False:
                raise ValidationFault(f"{self.key}.{name} cannot be used in a filter", field=name)

        if self.access.is_static(Operation.READ) is False:
            return []

        equals, contains = self._split_where(where)
        items = await self.store.find(self.key, where=equals, contains=contains)
        return [
            self.to_output(item, authentication)
            for item in items
            if self.access.check(Operation.READ, item, authentication, self.key)
        ]

    async def update_item(
        self,
        item_id: str,
        data: Mapping[str, Any],
        authentication: Authentication,
    ) -> Dict[str, Any]:
        self._check_known(data)
        item = await self._load_for(Operation.UPDATE, item_id, authentication)
        self._check_field_access(Operation.UPDATE, data, item, authentication)

        prepared = await self._prepare(data)
        updated = await self.store.update(self.key, item_id, prepared)
        if updated is None:
            raise ItemNotFoundFault()

        replaced = [name for name in prepared if item.get(name) and item.get(name) != updated.get(name)]
        await self._discard_files(item, replaced)
        return self.to_output(updated, authentication)

    async def delete_item(self, item_id: str, authentication: Authentication) -> Dict[str, Any]:
        item = await self._load_for(Operation.DELETE, item_id, authentication)
        output = self.to_output(item, authentication)
        await self.store.delete(self.key, item_id)
        await self._discard_files(item, list(self.fields))
        return output

    async def _discard_files(self, item: Mapping[str, Any], names: List[str]) -> None:
        for name in names:
            field = self.fields[name]
            if field.kind not in (FieldKind.FILE, FieldKind.CLOUDINARY_IMAGE) or not item.get(name):
                continue
            try:
                await field.adapter.delete(item[name])
            except FileStorageFault:
                logger.exception("Could not remove stored file for %s %s.%s", self.key, item["id"], name)

    # ========================================================================
    # System-level helpers (no access control)
    # ========================================================================

    async def count(self) -> int:
        return await self.store.count(self.key)

    async def find_raw(self, where: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        equals, contains = self._split_where(where or {})
        return await self.store.find(self.key, where=equals, contains=contains)

    async def insert_raw(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate, prepare and store an item without checking access."""
        self._check_known(data)
        prepared = await self._prepare(self._with_defaults(data))
        return await self.store.insert(self.key, prepared)

    def __repr__(self) -> str:
        return f"ListSchema(key={self.key!r}, fields={list(self.fields)})"
