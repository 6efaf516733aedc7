"""
Cairn - List registry.

Holds the declared lists, auth strategies and session manager of one
project, and owns the item store they share.

    >>> cairn = Cairn("Test Project", SQLiteItemStore())
    >>> cairn.create_list("PostCategory", {"name": Text(), "slug": Text()})
    >>> strategy = cairn.create_auth_strategy("User")
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from .access import PolicySpec
from .auth.strategy import PasswordAuthStrategy
from .faults import ListConfigFault, ValidationFault
from .fields import Field, Relationship
from .lists import LabelResolver, ListSchema
from .response import CookieSigner
from .sessions import CookieTransport, SessionManager
from .store import ItemStore

logger = logging.getLogger("cairn.core")


def _is_where_ref(value: Any) -> bool:
    return isinstance(value, Mapping) and set(value) == {"where"}


class Cairn:
    """
    Project registry.

    Args:
        name: Project name, shown in the admin UI
        store: Item store shared by every list
        cookie_secret: Secret for signing the session cookie
        cookie_secure: Mark the session cookie Secure
        session_ttl: Session lifetime
    """

    def __init__(
        self,
        name: str,
        store: ItemStore,
        *,
        cookie_secret: str = "qwerty",
        cookie_secure: bool = False,
        session_ttl: timedelta = timedelta(days=30),
    ):
        self.name = name
        self.store = store
        self.lists: Dict[str, ListSchema] = {}
        self.auth: Dict[str, Dict[str, PasswordAuthStrategy]] = {}
        self.session = SessionManager(
            self,
            CookieTransport(CookieSigner(cookie_secret), secure=cookie_secure),
            ttl=session_ttl,
        )

    # ========================================================================
    # Declaration
    # ========================================================================

    def create_list(
        self,
        key: str,
        fields: Dict[str, Field],
        *,
        access: PolicySpec = None,
        label_resolver: Optional[LabelResolver] = None,
    ) -> ListSchema:
        if key in self.lists:
            raise ListConfigFault(key, "list is already declared")
        schema = ListSchema(key, fields, access=access, label_resolver=label_resolver)
        schema.bind(self)
        self.lists[key] = schema
        logger.debug("Declared list %s (%d fields)", key, len(fields))
        return schema

    def create_auth_strategy(
        self,
        list_key: str,
        identity_field: str = "email",
        secret_field: str = "password",
    ) -> PasswordAuthStrategy:
        if list_key not in self.lists:
            raise ListConfigFault(list_key, "auth strategy targets an undeclared list")
        strategy = PasswordAuthStrategy(self, list_key, identity_field, secret_field)
        self.auth.setdefault(list_key, {})[strategy.auth_type] = strategy
        return strategy

    def check_relationships(self) -> None:
        """
        Raises:
            ListConfigFault: A relationship references an undeclared list
        """
        for schema in self.lists.values():
            for name, field in schema.fields.items():
                if isinstance(field, Relationship) and field.ref not in self.lists:
                    raise ListConfigFault(schema.key, f"'{name}' references unknown list '{field.ref}'")

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def connect(self) -> None:
        self.check_relationships()
        await self.store.connect()
        logger.info("%s connected (%d lists)", self.name, len(self.lists))

    async def disconnect(self) -> None:
        await self.store.disconnect()

    # ========================================================================
    # Seeding
    # ========================================================================

    async def drop_database(self) -> None:
        await self.store.drop_all()

    async def create_items(self, data: Mapping[str, List[Dict[str, Any]]]) -> Dict[str, List[Dict[str, Any]]]:
        """
        Insert items for several lists without access control.

        Relationship values may be ``{"where": {field: value}}`` (or a list
        of those for many-relationships). They are resolved once every item
        has been inserted, so items may reference lists that come later in
        ``data``.
        """
        created: Dict[str, List[Dict[str, Any]]] = {}
        deferred: List[tuple] = []

        for list_key, items in data.items():
            schema = self._schema(list_key)
            created[list_key] = []
            for raw in items:
                plain = {}
                refs = {}
                for name, value in raw.items():
                    if isinstance(schema.fields.get(name), Relationship) and self._has_where_refs(value):
                        refs[name] = value
                    else:
                        plain[name] = value
                item = await schema.insert_raw(plain)
                created[list_key].append(item)
                if refs:
                    deferred.append((schema, item, refs))

        for schema, item, refs in deferred:
            changes = {}
            for name, value in refs.items():
                changes[name] = await self._resolve_refs(schema, name, value)
            item.update(await self.store.update(schema.key, item["id"], changes))

        logger.info(
            "Created items: %s",
            ", ".join(f"{key}={len(items)}" for key, items in created.items()),
        )
        return created

    @staticmethod
    def _has_where_refs(value: Any) -> bool:
        if isinstance(value, list):
            return any(_is_where_ref(v) for v in value)
        return _is_where_ref(value)

    async def _resolve_refs(self, schema: ListSchema, name: str, value: Any) -> Any:
        field: Relationship = schema.fields[name]
        target = self._schema(field.ref)

        async def resolve_one(ref: Any) -> str:
            if not _is_where_ref(ref):
                return ref
            matches = await target.find_raw(ref["where"])
            if not matches:
                raise ValidationFault(
                    f"{schema.key}.{name}: no {field.ref} item matches {ref['where']!r}",
                    field=name,
                )
            return matches[0]["id"]

        if field.many:
            ids = [await resolve_one(ref) for ref in value]
            return await field.prepare(ids)
        return await resolve_one(value)

    async def bootstrap(self, initial_data: Mapping[str, List[Dict[str, Any]]], guard_list: str = "User") -> bool:
        """
        Seed an empty project.

        Drops the store and inserts ``initial_data`` only when ``guard_list``
        holds no items. Returns True when seeding happened.
        """
        existing = await self._schema(guard_list).count()
        if existing:
            logger.info("Found %d %s item(s); skipping seed", existing, guard_list)
            return False

        logger.warning("No %s items found; dropping store and seeding initial data", guard_list)
        await self.drop_database()
        await self.create_items(initial_data)
        return True

    def _schema(self, list_key: str) -> ListSchema:
        try:
            return self.lists[list_key]
        except KeyError:
            raise ListConfigFault(list_key, "list is not declared") from None

    def __repr__(self) -> str:
        return f"Cairn(name={self.name!r}, lists={list(self.lists)})"
