"""
CairnAccess - Access policy evaluation.

Every list operation is authorized by evaluating a policy with the
operation kind, the target item and the caller's authentication context.

Policy forms accepted on lists and fields:
- ``True`` / ``False``: static decision for every operation
- a callable ``(AccessArgs) -> bool``: applied to every operation
- an :class:`OwnerPolicy`: ownership predicate applied to every operation
- a mapping ``{"create": ..., "read": ..., "update": ..., "delete": ...}``
  whose values are any of the above

Defaults differ by level:
- list with no access declared: every operation is public
- list mapping missing an operation: that operation is public
- field with no access declared: the field follows its list
- field mapping missing an operation: that operation is denied
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, TYPE_CHECKING, Union

from .faults import ListConfigFault

if TYPE_CHECKING:
    from .lists import ListSchema

logger = logging.getLogger("cairn.access")


class Operation(str, Enum):
    """Operation kinds subject to access control."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# ============================================================================
# Authentication Context
# ============================================================================

@dataclass(frozen=True)
class Authentication:
    """
    Who is calling: the list the identity authenticated against and the
    authenticated item itself. Both are ``None`` for anonymous callers.
    """

    list_key: Optional[str] = None
    item: Optional[Mapping[str, Any]] = None

    @classmethod
    def anonymous(cls) -> "Authentication":
        return cls()

    @property
    def item_id(self) -> Optional[str]:
        if self.item is None:
            return None
        return self.item.get("id")

    @property
    def is_authenticated(self) -> bool:
        return self.list_key is not None and self.item is not None


@dataclass(frozen=True)
class AccessArgs:
    """Arguments handed to every access predicate."""

    operation: Operation
    item: Optional[Mapping[str, Any]]
    authentication: Authentication
    list_key: str


Predicate = Callable[[AccessArgs], bool]
PolicySpec = Union[bool, Predicate, "OwnerPolicy", Mapping[str, Any], None]


# ============================================================================
# OwnerPolicy - Explicit ownership predicate
# ============================================================================

def _reference_id(value: Any) -> Optional[str]:
    """Normalize a stored reference (id string or embedded item) to its id."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get("id")
    return str(value)


class OwnerPolicy:
    """
    Grants access when the caller authenticated against ``list_key`` and
    the caller's item id equals the id held in ``owner_field`` of the target
    item.

    ``owner_field="id"`` makes the item its own owner (a user editing
    themselves).

    Example:
        >>> notes_policy = OwnerPolicy("User", owner_field="user")
        >>> notes_policy(AccessArgs(Operation.READ, {"id": "n1", "user": "u1"},
        ...                         Authentication("User", {"id": "u1"}), "Note"))
        True
    """

    def __init__(self, list_key: str, owner_field: str = "id"):
        self.list_key = list_key
        self.owner_field = owner_field

    def __call__(self, args: AccessArgs) -> bool:
        auth = args.authentication
        if auth.list_key != self.list_key or auth.item is None:
            return False
        if args.item is None:
            return False
        owner_id = _reference_id(args.item.get(self.owner_field))
        return owner_id is not None and owner_id == auth.item_id

    def validate_against(self, schema: "ListSchema") -> None:
        """
        Reject a policy whose owner field is not declared on the list.

        Raises:
            ListConfigFault: owner field missing from the list's fields
        """
        if self.owner_field == "id":
            return
        if self.owner_field not in schema.fields:
            raise ListConfigFault(
                schema.key,
                f"access policy checks ownership through '{self.owner_field}', "
                f"which is not a field of this list "
                f"(fields: {', '.join(schema.fields)})",
            )

    def __repr__(self) -> str:
        return f"OwnerPolicy(list_key={self.list_key!r}, owner_field={self.owner_field!r})"


# ============================================================================
# AccessControl - resolved per-operation policy table
# ============================================================================

class AccessControl:
    """
    Per-operation policy table resolved from a declaration.

    Use :meth:`for_list` or :meth:`for_field`; they differ only in how
    missing operations are filled in.
    """

    def __init__(self, table: dict[Operation, Union[bool, Predicate]], configured: bool):
        self._table = table
        self.configured = configured

    @classmethod
    def for_list(cls, spec: PolicySpec = None) -> "AccessControl":
        return cls._resolve(spec, missing=True)

    @classmethod
    def for_field(cls, spec: PolicySpec = None) -> "AccessControl":
        return cls._resolve(spec, missing=False)

    @classmethod
    def _resolve(cls, spec: PolicySpec, missing: bool) -> "AccessControl":
        if spec is None:
            return cls({op: True for op in Operation}, configured=False)

        if isinstance(spec, Mapping):
            unknown = set(spec) - {op.value for op in Operation}
            if unknown:
                raise ValueError(f"Unknown access operations: {sorted(unknown)}")
            table = {}
            for op in Operation:
                value = spec.get(op.value, missing)
                table[op] = cls._check_value(value)
            return cls(table, configured=True)

        value = cls._check_value(spec)
        return cls({op: value for op in Operation}, configured=True)

    @staticmethod
    def _check_value(value: Any) -> Union[bool, Predicate]:
        if isinstance(value, bool) or callable(value):
            return value
        raise TypeError(f"Access policy must be a bool or callable, got {type(value).__name__}")

    def policies(self) -> list[Any]:
        return list(self._table.values())

    def is_static(self, operation: Operation) -> Optional[bool]:
        """Return the static decision for an operation, or None if dynamic."""
        value = self._table[operation]
        return value if isinstance(value, bool) else None

    def check(
        self,
        operation: Operation,
        item: Optional[Mapping[str, Any]],
        authentication: Authentication,
        list_key: str,
    ) -> bool:
        """
        Evaluate the policy for one operation.

        A predicate that raises is treated as a denial and logged; it never
        turns into a server error.
        """
        policy = self._table[operation]
        if isinstance(policy, bool):
            return policy

        args = AccessArgs(
            operation=operation,
            item=item,
            authentication=authentication,
            list_key=list_key,
        )
        try:
            return bool(policy(args))
        except (KeyError, AttributeError, TypeError) as exc:
            logger.warning(
                "Access predicate for %s.%s raised %s; denying",
                list_key, operation.value, exc,
            )
            return False
