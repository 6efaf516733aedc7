"""
CairnFaults - Structured fault types.

Faults are typed exceptions carrying a stable code, a domain and a
severity, so that the server can map them to HTTP responses and the logs
can group them.

Defines:
- Fault base class
- FaultDomain (explicit fault domains)
- Severity levels
- Concrete faults raised by lists, access control, stores and adapters
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when the fault reaches the server.
    """
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.SCHEMA = FaultDomain("schema", "List and field declaration errors")
FaultDomain.ACCESS = FaultDomain("access", "Access control decisions")
FaultDomain.VALIDATION = FaultDomain("validation", "Invalid item input")
FaultDomain.STORE = FaultDomain("store", "Item store I/O")
FaultDomain.SECURITY = FaultDomain("security", "Sessions and authentication")
FaultDomain.ROUTING = FaultDomain("routing", "Route matching errors")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: Severity.FATAL,
    FaultDomain.SCHEMA: Severity.FATAL,
    FaultDomain.ACCESS: Severity.WARN,
    FaultDomain.VALIDATION: Severity.WARN,
    FaultDomain.STORE: Severity.ERROR,
    FaultDomain.SECURITY: Severity.WARN,
    FaultDomain.ROUTING: Severity.INFO,
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "NOT_FOUND")
        message: Human-readable summary
        severity: Fault severity
        domain: Fault domain
        public: Whether the message is safe to expose to clients
        metadata: Additional context data (never sent to clients)

    Subclasses usually set ``code``, ``message`` and ``domain`` as class
    attributes and call ``super().__init__()`` with no arguments.
    """

    code: str | None = None
    message: str | None = None
    domain: FaultDomain | None = None
    severity: Severity | None = None
    public: bool = False

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        public: bool | None = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else type(self).code
        self.message = message if message is not None else type(self).message
        self.domain = domain if domain is not None else type(self).domain

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        self.severity = severity or type(self).severity or DOMAIN_DEFAULTS.get(self.domain, Severity.ERROR)
        self.public = public if public is not None else type(self).public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value}, public={self.public})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "public": self.public,
            "metadata": self.metadata,
        }


# ============================================================================
# Configuration & Schema Faults
# ============================================================================

class ConfigFault(Fault):
    """Invalid configuration value."""

    code = "CONFIG_INVALID"
    message = "Invalid configuration"
    domain = FaultDomain.CONFIG

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(message=f"Invalid configuration for '{key}': {reason}", **kwargs)
        self.metadata["key"] = key


class ListConfigFault(Fault):
    """A list or field declaration is inconsistent."""

    code = "LIST_CONFIG_INVALID"
    message = "Invalid list declaration"
    domain = FaultDomain.SCHEMA

    def __init__(self, list_key: str, reason: str, **kwargs):
        super().__init__(message=f"List '{list_key}': {reason}", **kwargs)
        self.metadata["list_key"] = list_key


class AdapterConfigFault(Fault):
    """A file adapter could not be built from the given settings."""

    code = "ADAPTER_CONFIG_INVALID"
    message = "File adapter is not configured"
    domain = FaultDomain.CONFIG
    severity = Severity.WARN


# ============================================================================
# Request-time Faults
# ============================================================================

class ValidationFault(Fault):
    """Item input does not satisfy the list's fields."""

    code = "VALIDATION_FAILED"
    message = "Invalid input"
    domain = FaultDomain.VALIDATION
    public = True

    def __init__(self, message: str | None = None, *, field: str | None = None, **kwargs):
        super().__init__(message=message, **kwargs)
        self.field = field
        if field:
            self.metadata["field"] = field


class AccessDeniedFault(Fault):
    """The caller may not perform this operation."""

    code = "ACCESS_DENIED"
    message = "You do not have access to this resource"
    domain = FaultDomain.ACCESS
    public = True


class ItemNotFoundFault(Fault):
    """
    Item does not exist, or the caller may not see it.

    Both cases raise this same fault with the same message so responses
    never reveal whether a hidden item exists.
    """

    code = "NOT_FOUND"
    message = "Item not found"
    domain = FaultDomain.ACCESS
    public = True


class RouteNotFoundFault(Fault):
    code = "NOT_FOUND"
    message = "Not Found"
    domain = FaultDomain.ROUTING
    public = True


class MethodNotAllowedFault(Fault):
    code = "METHOD_NOT_ALLOWED"
    message = "Method Not Allowed"
    domain = FaultDomain.ROUTING
    public = True

    def __init__(self, allowed: list[str] | None = None, **kwargs):
        super().__init__(**kwargs)
        self.allowed = sorted(allowed or [])


class BadRequestFault(Fault):
    """Malformed request body or parameters."""

    code = "BAD_REQUEST"
    message = "Bad Request"
    domain = FaultDomain.VALIDATION
    public = True


class StoreUnavailableFault(Fault):
    """Item store is not connected or failed an operation."""

    code = "STORE_UNAVAILABLE"
    message = "Item store unavailable"
    domain = FaultDomain.STORE

    def __init__(self, cause: str | None = None, **kwargs):
        super().__init__(**kwargs)
        if cause:
            self.metadata["cause"] = cause


class FileStorageFault(Fault):
    """A file adapter failed to store or remove a file."""

    code = "FILE_STORAGE_FAILED"
    message = "File storage failed"
    domain = FaultDomain.STORE

    def __init__(self, adapter: str, cause: str, **kwargs):
        super().__init__(**kwargs)
        self.metadata["adapter"] = adapter
        self.metadata["cause"] = cause


# Fault code -> HTTP status, consumed by Response.from_fault
STATUS_MAP = {
    "VALIDATION_FAILED": 400,
    "BAD_REQUEST": 400,
    "ACCESS_DENIED": 403,
    "NOT_FOUND": 404,
    "METHOD_NOT_ALLOWED": 405,
    "STORE_UNAVAILABLE": 500,
}
