"""Error vocabulary shared by the cache and lock components."""

from __future__ import annotations

from typing import Any, Dict, Optional


class CacheLockError(Exception):
    """Base error carrying a machine-readable code and the caller's trace id."""

    default_code = "UNKNOWN"

    def __init__(
        self,
        trace_id: Optional[str] = None,
        code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.trace_id = trace_id
        self.code = code or self.default_code
        self.message = message or self.code
        self.details: Dict[str, Any] = dict(details or {})
        super().__init__(self.message)

    def with_details(self, key: str, value: Any) -> "CacheLockError":
        self.details[key] = value
        return self

    def __str__(self) -> str:
        prefix = f"[{self.trace_id}] " if self.trace_id else ""
        return f"{prefix}{self.code}: {self.message}"


class ConfigurationError(CacheLockError):
    """Required configuration is missing or cannot be resolved."""

    default_code = "CONFIG_ERROR"


class StateError(CacheLockError):
    """Operation attempted while the component is not open."""

    default_code = "INVALID_STATE"


class TransportError(CacheLockError):
    """The store could not be reached or failed to serve a command."""

    default_code = "TRANSPORT_ERROR"


class AcquisitionTimeoutError(CacheLockError):
    """Lock wait budget exhausted. Recoverable: the caller may try again."""

    default_code = "LOCK_TIMEOUT"


class SerializationError(CacheLockError):
    """A value could not be encoded for, or decoded from, the store."""

    default_code = "SERIALIZATION_ERROR"


class CreateError(CacheLockError):
    """The factory has no constructor registered for a locator."""

    default_code = "CANNOT_CREATE"
