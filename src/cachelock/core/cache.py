"""Abstract interface for distributed caches."""

from __future__ import annotations

import abc
from typing import Any, Optional


class Cache(abc.ABC):
    """Keyed values with per-entry expiration, stored outside the process."""

    @abc.abstractmethod
    async def retrieve(self, trace_id: Optional[str], key: str) -> Any:  # pragma: no cover - interface
        """Return the cached value, or ``None`` when missing or expired."""
        raise NotImplementedError

    @abc.abstractmethod
    async def store(
        self, trace_id: Optional[str], key: str, value: Any, timeout_ms: Optional[int] = None
    ) -> Any:  # pragma: no cover - interface
        """Store ``value`` under ``key`` for ``timeout_ms`` milliseconds and return it."""
        raise NotImplementedError

    @abc.abstractmethod
    async def remove(self, trace_id: Optional[str], key: str) -> Any:  # pragma: no cover - interface
        """Remove ``key`` and return the value it held, if any."""
        raise NotImplementedError
