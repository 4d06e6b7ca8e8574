"""Abstract distributed lock with a polling acquire built on ``try_acquire_lock``."""

from __future__ import annotations

import abc
import asyncio
import time
from typing import Optional, Protocol

from .config import ComponentOptions
from .errors import AcquisitionTimeoutError


class AsyncLock(Protocol):
    async def __aenter__(self) -> bool: ...
    async def __aexit__(self, exc_type, exc, tb) -> None: ...


class _HeldLease:
    def __init__(
        self, owner: "Lock", trace_id: Optional[str], key: str, timeout_ms: int, wait_timeout_ms: int
    ) -> None:
        self._owner = owner
        self._trace_id = trace_id
        self._key = key
        self._timeout_ms = timeout_ms
        self._wait_timeout_ms = wait_timeout_ms
        self._acquired = False

    async def __aenter__(self) -> bool:
        await self._owner.acquire_lock(self._trace_id, self._key, self._timeout_ms, self._wait_timeout_ms)
        self._acquired = True
        return True

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._acquired:
            return
        try:
            await self._owner.release_lock(self._trace_id, self._key)
        finally:
            self._acquired = False


class Lock(abc.ABC):
    """Mutual exclusion over string keys with expiring leases."""

    @property
    def retry_timeout(self) -> int:
        """Milliseconds slept between attempts in ``acquire_lock``."""
        return ComponentOptions().retry_timeout

    @abc.abstractmethod
    async def try_acquire_lock(
        self, trace_id: Optional[str], key: str, timeout_ms: int
    ) -> bool:  # pragma: no cover - interface
        """Take the lease once without waiting. True iff the caller now holds it."""
        raise NotImplementedError

    @abc.abstractmethod
    async def release_lock(self, trace_id: Optional[str], key: str) -> bool:  # pragma: no cover - interface
        """Give the lease back. True iff a lease was removed."""
        raise NotImplementedError

    async def acquire_lock(
        self, trace_id: Optional[str], key: str, timeout_ms: int, wait_timeout_ms: int
    ) -> None:
        """Poll ``try_acquire_lock`` until it succeeds or ``wait_timeout_ms`` runs out.

        Raises ``AcquisitionTimeoutError`` when the wait budget is exhausted.
        No fairness between competing waiters.
        """
        deadline = time.monotonic() + wait_timeout_ms / 1000.0
        while True:
            if await self.try_acquire_lock(trace_id, key, timeout_ms):
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AcquisitionTimeoutError(
                    trace_id, "LOCK_TIMEOUT", f"Acquiring lock {key} failed on timeout"
                ).with_details("key", key)
            await asyncio.sleep(min(self.retry_timeout / 1000.0, remaining))

    def lock(
        self, trace_id: Optional[str], key: str, timeout_ms: int, wait_timeout_ms: int
    ) -> AsyncLock:
        """Return an async context manager holding the lease for the block."""
        return _HeldLease(self, trace_id, key, timeout_ms, wait_timeout_ms)
