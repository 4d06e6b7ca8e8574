"""Redis-based distributed lock using SET NX PX semantics."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from cachelock.utils.logging import get_logger

from .config import ConfigParams
from .connection import ClientFactory, RedisConnection, command_errors
from .locks import Lock
from .references import References


# release only if token matches
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


class RedisLock(Lock):
    """Distributed lock whose leases live in Redis.

    Each instance writes its own random owner token as the lease value and
    only ever deletes leases carrying that token. Lock keys share the
    keyspace with cache entries. Configuration and references are the same
    as for ``RedisCache``, plus ``options.retry_timeout`` (ms between
    attempts in ``acquire_lock``, default 100).
    """

    def __init__(self, *, client_factory: Optional[ClientFactory] = None) -> None:
        self._connection = RedisConnection(client_factory=client_factory)
        self._token = str(uuid.uuid4())
        self.logger = get_logger("RedisLock")

    @property
    def token(self) -> str:
        return self._token

    @property
    def retry_timeout(self) -> int:
        return self._connection.options.retry_timeout

    def configure(self, config: ConfigParams) -> None:
        self._connection.configure(config)

    def set_references(self, references: References) -> None:
        self._connection.set_references(references)

    def is_open(self) -> bool:
        return self._connection.is_open()

    async def open(self, trace_id: Optional[str]) -> None:
        await self._connection.open(trace_id)

    async def close(self, trace_id: Optional[str]) -> None:
        await self._connection.close(trace_id)

    async def try_acquire_lock(self, trace_id: Optional[str], key: str, timeout_ms: int) -> bool:
        client = self._connection.check_opened(trace_id)
        with command_errors(trace_id, "SET NX", key):
            pending = asyncio.ensure_future(client.set(key, self._token, px=timeout_ms, nx=True))
            try:
                acquired = await asyncio.shield(pending)
            except asyncio.CancelledError:
                await self._drop_unclaimed_lease(trace_id, client, key, pending)
                raise
        return bool(acquired)

    async def _drop_unclaimed_lease(
        self, trace_id: Optional[str], client: Redis, key: str, pending: asyncio.Future[Any]
    ) -> None:
        """A cancelled caller never saw the SET reply, so a lease it won is removed."""
        try:
            if await pending:
                await client.eval(_RELEASE_SCRIPT, 1, key, self._token)
        except RedisError as exc:
            self.logger.warning("[%s] Could not drop lease %r after a cancelled acquire: %s", trace_id, key, exc)

    async def release_lock(self, trace_id: Optional[str], key: str) -> bool:
        client = self._connection.check_opened(trace_id)
        with command_errors(trace_id, "EVAL", key):
            removed = await client.eval(_RELEASE_SCRIPT, 1, key, self._token)
        return bool(removed)
