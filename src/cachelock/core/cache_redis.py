"""Redis-backed distributed cache with store-native expiry."""

from __future__ import annotations

from typing import Any, Optional

from .cache import Cache
from .config import ConfigParams
from .connection import ClientFactory, RedisConnection, command_errors
from .references import References
from .serialization import JsonSerializer


class RedisCache(Cache):
    """Distributed cache storing JSON-encoded values in Redis.

    Configuration parameters:

    - ``connection(s)``: ``discovery_key``, ``host``, ``port`` or ``uri``
    - ``credential(s)``: ``store_key``, ``username`` (unused), ``password``
    - ``options.timeout``: default expiration in milliseconds (60000)
    - ``options.retries``: reconnect attempts while opening (3)
    - ``options.max_size``: accepted but not enforced; Redis limits apply

    References: ``*:discovery:*:*:1.0`` and ``*:credential-store:*:*:1.0``,
    both optional.

    Example::

        cache = RedisCache()
        cache.configure(ConfigParams.from_tuples("connection.host", "localhost", "connection.port", 6379))
        await cache.open("123")
        await cache.store("123", "key1", "ABC", 5000)
        value = await cache.retrieve("123", "key1")  # "ABC"
    """

    def __init__(
        self,
        *,
        client_factory: Optional[ClientFactory] = None,
        serializer: Optional[JsonSerializer] = None,
    ) -> None:
        self._connection = RedisConnection(client_factory=client_factory)
        self._serializer = serializer or JsonSerializer()

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

    async def retrieve(self, trace_id: Optional[str], key: str) -> Any:
        client = self._connection.check_opened(trace_id)
        with command_errors(trace_id, "GET", key):
            raw = await client.get(key)
        if raw is None:
            return None
        return self._serializer.deserialize(raw, trace_id=trace_id)

    async def store(
        self, trace_id: Optional[str], key: str, value: Any, timeout_ms: Optional[int] = None
    ) -> Any:
        client = self._connection.check_opened(trace_id)
        if timeout_ms is None:
            timeout_ms = self._connection.options.timeout
        payload = self._serializer.serialize(value, trace_id=trace_id)
        with command_errors(trace_id, "SET", key):
            await client.set(key, payload, px=timeout_ms)
        return value

    async def remove(self, trace_id: Optional[str], key: str) -> Any:
        client = self._connection.check_opened(trace_id)
        with command_errors(trace_id, "GETDEL", key):
            raw = await client.getdel(key)
        if raw is None:
            return None
        return self._serializer.deserialize(raw, trace_id=trace_id)
