from __future__ import annotations

from typing import Any, Dict, List

import fakeredis
import pytest
import pytest_asyncio

from cachelock.core import ConfigParams, RedisCache, RedisLock


class RecordingFactory:
    """Client factory that remembers the options it was built with."""

    def __init__(self, server: fakeredis.FakeServer) -> None:
        self.server = server
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, **options: Any) -> fakeredis.FakeAsyncRedis:
        self.calls.append(options)
        return fakeredis.FakeAsyncRedis(server=self.server)


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def client_factory(redis_server) -> RecordingFactory:
    return RecordingFactory(redis_server)


@pytest.fixture
def config() -> ConfigParams:
    return ConfigParams.from_tuples(
        "connection.host", "localhost",
        "connection.port", 6379,
    )


@pytest_asyncio.fixture
async def cache(client_factory, config):
    component = RedisCache(client_factory=client_factory)
    component.configure(config)
    await component.open("test")
    yield component
    await component.close("test")


async def _opened_lock(client_factory, config) -> RedisLock:
    component = RedisLock(client_factory=client_factory)
    component.configure(config)
    await component.open("test")
    return component


@pytest_asyncio.fixture
async def lock_a(client_factory, config):
    component = await _opened_lock(client_factory, config)
    yield component
    await component.close("test")


@pytest_asyncio.fixture
async def lock_b(client_factory, config):
    component = await _opened_lock(client_factory, config)
    yield component
    await component.close("test")
