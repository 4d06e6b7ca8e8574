from __future__ import annotations

import errno

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from cachelock.core import (
    ConfigParams,
    ConfigurationError,
    Descriptor,
    MemoryCredentialStore,
    MemoryDiscovery,
    RedisConnection,
    References,
    ReconnectPolicy,
    TransportError,
)
from cachelock.core.connection import classify_failure
from cachelock.core.models import ConnectionState, Delay, FailureReason, Stop


class FailingClient:
    """Stand-in client whose ping always fails."""

    def __init__(self, *, refused: bool = False) -> None:
        self.refused = refused
        self.pings = 0
        self.closed = False

    def ping(self):
        # redis-py's ping is a plain method returning an awaitable
        return self._ping()

    async def _ping(self) -> bool:
        self.pings += 1
        if self.refused:
            raise RedisConnectionError(
                "Error 111 connecting to localhost:6379. Connection refused."
            ) from ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
        raise RedisConnectionError("Error connecting to localhost:6379. Network is unreachable.")

    async def aclose(self) -> None:
        self.closed = True


class CountingRedis(fakeredis.FakeAsyncRedis):
    """Fake client that records every command name it sends."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.commands = []

    async def execute_command(self, *args, **options):
        self.commands.append(args[0])
        return await super().execute_command(*args, **options)


class BrokenCloseClient:
    def ping(self):
        return self._ping()

    async def _ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        raise RedisConnectionError("Connection reset by peer")


@pytest.mark.parametrize(
    ("attempt", "expected_ms"),
    [(1, 100), (2, 200), (3, 300), (30, 3000)],
)
def test_policy_delays_linearly_with_cap(attempt, expected_ms):
    policy = ReconnectPolicy(timeout=60000, retries=100)
    assert policy.decide(FailureReason.OTHER, 0, attempt) == Delay(expected_ms)


def test_policy_stops_on_refused_connection():
    decision = ReconnectPolicy().decide(FailureReason.REFUSED, 0, 1)
    assert isinstance(decision, Stop)
    assert decision.error.code == "CONNECTION_REFUSED"


def test_policy_stops_when_time_budget_spent():
    decision = ReconnectPolicy(timeout=1000).decide(FailureReason.TIMEOUT, 1001, 1)
    assert isinstance(decision, Stop)
    assert decision.error.code == "RETRY_TIME_EXHAUSTED"


def test_policy_stops_silently_after_retries():
    policy = ReconnectPolicy(retries=3)
    assert isinstance(policy.decide(FailureReason.OTHER, 0, 3), Delay)
    assert policy.decide(FailureReason.OTHER, 0, 4) == Stop()


def test_classify_failure_walks_the_cause_chain():
    try:
        raise RedisConnectionError("Error 111") from ConnectionRefusedError(errno.ECONNREFUSED, "refused")
    except RedisConnectionError as exc:
        assert classify_failure(exc) is FailureReason.REFUSED
    assert classify_failure(RedisConnectionError("Network is unreachable")) is FailureReason.OTHER


@pytest.mark.asyncio
async def test_open_without_connection_fails_before_any_network_call(client_factory):
    connection = RedisConnection(client_factory=client_factory)
    connection.configure(ConfigParams.from_tuples("options.timeout", 1000))

    with pytest.raises(ConfigurationError) as info:
        await connection.open("t-1")

    assert info.value.code == "NO_CONNECTION"
    assert info.value.trace_id == "t-1"
    assert client_factory.calls == []
    assert not connection.is_open()


@pytest.mark.asyncio
async def test_open_and_close_lifecycle(client_factory, config):
    connection = RedisConnection(client_factory=client_factory)
    connection.configure(config)
    assert connection.state is ConnectionState.CLOSED

    await connection.open("t-1")
    assert connection.is_open()
    assert connection.state is ConnectionState.OPEN

    await connection.open("t-1")
    assert len(client_factory.calls) == 1

    await connection.close("t-1")
    assert not connection.is_open()
    assert connection.client is None

    await connection.close("t-1")


@pytest.mark.asyncio
async def test_host_port_defaults_and_password(client_factory):
    connection = RedisConnection(client_factory=client_factory)
    connection.configure(ConfigParams.from_tuples(
        "connection.port", 6380,
        "credential.password", "s3cret",
    ))

    await connection.open(None)
    await connection.close(None)

    options = client_factory.calls[0]
    assert options["host"] == "localhost"
    assert options["port"] == 6380
    assert options["password"] == "s3cret"
    assert "url" not in options


@pytest.mark.asyncio
async def test_uri_is_used_verbatim_without_credentials(client_factory):
    connection = RedisConnection(client_factory=client_factory)
    connection.configure(ConfigParams.from_tuples("connection.uri", "redis://cache.internal:6390/2"))

    await connection.open(None)
    await connection.close(None)

    options = client_factory.calls[0]
    assert options["url"] == "redis://cache.internal:6390/2"
    assert "host" not in options
    assert "password" not in options


@pytest.mark.asyncio
async def test_discovery_and_credential_store_resolution(client_factory):
    connection = RedisConnection(client_factory=client_factory)
    connection.configure(ConfigParams.from_tuples(
        "connection.discovery_key", "main",
        "credential.store_key", "main",
    ))
    connection.set_references(References.from_tuples(
        Descriptor("cachelock", "discovery", "memory", "default", "1.0"),
        MemoryDiscovery(ConfigParams.from_tuples("main.host", "redis.internal", "main.port", 7000)),
        Descriptor("cachelock", "credential-store", "memory", "default", "1.0"),
        MemoryCredentialStore(ConfigParams.from_tuples("main.password", "from-store")),
    ))

    await connection.open("t-2")
    await connection.close("t-2")

    options = client_factory.calls[0]
    assert (options["host"], options["port"]) == ("redis.internal", 7000)
    assert options["password"] == "from-store"


@pytest.mark.asyncio
async def test_discovery_key_without_discovery_is_a_configuration_error(client_factory):
    connection = RedisConnection(client_factory=client_factory)
    connection.configure(ConfigParams.from_tuples("connection.discovery_key", "main"))

    with pytest.raises(ConfigurationError) as info:
        await connection.open(None)

    assert info.value.code == "CANNOT_RESOLVE"
    assert client_factory.calls == []


@pytest.mark.asyncio
async def test_refused_connection_stops_after_first_attempt(config):
    client = FailingClient(refused=True)
    connection = RedisConnection(client_factory=lambda **options: client)
    connection.configure(config)

    with pytest.raises(TransportError) as info:
        await connection.open("t-3")

    assert info.value.code == "CONNECTION_REFUSED"
    assert info.value.trace_id == "t-3"
    assert client.pings == 1
    assert client.closed
    assert not connection.is_open()
    assert connection.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_open_gives_up_after_configured_retries(config):
    client = FailingClient()
    connection = RedisConnection(client_factory=lambda **options: client)
    connection.configure(ConfigParams.from_value({**config, "options.retries": 2}))

    with pytest.raises(TransportError) as info:
        await connection.open(None)

    assert info.value.code == "CONNECT_FAILED"
    assert info.value.details["attempts"] == 3
    assert client.pings == 3
    assert not connection.is_open()


@pytest.mark.asyncio
async def test_open_gives_up_when_retry_time_is_exhausted(config):
    client = FailingClient()
    connection = RedisConnection(client_factory=lambda **options: client)
    connection.configure(ConfigParams.from_value({**config, "options.timeout": 150, "options.retries": 50}))

    with pytest.raises(TransportError) as info:
        await connection.open(None)

    assert info.value.code == "RETRY_TIME_EXHAUSTED"
    assert client.pings <= 3


@pytest.mark.asyncio
async def test_close_failure_still_discards_the_handle(config):
    connection = RedisConnection(client_factory=lambda **options: BrokenCloseClient())
    connection.configure(config)
    await connection.open(None)

    with pytest.raises(TransportError) as info:
        await connection.close("t-4")

    assert info.value.code == "CLOSE_FAILED"
    assert not connection.is_open()
    assert connection.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_open_pings_the_server(redis_server, config):
    clients = []

    def factory(**options):
        client = CountingRedis(server=redis_server)
        clients.append(client)
        return client

    connection = RedisConnection(client_factory=factory)
    connection.configure(config)
    await connection.open("t-6")
    await connection.close("t-6")

    assert clients[0].commands == ["PING"]


@pytest.mark.asyncio
async def test_open_against_a_closed_port_is_refused():
    connection = RedisConnection()
    connection.configure(ConfigParams.from_tuples(
        "connection.host", "127.0.0.1",
        "connection.port", 1,
    ))

    with pytest.raises(TransportError) as info:
        await connection.open("t-5")

    assert info.value.code == "CONNECTION_REFUSED"
    assert info.value.details["attempts"] == 1
    assert not connection.is_open()
    assert connection.client is None
