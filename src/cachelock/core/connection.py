"""Redis connection lifecycle shared by the cache and lock components.

``RedisConnection`` resolves where and how to connect, opens a client under a
bounded reconnect policy, and tears it down again. Components compose one
instance each; the client handle is never shared between components.
"""

from __future__ import annotations

import asyncio
import errno
import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import AuthenticationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import AsyncRetrying, RetryCallState, before_sleep_log, retry_if_exception

from cachelock.utils.logging import get_logger

from .config import ComponentOptions, ConfigParams
from .errors import ConfigurationError, StateError, TransportError
from .models import (
    ConnectionState,
    Credential,
    Delay,
    Endpoint,
    FailureReason,
    RetryDecision,
    Stop,
    endpoint_from_params,
)
from .references import References
from .resolvers import ConnectionResolver, CredentialResolver


ClientFactory = Callable[..., Redis]


def create_client(**options: Any) -> Redis:
    """Default client factory: ``url`` goes through ``from_url``, the rest as kwargs."""
    url = options.pop("url", None)
    if url is not None:
        return Redis.from_url(url, **options)
    return Redis(**options)


def classify_failure(exc: Optional[BaseException]) -> FailureReason:
    """Map a failed connect attempt onto the reasons the policy understands."""
    current = exc
    depth = 0
    while current is not None and depth < 8:
        if isinstance(current, ConnectionRefusedError) or getattr(current, "errno", None) == errno.ECONNREFUSED:
            return FailureReason.REFUSED
        if isinstance(current, (RedisTimeoutError, asyncio.TimeoutError, TimeoutError)):
            return FailureReason.TIMEOUT
        current = current.__cause__ or current.__context__
        depth += 1
    # redis-py flattens socket errors into a message on some code paths.
    if exc is not None and "connection refused" in str(exc).lower():
        return FailureReason.REFUSED
    return FailureReason.OTHER


@contextmanager
def command_errors(trace_id: Optional[str], command: str, key: str) -> Iterator[None]:
    """Re-raise store failures of a data command as ``TransportError``."""
    try:
        yield
    except RedisError as exc:
        raise TransportError(
            trace_id, "COMMAND_FAILED", f"{command} {key!r} failed: {exc}"
        ).with_details("key", key) from exc


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, AuthenticationError):
        return False
    return isinstance(exc, (RedisConnectionError, RedisTimeoutError, OSError, asyncio.TimeoutError))


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """Pure reconnect strategy: ``(reason, elapsed_ms, attempt) -> RetryDecision``.

    ``attempt`` counts failed attempts so far, starting at 1. Delays grow
    linearly by ``step_ms`` and are capped at ``max_delay_ms``.
    """

    timeout: int = 60000
    retries: int = 3
    step_ms: int = 100
    max_delay_ms: int = 3000

    def decide(self, reason: FailureReason, elapsed_ms: int, attempt: int) -> RetryDecision:
        if reason is FailureReason.REFUSED:
            return Stop(TransportError(None, "CONNECTION_REFUSED", "The server refused the connection"))
        if elapsed_ms > self.timeout:
            return Stop(TransportError(None, "RETRY_TIME_EXHAUSTED", "Retry time exhausted"))
        if attempt > self.retries:
            return Stop()
        return Delay(min(attempt * self.step_ms, self.max_delay_ms))

    def decide_for(self, retry_state: RetryCallState) -> RetryDecision:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        elapsed_ms = int((retry_state.seconds_since_start or 0.0) * 1000)
        return self.decide(classify_failure(exc), elapsed_ms, retry_state.attempt_number)

    # tenacity strategy hooks
    def should_stop(self, retry_state: RetryCallState) -> bool:
        return isinstance(self.decide_for(retry_state), Stop)

    def wait_seconds(self, retry_state: RetryCallState) -> float:
        decision = self.decide_for(retry_state)
        if isinstance(decision, Delay):
            return decision.ms / 1000.0
        return 0.0


class RedisConnection:
    """Owns one Redis client handle from ``open`` until ``close``."""

    def __init__(self, *, client_factory: Optional[ClientFactory] = None) -> None:
        self._connection_resolver = ConnectionResolver()
        self._credential_resolver = CredentialResolver()
        self._options = ComponentOptions()
        self._client_factory = client_factory or create_client
        self._client: Optional[Redis] = None
        self._state = ConnectionState.CLOSED
        self.logger = get_logger("RedisConnection")

    def configure(self, config: ConfigParams) -> None:
        self._connection_resolver.configure(config)
        self._credential_resolver.configure(config)
        self._options = self._options.merge_config(config)

    def set_references(self, references: References) -> None:
        self._connection_resolver.set_references(references)
        self._credential_resolver.set_references(references)

    @property
    def options(self) -> ComponentOptions:
        return self._options

    @property
    def policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(timeout=self._options.timeout, retries=self._options.retries)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def client(self) -> Optional[Redis]:
        return self._client

    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN and self._client is not None

    def check_opened(self, trace_id: Optional[str]) -> Redis:
        """Return the live client or raise ``StateError`` without touching the network."""
        if not self.is_open():
            raise StateError(trace_id, "NOT_OPENED", "Connection is not opened")
        return self._client

    @staticmethod
    def client_options(endpoint: Endpoint, credential: Optional[Credential]) -> Dict[str, Any]:
        options = endpoint.client_options()
        if credential is not None:
            options["password"] = credential.password
        # Reconnects are governed by ReconnectPolicy, not by redis-py.
        options["retry"] = Retry(NoBackoff(), 0)
        return options

    async def open(self, trace_id: Optional[str]) -> None:
        if self.is_open():
            return

        connection = await self._connection_resolver.resolve(trace_id)
        if connection is None:
            raise ConfigurationError(trace_id, "NO_CONNECTION", "Connection is not configured")

        credential = Credential.from_params(await self._credential_resolver.lookup(trace_id))
        endpoint = endpoint_from_params(connection)

        self._state = ConnectionState.OPENING
        client: Optional[Redis] = None
        try:
            client = self._client_factory(**self.client_options(endpoint, credential))
            await self._establish(trace_id, client)
        except BaseException:
            self._state = ConnectionState.CLOSED
            if client is not None:
                await self._discard(trace_id, client)
            raise

        self._client = client
        self._state = ConnectionState.OPEN
        self.logger.info("[%s] Connected to redis at %s", trace_id, endpoint)

    async def _establish(self, trace_id: Optional[str], client: Redis) -> None:
        policy = self.policy
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=policy.should_stop,
            wait=policy.wait_seconds,
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            retry_error_callback=functools.partial(self._give_up, trace_id, policy),
        )

        async def ping() -> None:
            await client.ping()

        try:
            await retrying(ping)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise TransportError(trace_id, "CONNECT_FAILED", f"Cannot connect to redis: {exc}") from exc

    @staticmethod
    def _give_up(trace_id: Optional[str], policy: ReconnectPolicy, retry_state: RetryCallState) -> None:
        decision = policy.decide_for(retry_state)
        cause = retry_state.outcome.exception() if retry_state.outcome else None
        error = decision.error if isinstance(decision, Stop) else None
        if error is None:
            error = TransportError(
                None,
                "CONNECT_FAILED",
                f"Gave up connecting after {retry_state.attempt_number} attempts",
            )
        error.trace_id = trace_id
        error.with_details("attempts", retry_state.attempt_number)
        raise error from cause

    async def _discard(self, trace_id: Optional[str], client: Redis) -> None:
        try:
            await client.aclose()
        except (RedisError, OSError) as exc:
            self.logger.warning("[%s] Failed to release redis client after a failed open: %s", trace_id, exc)

    async def close(self, trace_id: Optional[str]) -> None:
        """Release the client and wait for its pool to disconnect.

        No QUIT is sent: the command is deprecated since Redis 7.2 and the
        server drops the session when the socket closes. ``aclose`` returns
        once every pooled connection has been shut down.
        """
        client = self._client
        if client is None:
            return
        try:
            await client.aclose()
        except (RedisError, OSError) as exc:
            raise TransportError(trace_id, "CLOSE_FAILED", f"Failed to close redis connection: {exc}") from exc
        finally:
            self._client = None
            self._state = ConnectionState.CLOSED
        self.logger.info("[%s] Closed redis connection", trace_id)
