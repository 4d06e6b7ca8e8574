"""Core primitives: configuration, connection lifecycle, cache and lock."""

from .cache import Cache
from .cache_redis import RedisCache
from .config import ComponentOptions, ConfigParams, ConnectionParams, CredentialParams
from .connection import ReconnectPolicy, RedisConnection
from .errors import (
    AcquisitionTimeoutError,
    CacheLockError,
    ConfigurationError,
    CreateError,
    SerializationError,
    StateError,
    TransportError,
)
from .locks import Lock
from .locks_redis import RedisLock
from .references import Descriptor, References
from .resolvers import MemoryCredentialStore, MemoryDiscovery

__all__ = [
    "Cache",
    "RedisCache",
    "ComponentOptions",
    "ConfigParams",
    "ConnectionParams",
    "CredentialParams",
    "ReconnectPolicy",
    "RedisConnection",
    "AcquisitionTimeoutError",
    "CacheLockError",
    "ConfigurationError",
    "CreateError",
    "SerializationError",
    "StateError",
    "TransportError",
    "Lock",
    "RedisLock",
    "Descriptor",
    "References",
    "MemoryCredentialStore",
    "MemoryDiscovery",
]
