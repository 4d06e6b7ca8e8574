"""Resolution of connection endpoints and credentials.

Connections may be configured directly (``uri`` or ``host``/``port``) or by a
``discovery_key`` looked up in any registered discovery service. Credentials
work the same way with ``store_key`` and credential stores.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from .config import ConfigParams, ConnectionParams, CredentialParams
from .errors import ConfigurationError
from .references import Descriptor, References


DISCOVERY_LOCATOR = Descriptor("*", "discovery", "*", "*", "1.0")
CREDENTIAL_STORE_LOCATOR = Descriptor("*", "credential-store", "*", "*", "1.0")


class Discovery(Protocol):
    async def resolve_one(self, trace_id: Optional[str], key: str) -> Optional[ConnectionParams]: ...


class CredentialStore(Protocol):
    async def lookup(self, trace_id: Optional[str], key: str) -> Optional[CredentialParams]: ...


class MemoryDiscovery:
    """Discovery service backed by a static map of ``key -> connection``."""

    def __init__(self, config: Optional[ConfigParams] = None) -> None:
        self._items: Dict[str, ConnectionParams] = {}
        if config is not None:
            self.configure(config)

    def configure(self, config: ConfigParams) -> None:
        for key in config.get_section_names():
            self._items[key] = ConnectionParams.from_config(config.get_section(key))

    def register(self, key: str, connection: ConnectionParams) -> None:
        self._items[key] = connection

    async def resolve_one(self, trace_id: Optional[str], key: str) -> Optional[ConnectionParams]:
        return self._items.get(key)


class MemoryCredentialStore:
    """Credential store backed by a static map of ``key -> credential``."""

    def __init__(self, config: Optional[ConfigParams] = None) -> None:
        self._items: Dict[str, CredentialParams] = {}
        if config is not None:
            self.configure(config)

    def configure(self, config: ConfigParams) -> None:
        for key in config.get_section_names():
            self._items[key] = CredentialParams.from_config(config.get_section(key))

    def register(self, key: str, credential: CredentialParams) -> None:
        self._items[key] = credential

    async def lookup(self, trace_id: Optional[str], key: str) -> Optional[CredentialParams]:
        return self._items.get(key)


class ConnectionResolver:
    def __init__(self) -> None:
        self._connections: List[ConnectionParams] = []
        self._references: Optional[References] = None

    def configure(self, config: ConfigParams) -> None:
        self._connections = ConnectionParams.many_from_config(config)

    def set_references(self, references: References) -> None:
        self._references = references

    async def _discover(self, trace_id: Optional[str], connection: ConnectionParams) -> Optional[ConnectionParams]:
        discoveries = self._references.get_optional(DISCOVERY_LOCATOR) if self._references else []
        if not discoveries:
            raise ConfigurationError(
                trace_id,
                "CANNOT_RESOLVE",
                "Discovery wasn't found to resolve connections",
            ).with_details("discovery_key", connection.discovery_key)
        for discovery in discoveries:
            resolved = await discovery.resolve_one(trace_id, connection.discovery_key)
            if resolved is not None:
                return resolved
        return None

    async def resolve(self, trace_id: Optional[str]) -> Optional[ConnectionParams]:
        """Return the first connection that resolves, or ``None``."""
        for connection in self._connections:
            if not connection.use_discovery:
                return connection
            resolved = await self._discover(trace_id, connection)
            if resolved is not None:
                return resolved
        return None


class CredentialResolver:
    def __init__(self) -> None:
        self._credentials: List[CredentialParams] = []
        self._references: Optional[References] = None

    def configure(self, config: ConfigParams) -> None:
        self._credentials = CredentialParams.many_from_config(config)

    def set_references(self, references: References) -> None:
        self._references = references

    async def lookup(self, trace_id: Optional[str]) -> Optional[CredentialParams]:
        """Return the first credential that resolves. Absence is not an error."""
        stores = self._references.get_optional(CREDENTIAL_STORE_LOCATOR) if self._references else []
        for credential in self._credentials:
            if not credential.use_credential_store:
                return credential
            for store in stores:
                found = await store.lookup(trace_id, credential.store_key)
                if found is not None:
                    return found
        return None
