"""Value types describing a connection and its reconnect decisions."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Union

from .config import ConnectionParams, CredentialParams
from .errors import TransportError


DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6379


class ConnectionState(str, enum.Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"


class FailureReason(str, enum.Enum):
    """Why a single connect attempt failed."""

    REFUSED = "refused"
    TIMEOUT = "timeout"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class UriEndpoint:
    uri: str

    def client_options(self) -> dict:
        return {"url": self.uri}

    def __str__(self) -> str:
        return self.uri


@dataclass(frozen=True, slots=True)
class HostPortEndpoint:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def client_options(self) -> dict:
        return {"host": self.host, "port": self.port}

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


Endpoint = Union[UriEndpoint, HostPortEndpoint]


def endpoint_from_params(connection: ConnectionParams) -> Endpoint:
    """A resolved URI wins; otherwise host/port with store defaults."""
    if connection.uri:
        return UriEndpoint(connection.uri)
    return HostPortEndpoint(connection.host or DEFAULT_HOST, connection.port or DEFAULT_PORT)


@dataclass(frozen=True, slots=True)
class Credential:
    password: Optional[str] = None

    @classmethod
    def from_params(cls, credential: Optional[CredentialParams]) -> Optional["Credential"]:
        if credential is None:
            return None
        return cls(password=credential.password)


@dataclass(frozen=True, slots=True)
class Delay:
    """Retry the connection after ``ms`` milliseconds."""

    ms: int


@dataclass(frozen=True, slots=True)
class Stop:
    """Give up reconnecting. ``error`` is ``None`` for a silent stop."""

    error: Optional[TransportError] = None


RetryDecision = Union[Delay, Stop]
