"""Defines the listeners, jobs and results handled by the URL authenticator."""

from typing import Any, Optional, NamedTuple
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pytz import UTC


class AuthResult(Enum):
    """Outcome of an authentication callout."""

    OK = 'ok'
    FAILED = 'failed'


@dataclass
class Client:
    """A listener connected to the streaming server."""

    client_id: int
    """Connection identifier assigned by the server."""

    username: Optional[str] = None
    password: Optional[str] = None

    ip: str = ''
    """Remote address of the connection."""

    user_agent: Optional[str] = None
    """Value of the ``User-Agent`` request header, if one was sent."""

    connected_at: Optional[datetime] = None
    """Time the connection was accepted. Defaults to now, in UTC."""

    auth: Optional[Any] = None
    """
    The :class:`.AuthorizationHandle` the client is queued under.

    Holds one reference on the handle until the client is released.
    """

    authenticated: bool = False

    def __post_init__(self) -> None:
        if self.connected_at is None:
            self.connected_at = datetime.now(tz=UTC)


@dataclass
class AuthorizationJob:
    """One callout invocation, consumed by exactly one operation."""

    mount: str
    """Mountpoint path, beginning with ``/``."""

    client: Optional[Client] = None
    """Absent for stream start and end events."""

    handle: Optional[Any] = None
    """
    The governing :class:`.AuthorizationHandle`.

    For stream start and end the handle is located through the mount
    configuration instead.
    """

    accepted: bool = False
    """Set by the response matcher when the server accepts the listener."""


class CalloutRequest(NamedTuple):
    """The URL and form-encoded body of a single callout."""

    url: str
    body: str


class Mount(NamedTuple):
    """A mountpoint definition, optionally protected by an auth handle."""

    path: str
    auth: Optional[Any] = None
