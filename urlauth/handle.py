"""
Authorization handles and their reference counting.

An :class:`AuthorizationHandle` is created when a mount's ``<authentication
type="url">`` options are parsed. The mount configuration owns the first
reference. Every admitted client holds one more, and so does every stream
start or end callout for as long as its request is in flight, so a
configuration reload that drops the mount cannot tear the handle down
underneath a running callout. The handle is destroyed when the last
reference is released.
"""

import logging
import threading
from typing import Callable, Iterable, Mapping, Optional, Tuple, Union

from . import config
from .exceptions import HandleDestroyed
from .transport import RequestContext

logger = logging.getLogger(__name__)

Options = Union[Mapping[str, str], Iterable[Tuple[str, str]]]

OPTION_ATTRIBUTES = {
    'username': 'username',
    'password': 'password',
    'add': 'add_url',
    'remove': 'remove_url',
    'start': 'stream_start_url',
    'end': 'stream_end_url',
    'header': 'auth_header',
}
"""Maps configuration option names onto handle attributes."""


class AuthorizationHandle(object):
    """A configured authorization server and its request context."""

    def __init__(self, context: RequestContext,
                 add_url: Optional[str] = None,
                 remove_url: Optional[str] = None,
                 stream_start_url: Optional[str] = None,
                 stream_end_url: Optional[str] = None,
                 username: Optional[str] = None,
                 password: Optional[str] = None,
                 auth_header: str = config.AUTH_HEADER) -> None:
        self.context = context
        self.add_url = add_url
        self.remove_url = remove_url
        self.stream_start_url = stream_start_url
        self.stream_end_url = stream_end_url
        # Not sent in any callout; kept for parity with the other backends.
        self.username = username
        self.password = password
        self.auth_header = auth_header

        self._lock = threading.Lock()
        self._refcount = 1
        self._destroyed = False

    def __repr__(self) -> str:
        return (f'<AuthorizationHandle add={self.add_url!r}'
                f' refcount={self._refcount}>')

    @property
    def refcount(self) -> int:
        return self._refcount

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def acquire(self) -> 'AuthorizationHandle':
        """
        Take a reference on the handle.

        Raises
        ------
        :class:`.HandleDestroyed`
            Raised if no reference is held any more.

        """
        with self._lock:
            if self._destroyed or self._refcount == 0:
                raise HandleDestroyed(f'Cannot acquire {self!r}')
            self._refcount += 1
            return self

    def release(self) -> bool:
        """
        Drop a reference, destroying the handle if it was the last one.

        Returns
        -------
        bool
            ``True`` if this call destroyed the handle.

        """
        with self._lock:
            if self._destroyed or self._refcount == 0:
                raise HandleDestroyed(f'Cannot release {self!r}')
            self._refcount -= 1
            last = self._refcount == 0
        if last:
            self.destroy()
        return last

    def destroy(self) -> None:
        """Close the request context and drop the configured values."""
        with self._lock:
            if self._destroyed:
                raise HandleDestroyed(f'{self!r} was already destroyed')
            if self._refcount != 0:
                raise RuntimeError(f'{self!r} is still referenced')
            self._destroyed = True
        self.context.close()
        self.add_url = self.remove_url = None
        self.stream_start_url = self.stream_end_url = None
        self.username = self.password = None
        logger.debug('URL authentication handle destroyed')


def _iter_options(options: Options) -> Iterable[Tuple[str, str]]:
    if isinstance(options, Mapping):
        return options.items()
    return options


def create(options: Options,
           context_factory: Callable[[], RequestContext] = RequestContext
           ) -> AuthorizationHandle:
    """
    Create a handle from a mount's authentication options.

    Parameters
    ----------
    options : mapping or iterable of (name, value)
        Recognized names are ``username``, ``password``, ``add``,
        ``remove``, ``start``, ``end`` and ``header``. When a name repeats,
        the last value wins.
    context_factory : callable
        Builds the handle's request context.

    Returns
    -------
    :class:`AuthorizationHandle`
        With a reference count of one, owned by the caller.

    Raises
    ------
    :class:`.SetupFailed`
        Raised if the request context could not be initialized.

    """
    values: dict = {}
    for name, value in _iter_options(options):
        attribute = OPTION_ATTRIBUTES.get(name)
        if attribute is None:
            logger.debug('Ignoring unknown url auth option %s', name)
            continue
        values[attribute] = value

    handle = AuthorizationHandle(context_factory(), **values)
    logger.info('URL based authentication setup')
    return handle


def acquire(handle: AuthorizationHandle) -> AuthorizationHandle:
    """Take a reference on ``handle``."""
    return handle.acquire()


def release(handle: AuthorizationHandle) -> bool:
    """Drop a reference on ``handle``."""
    return handle.release()


def destroy(handle: AuthorizationHandle) -> None:
    """Destroy a handle whose reference count has reached zero."""
    handle.destroy()
