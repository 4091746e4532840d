"""
Blocking HTTP request context used for callouts.

Each :class:`.AuthorizationHandle` owns one :class:`RequestContext`. The
context wraps a :class:`requests.Session` and serializes calls on it, so
callouts for one handle never overlap while callouts for different handles
run concurrently on their own workers.
"""

import logging
import threading
import time
from typing import Callable, Iterator, Optional, Union

import requests
from urllib3 import HTTPHeaderDict

from . import config
from .exceptions import SetupFailed, TransportFailed

logger = logging.getLogger(__name__)

HeaderCallback = Callable[[Union[str, bytes]], None]

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'


def _header_lines(response: requests.Response) -> Iterator[str]:
    """
    Yield the status line and each header line of ``response``.

    Lines are rebuilt from the parsed headers as ``Name: value\\r\\n``, so
    spacing around the colon is normalized: ``icecast-auth-user:1`` is
    reported as ``icecast-auth-user: 1``. Repeated headers each get their
    own line.
    """
    version = getattr(response.raw, 'version', 11)
    proto = 'HTTP/1.0' if version == 10 else 'HTTP/1.1'
    yield f'{proto} {response.status_code} {response.reason or ""}\r\n'

    raw_headers = getattr(response.raw, 'headers', None)
    if isinstance(raw_headers, HTTPHeaderDict):
        # requests folds repeated headers into one.
        items = raw_headers.iteritems()
    else:
        items = response.headers.items()
    for name, value in items:
        yield f'{name}: {value}\r\n'
    yield '\r\n'


class RequestContext(object):
    """Reusable context for POSTing callouts to an authorization server."""

    def __init__(self, timeout: int = config.CALLOUT_TIMEOUT,
                 user_agent: str = config.USER_AGENT) -> None:
        """
        Set up the underlying session.

        Raises
        ------
        :class:`.SetupFailed`
            Raised if the session could not be created.

        """
        try:
            self.session = requests.Session()
        except Exception as e:
            raise SetupFailed(f'Could not initialize request context: {e}') from e
        self.session.headers.update({'User-Agent': user_agent})
        self.timeout = timeout
        self._lock = threading.Lock()
        self._closed = False

    def perform(self, url: str, body: str,
                on_header: Optional[HeaderCallback] = None) -> int:
        """
        POST ``body`` to ``url`` and wait for the response.

        Parameters
        ----------
        url : str
        body : str
            Form-encoded body, already escaped.
        on_header : callable
            Called with every header line of the response.

        Returns
        -------
        int
            HTTP status code. Error and redirect statuses are returned as
            they are; redirects are not followed.

        Raises
        ------
        :class:`.TransportFailed`
            Raised when the request could not be completed, including on
            timeout.

        """
        with self._lock:
            if self._closed:
                raise TransportFailed(f'{url}: request context is closed')
            logger.debug('POST %s (%i bytes)', url, len(body))
            deadline = time.monotonic() + self.timeout
            try:
                # Redirects are not followed: one event, one request.
                response = self.session.post(
                    url, data=body.encode('utf-8'),
                    headers={'Content-Type': FORM_CONTENT_TYPE},
                    timeout=self.timeout, stream=True,
                    allow_redirects=False
                )
            except requests.RequestException as e:
                raise TransportFailed(str(e)) from e
            # The body is never read; closing the response discards it, so
            # a server trickling or streaming content cannot hold us here.
            try:
                if time.monotonic() > deadline:
                    raise TransportFailed(
                        f'{url}: no response within {self.timeout}s')
                if on_header is not None:
                    for line in _header_lines(response):
                        on_header(line)
            finally:
                response.close()
            return int(response.status_code)

    def close(self) -> None:
        """Release the session. Later calls to :meth:`perform` fail."""
        with self._lock:
            if not self._closed:
                self.session.close()
                self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed
