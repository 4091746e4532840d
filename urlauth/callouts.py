"""
Client authentication via URL callouts.

The authorization server is notified with a form-encoded POST. When a
listener connects, the body is of the form::

    action=auth&server=myserver.com&client=1&mount=%2Flive&user=fred&pass=mypass&ip=127.0.0.1&agent=-

and the listener is accepted only if the response carries the header::

    icecast-auth-user: 1

When the listener disconnects, the remove URL receives::

    action=remove&server=myserver.com&client=1&mount=%2Flive&user=fred&pass=mypass&duration=3600

where duration is the time connected, in seconds. When a source starts or
stops on the mount, the start and end URLs receive::

    action=start&mount=%2Flive&server=myserver.com
    action=end&mount=%2Flive&server=myserver.com

so that the server can clear any state it keeps after an abnormal outage.
Apart from the accept header for ``auth``, responses are ignored.
"""

import logging
import threading
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict, Optional

from pytz import UTC

from .domain import AuthorizationJob, AuthResult, CalloutRequest, Client
from .encoding import build_post_body, url_escape
from .exceptions import TransportFailed
from .handle import AuthorizationHandle
from .matcher import HeaderMatcher
from .registry import ConfigStore, current_store

logger = logging.getLogger(__name__)

PostProcessor = Callable[[AuthorizationJob], bool]


def connected_seconds(client: Client, now: Optional[datetime] = None) -> int:
    """Whole seconds since ``client`` connected; never negative."""
    if now is None:
        now = datetime.now(tz=UTC)
    return max(0, int((now - client.connected_at).total_seconds()))


class URLAuthenticator(object):
    """Runs the URL callouts for jobs handed over by the auth worker."""

    def __init__(self, store: ConfigStore,
                 postprocess: Optional[PostProcessor] = None) -> None:
        """
        Parameters
        ----------
        store : :class:`.ConfigStore`
            Source of the server hostname and of the mount definitions.
        postprocess : callable
            Called with the job once the server has accepted a listener.
            Returning ``False`` rejects the listener after all.

        """
        self.store = store
        self.postprocess = postprocess

    def _hostname(self) -> str:
        with self.store.reading() as cfg:
            return url_escape(cfg.hostname)

    def _perform(self, handle: AuthorizationHandle, request: CalloutRequest,
                 on_header: Optional[Callable] = None) -> bool:
        try:
            handle.context.perform(request.url, request.body, on_header)
        except TransportFailed as e:
            logger.warning('auth to server %s failed with %s', request.url, e)
            return False
        return True

    def authenticate_add(self, job: AuthorizationJob) -> AuthResult:
        """
        Ask the server whether a connecting listener may be admitted.

        The caller holds a reference on ``job.handle`` for the listener, so
        no extra reference is taken here.
        """
        client = job.client
        if client is None:
            return AuthResult.OK
        handle = job.handle if job.handle is not None else client.auth
        if handle is None or handle.add_url is None:
            return AuthResult.OK

        server = self._hostname()
        agent = client.user_agent if client.user_agent is not None else '-'
        body = build_post_body([
            ('action', 'auth'),
            ('server', server),
            ('client', url_escape(str(client.client_id))),
            ('mount', url_escape(job.mount)),
            ('user', url_escape(client.username)),
            ('pass', url_escape(client.password)),
            ('ip', url_escape(client.ip)),
            ('agent', url_escape(agent)),
        ])
        request = CalloutRequest(handle.add_url, body)
        matcher = HeaderMatcher(job, handle.auth_header)
        if not self._perform(handle, request, matcher):
            return AuthResult.FAILED

        if not job.accepted:
            logger.debug('client %s rejected for %s', client.client_id,
                         job.mount)
            return AuthResult.FAILED
        if self.postprocess is not None and not self.postprocess(job):
            return AuthResult.FAILED
        client.authenticated = True
        return AuthResult.OK

    def authenticate_remove(self, job: AuthorizationJob) -> AuthResult:
        """
        Tell the server a listener has gone, then detach it from its handle.

        The detach happens whatever the outcome of the callout, so the
        listener is never put back on the auth queue and the reference
        taken when it was admitted is returned.
        """
        client = job.client
        if client is None:
            return AuthResult.OK
        handle = job.handle if job.handle is not None else client.auth
        try:
            if handle is not None and handle.remove_url is not None:
                self._notify_remove(job, client, handle)
        finally:
            if client.auth is not None:
                detached = client.auth
                client.auth = None
                detached.release()
        return AuthResult.OK

    def _notify_remove(self, job: AuthorizationJob, client: Client,
                       handle: AuthorizationHandle) -> None:
        server = self._hostname()
        body = build_post_body([
            ('action', 'remove'),
            ('server', server),
            ('client', url_escape(str(client.client_id))),
            ('mount', url_escape(job.mount)),
            ('user', url_escape(client.username)),
            ('pass', url_escape(client.password)),
            ('duration', str(connected_seconds(client))),
        ])
        self._perform(handle, CalloutRequest(handle.remove_url, body))

    def _stream_event(self, job: AuthorizationJob, action: str,
                      url_attribute: str) -> AuthResult:
        with self.store.reading() as cfg:
            mount = cfg.find_mount(job.mount)
            handle = mount.auth if mount is not None else None
            if handle is None:
                logger.debug('no auth configured for %s', job.mount)
                return AuthResult.OK
            url = getattr(handle, url_attribute)
            if url is None:
                return AuthResult.OK
            server = url_escape(cfg.hostname)
            # Keeps the handle alive if a reload drops the mount while the
            # request is in progress.
            handle.acquire()

        try:
            body = build_post_body([
                ('action', action),
                ('mount', url_escape(job.mount)),
                ('server', server),
            ])
            self._perform(handle, CalloutRequest(url, body))
        finally:
            handle.release()
        return AuthResult.OK

    def stream_start(self, job: AuthorizationJob) -> AuthResult:
        """Tell the server a source has started on ``job.mount``."""
        return self._stream_event(job, 'start', 'stream_start_url')

    def stream_end(self, job: AuthorizationJob) -> AuthResult:
        """Tell the server the source on ``job.mount`` has ended."""
        return self._stream_event(job, 'end', 'stream_end_url')

    # User lists live on the authorization server; they cannot be managed
    # from here.

    def add_user(self, handle: AuthorizationHandle, username: str,
                 password: str) -> AuthResult:
        return AuthResult.FAILED

    def delete_user(self, handle: AuthorizationHandle,
                    username: str) -> AuthResult:
        return AuthResult.FAILED

    def list_users(self, handle: AuthorizationHandle,
                   node: Any = None) -> AuthResult:
        return AuthResult.FAILED

    def dispatch(self, event: str, job: AuthorizationJob) -> AuthResult:
        """Run the callout for a queued ``add``, ``remove``, ``start`` or ``end`` event."""
        operations: Dict[str, Callable[[AuthorizationJob], AuthResult]] = {
            'add': self.authenticate_add,
            'remove': self.authenticate_remove,
            'start': self.stream_start,
            'end': self.stream_end,
        }
        try:
            operation = operations[event]
        except KeyError as e:
            raise ValueError(f'Unknown auth event: {event}') from e
        return operation(job)


_authenticator: Optional[URLAuthenticator] = None
_postprocess: Optional[PostProcessor] = None
_authenticator_lock = threading.Lock()


def current_authenticator() -> URLAuthenticator:
    """Get/create the :class:`URLAuthenticator` bound to the current store."""
    global _authenticator
    store = current_store()
    with _authenticator_lock:
        if _authenticator is None or _authenticator.store is not store \
                or _authenticator.postprocess is not _postprocess:
            _authenticator = URLAuthenticator(store, _postprocess)
        return _authenticator


def set_postprocess(postprocess: Optional[PostProcessor]) -> None:
    """Install the step run after the server accepts a listener."""
    global _postprocess
    with _authenticator_lock:
        _postprocess = postprocess


@wraps(URLAuthenticator.authenticate_add)
def authenticate_add(job: AuthorizationJob) -> AuthResult:
    """Ask the server whether a connecting listener may be admitted."""
    return current_authenticator().authenticate_add(job)


@wraps(URLAuthenticator.authenticate_remove)
def authenticate_remove(job: AuthorizationJob) -> AuthResult:
    """Tell the server a listener has gone."""
    return current_authenticator().authenticate_remove(job)


@wraps(URLAuthenticator.stream_start)
def stream_start(job: AuthorizationJob) -> AuthResult:
    """Tell the server a source has started."""
    return current_authenticator().stream_start(job)


@wraps(URLAuthenticator.stream_end)
def stream_end(job: AuthorizationJob) -> AuthResult:
    """Tell the server a source has ended."""
    return current_authenticator().stream_end(job)


def add_user(handle: AuthorizationHandle, username: str,
             password: str) -> AuthResult:
    """Not supported by URL authentication."""
    return current_authenticator().add_user(handle, username, password)


def delete_user(handle: AuthorizationHandle, username: str) -> AuthResult:
    """Not supported by URL authentication."""
    return current_authenticator().delete_user(handle, username)


def list_users(handle: AuthorizationHandle, node: Any = None) -> AuthResult:
    """Not supported by URL authentication."""
    return current_authenticator().list_users(handle, node)
