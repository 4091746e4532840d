"""
The server configuration as seen by the URL authenticator.

Only the pieces the callouts need are kept here: the hostname and the
mounts with their auth handles. Readers hold the lock just long enough to
find a mount and take what they need from it; a reload swaps the whole
mount table and drops the configuration's reference on handles that did
not survive it.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator, Iterable, Optional

from . import config
from .domain import Mount

logger = logging.getLogger(__name__)


class ConfigSnapshot(object):
    """Read access to the configuration while the store lock is held."""

    def __init__(self, hostname: str, mounts: Dict[str, Mount]) -> None:
        self.hostname = hostname
        self._mounts = mounts

    def find_mount(self, path: str) -> Optional[Mount]:
        """Get the mount definition for ``path``, if there is one."""
        return self._mounts.get(path)


class ConfigStore(object):
    """Holds the current configuration and serializes access to it."""

    def __init__(self, hostname: str = config.SERVER_HOSTNAME,
                 mounts: Iterable[Mount] = ()) -> None:
        self._lock = threading.Lock()
        self._hostname = hostname
        self._mounts = {mount.path: mount for mount in mounts}

    @contextmanager
    def reading(self) -> Generator[ConfigSnapshot, None, None]:
        """Hold the configuration lock for the duration of the block."""
        with self._lock:
            yield ConfigSnapshot(self._hostname, self._mounts)

    def reload(self, hostname: str, mounts: Iterable[Mount]) -> None:
        """
        Replace the configuration.

        The configuration owns one reference on each mount's handle. Handles
        that are not part of the new configuration have that reference
        released once the lock is dropped; callouts still using them keep
        them alive until they finish.
        """
        new_mounts = {mount.path: mount for mount in mounts}
        kept = {id(m.auth) for m in new_mounts.values() if m.auth is not None}
        with self._lock:
            old_mounts = self._mounts
            self._hostname = hostname
            self._mounts = new_mounts
        logger.info('Configuration reloaded, %i mounts', len(new_mounts))

        for mount in old_mounts.values():
            if mount.auth is not None and id(mount.auth) not in kept:
                logger.debug('Dropping auth handle for %s', mount.path)
                mount.auth.release()


_store: Optional[ConfigStore] = None
_store_lock = threading.Lock()


def current_store() -> ConfigStore:
    """Get the process-wide :class:`ConfigStore`, creating an empty one."""
    global _store
    with _store_lock:
        if _store is None:
            _store = ConfigStore()
        return _store


def set_store(store: Optional[ConfigStore]) -> None:
    """Install ``store`` as the process-wide configuration."""
    global _store
    with _store_lock:
        _store = store
