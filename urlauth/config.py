"""Configuration for URL based authentication callouts."""

import os

from . import __version__

SERVER_HOSTNAME = os.environ.get('URLAUTH_SERVER_HOSTNAME', 'localhost')
"""Hostname reported to the authorization server as ``server``."""

CALLOUT_TIMEOUT = int(os.environ.get('URLAUTH_CALLOUT_TIMEOUT', '15'))
"""Upper bound, in seconds, on a single callout."""

AUTH_HEADER = os.environ.get('URLAUTH_AUTH_HEADER',
                             'icecast-auth-user: 1\r\n')
"""Header line the server must return to accept a listener."""

USER_AGENT = os.environ.get('URLAUTH_USER_AGENT', f'urlauth/{__version__}')

LOGLEVEL = os.environ.get('LOGLEVEL', 'INFO')
