"""URL based client authentication callouts for a streaming server."""

__version__ = '0.1.0'
