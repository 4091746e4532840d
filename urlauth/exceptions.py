"""Exceptions."""


class SetupFailed(RuntimeError):
    """The network request context for an auth handle could not be set up."""


class TransportFailed(RuntimeError):
    """A callout to the authorization server could not be completed."""


class HandleDestroyed(RuntimeError):
    """The auth handle was used after its last reference was released."""
