"""Recognizes the accept header in responses from the authorization server."""

from typing import Union

from .domain import AuthorizationJob


def is_accept_line(line: Union[str, bytes], marker: str) -> bool:
    """Determine whether a header line starts with ``marker``, ignoring case."""
    if isinstance(line, bytes):
        # latin-1 maps every byte, so binary garbage just fails to match.
        line = line.decode('latin-1')
    if not marker:
        return False
    return line[:len(marker)].lower() == marker.lower()


class HeaderMatcher(object):
    """
    Marks a job as accepted when the server returns the accept header.

    An instance is handed to :meth:`.RequestContext.perform` and is called
    once for every header line of the response, including the status line.
    """

    def __init__(self, job: AuthorizationJob, marker: str) -> None:
        self.job = job
        self.marker = marker

    def __call__(self, line: Union[str, bytes]) -> None:
        if is_accept_line(line, self.marker):
            self.job.accepted = True
