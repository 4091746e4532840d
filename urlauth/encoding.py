"""Form encoding of callout POST bodies."""

from typing import Iterable, Optional, Tuple, Union
from urllib.parse import quote


def url_escape(value: Optional[Union[str, bytes]]) -> str:
    """
    Percent-encode a value for use in a ``key=value&...`` body.

    Only ASCII letters, digits and ``_.-~`` are left as they are; text is
    encoded as UTF-8 first.

    Parameters
    ----------
    value : str or bytes
        ``None`` is treated as an empty value.

    Returns
    -------
    str

    """
    if not value:
        return ''
    if isinstance(value, bytes):
        return quote(value, safe='')
    return quote(value, safe='', errors='surrogatepass')


def build_post_body(fields: Iterable[Tuple[str, str]]) -> str:
    """Join already-escaped ``(key, value)`` pairs, keeping their order."""
    return '&'.join(f'{key}={value}' for key, value in fields)
