"""Input validation helpers shared by the API boundary and the writer."""

import re
from urllib.parse import urlparse

_URL_PATTERN = re.compile(
    r"^https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b([-a-zA-Z0-9()@:%_+.~#?&/=]*)$"
)


def is_valid_url(value: object) -> bool:
    """True for absolute http(s) URLs with a dotted host."""
    if not isinstance(value, str):
        return False
    return bool(_URL_PATTERN.match(value))


def hostname_of(url: str) -> str:
    """Hostname of a URL, used as the site display name."""
    return urlparse(url).hostname or url
