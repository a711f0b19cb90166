"""
Cache key helpers.

Store keys are the request URL percent-encoded the same way as
``encodeURIComponent``, so keys written by other tooling sharing the store
round-trip with ours.
"""
from urllib.parse import quote, unquote

import httpx

from .types import RequestInfo

# Characters encodeURIComponent leaves alone besides quote()'s own safe set.
_COMPONENT_SAFE = "!*'()"


def to_key(url: str) -> str:
    """Percent-encode a URL for use as a store key."""
    return quote(url, safe=_COMPONENT_SAFE)


def from_key(key: str) -> str:
    """Decode a store key back into its URL."""
    return unquote(key)


def namespace_for(name: str, prefix: str = "blobcache-") -> str:
    """Get the store namespace for a named cache."""
    return f"{prefix}{name}"


def request_url(request: RequestInfo) -> str:
    """
    Get the normalized URL of a request or URL string.

    Strings go through httpx.URL so a URL string and the request built from
    it map to the same store key.
    """
    if isinstance(request, str):
        return str(httpx.URL(request))
    return str(request.url)


def to_request(request: RequestInfo) -> httpx.Request:
    """Coerce a URL string into a GET request."""
    if isinstance(request, httpx.Request):
        return request
    return httpx.Request("GET", request)
