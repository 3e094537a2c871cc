"""Domain matching between stored item URLs and a page URL."""
import re
from typing import Optional
from urllib.parse import urlsplit

DEFAULT_SCHEME = "https://"
_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


def normalize_url(url: str) -> Optional[str]:
    """Return the lowercase hostname of ``url``, or None if it has none.

    A missing scheme is replaced by ``https://`` before parsing.
    """
    if not url:
        return None
    url = url.strip()
    if not _SCHEME_PATTERN.match(url):
        url = DEFAULT_SCHEME + url
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname or None


def _has_empty_host(url: str) -> bool:
    """True for URLs like ``https://`` that parse but name no host."""
    url = url.strip()
    if not _SCHEME_PATTERN.match(url):
        return False
    try:
        return not urlsplit(url).hostname
    except ValueError:
        return False


def url_matches(item_url: str, request_url: str) -> bool:
    """Check whether a stored item URL applies to a requested URL.

    Hostnames match when equal or when one is a dot-delimited suffix of the
    other (``www.example.com`` / ``example.com``, either direction). If either
    URL has no parseable hostname, fall back to case-insensitive containment;
    a URL that parses with a scheme but an empty host never matches.
    """
    if not item_url or not request_url:
        return False
    if _has_empty_host(item_url) or _has_empty_host(request_url):
        return False
    item_host = normalize_url(item_url)
    request_host = normalize_url(request_url)
    if item_host is None or request_host is None:
        item_lower = item_url.lower()
        request_lower = request_url.lower()
        return item_lower in request_lower or request_lower in item_lower
    return (
        item_host == request_host
        or request_host.endswith("." + item_host)
        or item_host.endswith("." + request_host)
    )
