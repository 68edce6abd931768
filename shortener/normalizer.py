"""Destination URL normalization.

``clean_url`` turns user input into the canonical form stored on a link:

    >>> clean_url("  HTTP://Example.COM:80/a/./b/../c?x=%7e  ")
    'http://example.com/a/c?x=~'
    >>> clean_url("docs/intro")
    '/docs/intro'
"""

import re
from urllib.parse import urlsplit, urlunsplit

from .exceptions import InvalidURLError


HAS_PROTOCOL = re.compile(r"\Ahttps?://", re.IGNORECASE)

# RFC 3986 reserved + unreserved characters and percent-escapes
URI_CHARS = re.compile(r"\A[A-Za-z0-9\-._~:/?#\[\]@!$&'()*+,;=%]*\Z")
BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
ESCAPE = re.compile(r"%([0-9A-Fa-f]{2})")

UNRESERVED = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~")
DEFAULT_PORTS = {"http": 80, "https": 443}


def clean_url(raw_url: str) -> str:
    """Normalize a destination URL.

    Input without an ``http://`` or ``https://`` prefix that does not start
    with ``/`` is treated as a path on the current host.

    Args:
        raw_url: URL as provided by the caller

    Returns:
        Normalized URL

    Raises:
        InvalidURLError: If the URL is blank, cannot be parsed as a URI, or
            names a network location without a host
    """
    url = str(raw_url or "").strip()
    if not url:
        raise InvalidURLError("URL is required")

    if not HAS_PROTOCOL.match(url) and not url.startswith("/"):
        url = f"/{url}"

    if not URI_CHARS.match(url):
        raise InvalidURLError(f"URL contains characters not allowed in a URI: {url!r}")
    if BAD_ESCAPE.search(url):
        raise InvalidURLError(f"URL contains a malformed percent-escape: {url!r}")

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise InvalidURLError(f"Invalid URL {url!r}: {e}") from e

    scheme = parts.scheme.lower()
    # "//" starts a network location even without a scheme
    if (scheme or url.startswith("//")) and not parts.hostname:
        raise InvalidURLError(f"URL must have a host: {url!r}")

    netloc = _normalize_netloc(parts, scheme, port)
    path = remove_dot_segments(_normalize_escapes(parts.path))
    if netloc and not path:
        path = "/"
    elif not netloc:
        # "//x" would be re-read as a network location
        path = "/" + path.lstrip("/")

    return urlunsplit((
        scheme,
        netloc,
        path,
        _normalize_escapes(parts.query),
        _normalize_escapes(parts.fragment),
    ))


def _normalize_netloc(parts, scheme: str, port) -> str:
    if not parts.netloc:
        return ""

    host = _normalize_escapes((parts.hostname or "").lower())
    if ":" in host:
        host = f"[{host}]"

    userinfo = ""
    if "@" in parts.netloc:
        userinfo = _normalize_escapes(parts.netloc.rsplit("@", 1)[0]) + "@"

    if port is not None and port != DEFAULT_PORTS.get(scheme):
        return f"{userinfo}{host}:{port}"
    return f"{userinfo}{host}"


def _normalize_escapes(value: str) -> str:
    """Upper-case percent-escapes and decode the ones for unreserved characters."""

    def replace(match):
        char = chr(int(match.group(1), 16))
        if char in UNRESERVED:
            return char
        return "%" + match.group(1).upper()

    return ESCAPE.sub(replace, value)


def remove_dot_segments(path: str) -> str:
    """Remove ``.`` and ``..`` segments (RFC 3986, section 5.2.4)."""
    if "." not in path:
        return path

    output = []
    while path:
        if path.startswith("../"):
            path = path[3:]
        elif path.startswith("./"):
            path = path[2:]
        elif path.startswith("/./"):
            path = path[2:]
        elif path == "/.":
            path = "/"
        elif path.startswith("/../"):
            path = path[3:]
            if output:
                output.pop()
        elif path == "/..":
            path = "/"
            if output:
                output.pop()
        elif path in (".", ".."):
            path = ""
        else:
            start = 1 if path.startswith("/") else 0
            end = path.find("/", start)
            if end == -1:
                end = len(path)
            output.append(path[:end])
            path = path[end:]

    return "".join(output)
