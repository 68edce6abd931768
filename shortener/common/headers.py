"""Proxy header handling for building public short link URLs."""

from typing import Dict, Optional


def _lower_keys(headers: Dict[str, str]) -> Dict[str, str]:
    return {k.lower(): v for k, v in headers.items()}


def extract_forwarded_headers(headers: Dict[str, str]) -> Dict[str, Optional[str]]:
    """Extract X-Forwarded-* headers (case-insensitive).

    Returns:
        Dictionary with forwarded_proto, forwarded_host, forwarded_for and forwarded_prefix
    """
    headers_lower = _lower_keys(headers)

    return {
        "forwarded_proto": headers_lower.get("x-forwarded-proto"),
        "forwarded_host": headers_lower.get("x-forwarded-host"),
        "forwarded_for": headers_lower.get("x-forwarded-for"),
        "forwarded_prefix": headers_lower.get("x-forwarded-prefix"),
    }


def build_base_url(
    headers: Dict[str, str],
    fallback_base_url: str,
    request_scheme: Optional[str] = None,
    request_host: Optional[str] = None,
) -> str:
    """Work out the public base URL of the service.

    Priority:
    1. X-Forwarded-Proto + X-Forwarded-Host
    2. Request scheme + host
    3. Configured base URL

    Returns:
        Base URL without trailing slash (e.g., https://sho.rt)
    """
    forwarded = extract_forwarded_headers(headers)

    if forwarded["forwarded_proto"] and forwarded["forwarded_host"]:
        return f"{forwarded['forwarded_proto']}://{forwarded['forwarded_host']}"

    if request_scheme and request_host:
        return f"{request_scheme}://{request_host}"

    return fallback_base_url.rstrip("/")


def get_forwarded_path_prefix(headers: Dict[str, str]) -> str:
    """Path prefix stripped by a proxy, from X-Forwarded-Prefix.

    Returns:
        Prefix with a leading slash and no trailing slash (e.g. '/s'), or ''
    """
    prefix = (extract_forwarded_headers(headers)["forwarded_prefix"] or "").strip().strip("/")
    return "/" + prefix if prefix else ""
