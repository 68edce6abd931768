"""Short link URL building."""


def build_short_url(
    token: str,
    base_url: str,
    path_prefix: str = "",
) -> str:
    """Build the public URL of a short link.

    Args:
        token: Link token
        base_url: Base URL (e.g., https://sho.rt)
        path_prefix: Optional path prefix (e.g., /s)

    Returns:
        Complete short link URL
    """
    base = base_url.rstrip("/")
    prefix = path_prefix.strip("/")

    if prefix:
        return f"{base}/{prefix}/{token}"
    return f"{base}/{token}"
