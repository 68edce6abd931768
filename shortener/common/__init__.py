"""Common utilities for the link shortener."""

from .validators import is_valid_custom_key
from .headers import extract_forwarded_headers, build_base_url, get_forwarded_path_prefix
from .url_builder import build_short_url
from .logging_config import setup_logging

__all__ = [
    "is_valid_custom_key",
    "extract_forwarded_headers",
    "build_base_url",
    "get_forwarded_path_prefix",
    "build_short_url",
    "setup_logging",
]
