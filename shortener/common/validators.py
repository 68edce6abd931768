"""Validation utilities for the link shortener."""

from typing import Tuple


# Paths served by the app itself; a key equal to one of these would be unreachable
RESERVED_KEYS = {"api", "health"}


def is_valid_custom_key(key: str, key_chars: str, max_length: int = 255) -> Tuple[bool, str]:
    """Validate a caller-supplied key.

    Args:
        key: The key to validate
        key_chars: Allowed key alphabet
        max_length: Maximum key length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not key or not isinstance(key, str):
        return False, "Key is required"

    if len(key) > max_length:
        return False, f"Key must be at most {max_length} characters"

    invalid = sorted({c for c in key if c not in key_chars})
    if invalid:
        return False, f"Key contains characters outside the key alphabet: {''.join(invalid)!r}"

    if key.lower() in RESERVED_KEYS:
        return False, f"'{key}' is a reserved word and cannot be used"

    return True, ""
