"""Exceptions raised by the link shortener.

Classes:
    ShortenerError:
        Base class for all link shortener errors.

    InvalidURLError:
        Raised when a destination URL cannot be normalized.

    InvalidCustomKeyError:
        Raised when a caller-supplied key contains characters outside the
        configured alphabet.

    CustomKeyTakenError:
        Raised when a caller-supplied key is already in use.

    KeyAllocationExhaustedError:
        Raised when every generated key collided with an existing one.

    DataStoreError:
        Raised when the database cannot be reached or fails a query.
"""


class ShortenerError(Exception):
    """Base class for link shortener errors."""

    pass


class InvalidURLError(ShortenerError, ValueError):
    """Destination URL cannot be parsed as a URI."""

    pass


class InvalidCustomKeyError(ShortenerError, ValueError):
    """Custom key is empty or uses characters outside the key alphabet."""

    pass


class CustomKeyTakenError(ShortenerError):
    """A link with the requested custom key already exists."""

    def __init__(self, key: str):
        super().__init__(f"Key '{key}' is already taken")
        self.key = key


class KeyAllocationExhaustedError(ShortenerError):
    """Every allocation attempt hit an existing key.

    Either the key space is too small for the number of stored links or the
    service is under extreme concurrent load.
    """

    def __init__(self, attempts: int):
        super().__init__(f"Unable to allocate a unique key after {attempts} attempts")
        self.attempts = attempts


class DataStoreError(ShortenerError):
    """Database connectivity or driver failure.

    e.g. connection refused, pool closed, timeouts.
    """

    pass
