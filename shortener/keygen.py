"""Random key generation for shortened links."""

import random
import re
import string
from typing import Iterable, Optional

from .common.validators import RESERVED_KEYS


# Lower-case letters and digits
DEFAULT_KEY_CHARS = string.ascii_lowercase + string.digits
DEFAULT_KEY_LENGTH = 5


class KeyGenerator:
    """Generate candidate keys for shortened links.

    Candidates are drawn uniformly at random (with replacement) from the key
    alphabet. A candidate containing any forbidden word, compared
    case-insensitively as a substring, is thrown away and a new one is drawn.
    So is a candidate equal to a reserved path such as ``health``.

    The forbidden-word loop has no attempt cap. It terminates almost surely as
    long as the forbidden list is small relative to the key space; a forbidden
    list that covers every possible key makes ``generate`` spin forever.

    Uniqueness is not checked here. The store enforces it when the link is
    inserted.
    """

    def __init__(
        self,
        key_chars: Iterable[str] = DEFAULT_KEY_CHARS,
        unique_key_length: int = DEFAULT_KEY_LENGTH,
        forbidden_keys: Optional[Iterable[str]] = None,
    ):
        """Initialize key generator.

        Args:
            key_chars: Alphabet to draw key characters from
            unique_key_length: Length of generated keys
            forbidden_keys: Words that must not appear inside a key

        Raises:
            ValueError: If the alphabet is empty or the length is not positive
        """
        # dict.fromkeys keeps the configured order while dropping duplicates
        self.key_chars = "".join(dict.fromkeys("".join(key_chars)))
        if not self.key_chars:
            raise ValueError("Key alphabet must not be empty")
        if unique_key_length < 1:
            raise ValueError(f"Key length must be positive (given value: {unique_key_length})")

        self.unique_key_length = unique_key_length
        self.forbidden_keys = [word for word in (forbidden_keys or []) if word]
        self._forbidden_regex = self._compile_forbidden(self.forbidden_keys)

    @staticmethod
    def _compile_forbidden(forbidden_keys) -> Optional[re.Pattern]:
        if not forbidden_keys:
            return None
        return re.compile("|".join(re.escape(word) for word in forbidden_keys), re.IGNORECASE)

    def generate(self, length: Optional[int] = None) -> str:
        """Generate a random key that contains no forbidden word.

        Args:
            length: Length of the key (uses the configured length if not specified)

        Returns:
            Random key
        """
        length = length or self.unique_key_length

        while True:
            key = "".join(random.choices(self.key_chars, k=length))
            if not self.is_forbidden(key):
                return key

    def is_forbidden(self, key: str) -> bool:
        """Check if key contains a forbidden word or names a reserved path."""
        if key.lower() in RESERVED_KEYS:
            return True
        return self._forbidden_regex is not None and self._forbidden_regex.search(key) is not None
