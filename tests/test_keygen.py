"""Tests for key generation."""

from unittest.mock import patch

import pytest
from shortener.keygen import KeyGenerator, DEFAULT_KEY_CHARS


class TestKeyGenerator:
    """Test key generation."""

    def test_generate_uses_configured_length_and_alphabet(self):
        """Generated keys have the configured length and only alphabet characters."""
        generator = KeyGenerator(key_chars="abc123", unique_key_length=7)

        for _ in range(200):
            key = generator.generate()
            assert len(key) == 7
            assert set(key) <= set("abc123")

    def test_generate_custom_length(self):
        """Test key with length override."""
        generator = KeyGenerator(unique_key_length=5)

        key = generator.generate(length=10)
        assert len(key) == 10
        assert set(key) <= set(generator.key_chars)

    def test_default_alphabet(self):
        generator = KeyGenerator()

        assert generator.key_chars == DEFAULT_KEY_CHARS
        assert generator.unique_key_length == 5

    def test_duplicate_alphabet_characters_are_dropped(self):
        generator = KeyGenerator(key_chars="aabbc")
        assert generator.key_chars == "abc"

    def test_forbidden_candidates_are_redrawn(self):
        """A candidate containing a forbidden word is thrown away."""
        generator = KeyGenerator(key_chars="abcdefghijklmnopqrstuvwxyz", unique_key_length=4, forbidden_keys=["bad"])
        draws = [list("xbad"), list("good")]

        with patch("shortener.keygen.random.choices", side_effect=draws) as choices:
            key = generator.generate()

        assert key == "good"
        assert choices.call_count == 2

    def test_forbidden_match_is_case_insensitive(self):
        generator = KeyGenerator(key_chars="abcdABCD", unique_key_length=4, forbidden_keys=["ABC"])

        assert generator.is_forbidden("xabc")
        assert generator.is_forbidden("aBcD")
        assert not generator.is_forbidden("abdc")

    def test_forbidden_words_are_literal(self):
        """Regex metacharacters in forbidden words match themselves."""
        generator = KeyGenerator(key_chars="ab.", unique_key_length=3, forbidden_keys=["a.b"])

        assert generator.is_forbidden("a.b")
        assert not generator.is_forbidden("aab")

    def test_generated_keys_never_contain_forbidden_words(self):
        generator = KeyGenerator(key_chars="ab", unique_key_length=3, forbidden_keys=["aa"])

        for _ in range(200):
            assert "aa" not in generator.generate()

    def test_blank_forbidden_words_are_ignored(self):
        generator = KeyGenerator(forbidden_keys=[""])
        assert not generator.is_forbidden("anything")

    def test_reserved_paths_are_redrawn(self):
        """A key equal to a path the app serves itself is never handed out."""
        generator = KeyGenerator(unique_key_length=6)
        draws = [list("HEALTH"), list("health"), list("abcdef")]

        with patch("shortener.keygen.random.choices", side_effect=draws) as choices:
            key = generator.generate()

        assert key == "abcdef"
        assert choices.call_count == 3

    def test_reserved_paths_only_match_whole_keys(self):
        generator = KeyGenerator()

        assert generator.is_forbidden("api")
        assert not generator.is_forbidden("apix1")

    def test_empty_alphabet_rejected(self):
        with pytest.raises(ValueError, match="alphabet"):
            KeyGenerator(key_chars="")

    @pytest.mark.parametrize("length", [0, -3])
    def test_non_positive_length_rejected(self, length):
        with pytest.raises(ValueError, match="length"):
            KeyGenerator(unique_key_length=length)
