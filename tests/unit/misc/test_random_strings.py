"""Tests for random string generation."""

import pytest

from credkit.core.errors import MalformedInputError
from credkit.misc.random_strings import ALPHABETS, create_random


class TestCreateRandom:
    """Tests for create_random."""

    @pytest.mark.parametrize("kind", ["alphanumeric", "numeric"])
    def test_length_and_alphabet(self, kind: str) -> None:
        value = create_random(32, kind)
        assert len(value) == 32
        assert set(value) <= set(ALPHABETS[kind])

    def test_no_ambiguous_characters(self) -> None:
        assert not set(create_random(500)) & set("0oil")

    def test_zero_length(self) -> None:
        assert create_random(0) == ""

    def test_invalid_type(self) -> None:
        with pytest.raises(MalformedInputError):
            create_random(8, "hex")
