import pytest

from dynamorepo.reserved_words import RESERVED_WORDS, is_reserved_word


@pytest.mark.parametrize("word", ["role", "ROLE", "Status", "name", "size", "timestamp"])
def test_reserved_words(word: str) -> None:
    assert is_reserved_word(word)


@pytest.mark.parametrize("word", ["firstName", "country", "email", "birthYearMonth", "id"])
def test_ordinary_field_names(word: str) -> None:
    assert not is_reserved_word(word)


def test_table_is_upper_case() -> None:
    assert all(word == word.upper() for word in RESERVED_WORDS)


def test_custom_reserved_words() -> None:
    assert is_reserved_word("country", frozenset({"COUNTRY"}))
    assert not is_reserved_word("role", frozenset({"COUNTRY"}))
