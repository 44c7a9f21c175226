import string

import pytest

from s25net.str_algos import to_lower, to_upper


def test_ascii_alphabet_conversion():
    assert to_lower(string.ascii_uppercase) == string.ascii_lowercase
    assert to_upper(string.ascii_lowercase) == string.ascii_uppercase


def test_non_letters_are_kept():
    text = "0123456789 !?-_"
    assert to_lower(text) == text
    assert to_upper(text) == text


def test_non_ascii_letters_are_untouched():
    assert to_lower("ÄÖÜ") == "ÄÖÜ"
    assert to_upper("äöüß") == "äöüß"


def test_single_characters():
    assert to_lower("Q") == "q"
    assert to_upper("q") == "Q"


@pytest.mark.parametrize("text", ["Hello World", "MiXeD 42", ""])
def test_idempotent_and_consistent(text):
    lowered = to_lower(text)
    assert to_lower(lowered) == lowered
    assert to_lower(to_upper(text)) == lowered
    assert len(to_upper(text)) == len(text)