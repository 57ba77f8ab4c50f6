import pytest

from healthcheck.core.utils import collapse_whitespace, kb, mb, resource_name, trim_words


def test_collapse_whitespace():
    assert collapse_whitespace("  a \n\t b  ") == "a b"
    assert collapse_whitespace(None) == ""


@pytest.mark.parametrize("limit", [10, 11, 25, 50])
def test_trim_words_stays_within_limit(limit):
    text = "alpha beta gamma delta epsilon zeta eta theta iota kappa"
    trimmed = trim_words(text, limit)
    assert len(trimmed) <= limit
    assert trimmed.endswith("…")
    assert text.startswith(trimmed[:-1].rstrip())


def test_trim_words_keeps_short_text():
    assert trim_words("short", 5) == "short"


def test_trim_words_prefers_word_boundary():
    assert trim_words("hello wonderful world", 20) == "hello wonderful…"
    assert trim_words("abcdefghijklmnop", 8) == "abcdefg…"


def test_resource_name_and_sizes():
    assert resource_name("https://cdn.example.com/img/Hero%20Banner.jpg?w=800") == "Hero Banner.jpg"
    assert resource_name("https://cdn.example.com/") == "cdn.example.com"
    assert kb(2048) == 2.0
    assert mb(3 * 1024 * 1024) == 3.0
