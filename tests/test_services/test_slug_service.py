"""Tests for slug generation."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from sitegen.services.slug_service import MAX_SLUG_LENGTH, generate_slug, unique_slug


class TestGenerateSlug:
    def test_basic(self) -> None:
        assert generate_slug("Temporal Dead Zone") == "temporal-dead-zone"

    def test_punctuation_collapses(self) -> None:
        assert generate_slug("call(), apply() & bind()") == "call-apply-bind"

    def test_unicode_is_transliterated(self) -> None:
        assert generate_slug("Café Résumé") == "cafe-resume"

    def test_empty_falls_back(self) -> None:
        assert generate_slug("!!!") == "section"

    def test_leading_digit_is_prefixed(self) -> None:
        assert generate_slug("2 Arrays") == "s-2-arrays"

    def test_long_text_cut_at_word(self) -> None:
        slug = generate_slug("word " * 40)
        assert len(slug) <= MAX_SLUG_LENGTH
        assert not slug.endswith("-")
        assert slug.endswith("word")


class TestUniqueSlug:
    def test_suffixes(self) -> None:
        seen: set[str] = set()
        assert unique_slug("Example", seen) == "example"
        assert unique_slug("Example", seen) == "example-2"
        assert unique_slug("Example", seen) == "example-3"
        assert seen == {"example", "example-2", "example-3"}


@given(st.text(max_size=200))
def test_slug_is_always_url_safe(text: str) -> None:
    slug = generate_slug(text)
    assert slug
    assert all(c.isascii() and (c.isalnum() or c == "-") for c in slug)
    assert not slug[0].isdigit()
