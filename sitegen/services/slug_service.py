"""Slug generation for heading anchors and output file names."""

from __future__ import annotations

import re
import unicodedata

MAX_SLUG_LENGTH = 80


def generate_slug(text: str) -> str:
    """Generate a URL-safe anchor slug from heading text.

    - Normalize unicode to ASCII (NFKD)
    - Lowercase, strip
    - Replace runs of non-alphanumeric chars with hyphens
    - Strip leading/trailing hyphens
    - Truncate to 80 chars (don't cut mid-word if possible)
    - Return "section" for empty input
    """
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")

    if not text:
        return "section"

    if len(text) > MAX_SLUG_LENGTH:
        truncated = text[:MAX_SLUG_LENGTH]
        last_hyphen = truncated.rfind("-")
        if last_hyphen > 0:
            truncated = truncated[:last_hyphen]
        text = truncated.rstrip("-")

    # HTML ids used as CSS selectors must not start with a digit
    if text[0].isdigit():
        text = f"s-{text}"
    return text


def unique_slug(text: str, seen: set[str]) -> str:
    """Return a slug not yet in *seen* (appending -2, -3, ...) and record it."""
    base = generate_slug(text)
    slug = base
    counter = 2
    while slug in seen:
        slug = f"{base}-{counter}"
        counter += 1
    seen.add(slug)
    return slug
