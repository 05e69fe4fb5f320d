"""Document date handling: lax front matter input -> display strings."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pendulum
from pendulum.parsing.exceptions import ParserError

DEFAULT_DATE_FORMAT = "MMMM D, YYYY"

# Front matter keywords resolved at build time instead of parsed
_KEYWORDS = frozenset({"today", "now", "last-modified"})


def parse_datetime(value: str | date | datetime, default_tz: str = "UTC") -> datetime:
    """Parse a lax date value into a timezone-aware datetime.

    Accepts what YAML hands us for a ``date:`` key:
    - ``date`` and ``datetime`` objects (naive values get ``default_tz``)
    - 2023-01-05
    - 2023-01-05 10:30
    - ISO 8601 variants with T separator and offset
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value
    if isinstance(value, date):
        return pendulum.datetime(value.year, value.month, value.day, tz=default_tz)

    parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def resolve_document_date(
    value: object,
    modified_at: datetime | None = None,
    default_tz: str = "UTC",
) -> datetime | None:
    """Resolve a front matter ``date`` value, including the Quarto keywords.

    ``last-modified`` uses *modified_at* (the file mtime); ``today`` and
    ``now`` resolve to the build time.  Unparseable values return ``None``.
    """
    if value is None:
        return None
    if isinstance(value, str) and value.strip() in _KEYWORDS:
        keyword = value.strip()
        if keyword == "last-modified":
            return modified_at
        return now_utc()
    if not isinstance(value, (str, date, datetime)):
        return None
    try:
        return parse_datetime(value, default_tz=default_tz)
    except (ValueError, ParserError):
        return None


def format_display_date(dt: datetime, fmt: str = DEFAULT_DATE_FORMAT) -> str:
    """Format a datetime with a pendulum token format (e.g. ``MMMM D, YYYY``)."""
    return pendulum.instance(dt).format(fmt)


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)
