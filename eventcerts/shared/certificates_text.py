from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime

from .certificates_layout import DEFAULT_DATE_FORMAT

VENUE_FALLBACK = "[Venue]"

_TOKEN_RE = re.compile(r"\{(EVENT_NAME|EVENT_DATE|VENUE)\}")
_DATE_TOKEN_RE = re.compile(r"YYYY|YY|MMMM|MMM|MM|M|DD|D")
_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass(frozen=True)
class CertificateData:
    participant_name: str
    event_title: str
    completion_date: date | str | None = None
    venue: str | None = None


def coerce_date(value: date | datetime | str | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported date value {value!r}")
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def format_event_date(
    value: date | datetime | str | None, fmt: str = DEFAULT_DATE_FORMAT
) -> str:
    """Render ``value`` with ``MMMM D, YYYY`` style tokens.

    Strings that do not parse as ISO dates come back unchanged.
    """
    parsed = coerce_date(value)
    if parsed is None:
        return value if isinstance(value, str) else ""

    def _token(match: re.Match) -> str:
        token = match.group(0)
        if token == "YYYY":
            return f"{parsed.year:04d}"
        if token == "YY":
            return f"{parsed.year % 100:02d}"
        if token == "MMMM":
            return _MONTHS[parsed.month - 1]
        if token == "MMM":
            return _MONTHS[parsed.month - 1][:3]
        if token == "MM":
            return f"{parsed.month:02d}"
        if token == "M":
            return str(parsed.month)
        if token == "DD":
            return f"{parsed.day:02d}"
        return str(parsed.day)

    return _DATE_TOKEN_RE.sub(_token, fmt)


def expand(
    template: str, data: CertificateData, date_format: str = DEFAULT_DATE_FORMAT
) -> str:
    """Substitute ``{EVENT_NAME}``, ``{EVENT_DATE}`` and ``{VENUE}`` in one pass."""
    values = {
        "EVENT_NAME": data.event_title or "",
        "EVENT_DATE": format_event_date(data.completion_date, date_format),
        "VENUE": data.venue or VENUE_FALLBACK,
    }
    return _TOKEN_RE.sub(lambda match: values[match.group(1)], template or "")


def expand_lines(
    template: str, data: CertificateData, date_format: str = DEFAULT_DATE_FORMAT
) -> list[str]:
    return expand(template, data, date_format).split("\n")
