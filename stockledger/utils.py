from __future__ import annotations

from datetime import date, datetime

ISO_DATE_FORMAT = "%Y-%m-%d"


def to_date(value: date | str) -> date:
    """Accept a date (or datetime) or a yyyy-mm-dd string and return a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), ISO_DATE_FORMAT).date()
    except ValueError:
        raise ValueError(f"Invalid date {value!r}; expected yyyy-mm-dd.")


def to_iso(value: date | str | None) -> str | None:
    # Zero-padded ISO text keeps lexical order equal to calendar order on disk.
    if value is None:
        return None
    return to_date(value).isoformat()
