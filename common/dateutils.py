"""Date formatting helpers shared by notification and reminder messages."""

from datetime import date, datetime
from typing import Optional, Union

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
DISPLAY_DATETIME_FORMAT = "%H:%M - %d/%m/%Y"

DateLike = Union[str, date, datetime, None]


def format_iso_to_ymd(value: Optional[str]) -> str:
    """Return the ``YYYY-MM-DD`` part of an ISO-8601 string."""
    if not value:
        return ""
    return str(value).split("T")[0]


def _to_calendar_date(value: DateLike) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Only the date portion is parsed so the calendar day never shifts with the time zone.
    return parse_date(format_iso_to_ymd(value))


def format_date_for_display(value: DateLike, fmt: str = DISPLAY_DATE_FORMAT) -> str:
    if not value:
        return ""
    try:
        parsed = _to_calendar_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        return str(value)
    return parsed.strftime(fmt)


def format_datetime(value: DateLike, fmt: str = DISPLAY_DATETIME_FORMAT) -> str:
    if not value:
        return ""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = parse_datetime(str(value))
        except ValueError:
            parsed = None
        if parsed is None:
            return str(value)
    if timezone.is_aware(parsed):
        parsed = timezone.localtime(parsed)
    return parsed.strftime(fmt)


def format_date_to_ymd(value: Union[date, datetime]) -> str:
    if isinstance(value, datetime) and timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime("%Y-%m-%d")
