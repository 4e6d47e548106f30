"""Date range resolution for time-filtered Control Room queries.

Turns a symbolic shortcut (``Today``, ``ThisWeek`` ...) or an explicit pair
of dates into a UTC :class:`DateRange`. Day boundaries are computed in the
local timezone and then converted to UTC, using the UTC offset in force on
each boundary day. The range can be rendered in the two timestamp formats
the API expects.
"""

import datetime as dt
import enum
from dataclasses import dataclass
from typing import Protocol

import structlog

from .errors import ValidationError

logger = structlog.get_logger(__name__)

_END_OF_DAY = dt.time(23, 59, 59, 999000)


class DateShortcut(str, enum.Enum):
    """Symbolic date ranges understood by :func:`resolve`."""

    YESTERDAY = "Yesterday"
    TODAY = "Today"
    SINCE_YESTERDAY = "SinceYesterday"
    THIS_WEEK = "ThisWeek"
    LAST_30_DAYS = "Last30Days"
    ONE_YEAR = "OneYear"


class DateFormat(enum.Enum):
    """Timestamp renderings used by the different endpoints."""

    # Audit search: milliseconds with UTC offset marker.
    AUDIT = "audit"
    # Bot Insight: second precision, no offset suffix.
    BOT_INSIGHT = "bot_insight"


class DatePicker(Protocol):
    """Interactive collaborator that asks the user for a date range.

    Returns a ``(start, end)`` pair, or ``None`` if the user cancelled.
    """

    def __call__(self) -> tuple[dt.date, dt.date] | None: ...


@dataclass(frozen=True)
class DateRange:
    """Concrete begin/end boundaries, both timezone-aware UTC datetimes."""

    begin_utc: dt.datetime
    end_utc: dt.datetime

    def format(self, date_format: DateFormat) -> tuple[str, str]:
        """Render ``(begin, end)`` in the requested wire format."""
        return (
            format_timestamp(self.begin_utc, date_format),
            format_timestamp(self.end_utc, date_format),
        )


def format_timestamp(value: dt.datetime, date_format: DateFormat) -> str:
    """Render a datetime as a UTC timestamp string.

    Examples:
        AUDIT: ``2024-05-15T00:00:00.000Z``
        BOT_INSIGHT: ``2024-05-15T00:00:00``
    """
    utc = value.astimezone(dt.timezone.utc)
    base = utc.strftime("%Y-%m-%dT%H:%M:%S")
    if date_format is DateFormat.BOT_INSIGHT:
        return base
    return f"{base}.{utc.microsecond // 1000:03d}Z"


def _to_utc(value: dt.datetime) -> dt.datetime:
    # Millisecond precision is all the API understands
    utc = value.astimezone(dt.timezone.utc)
    return utc.replace(microsecond=utc.microsecond // 1000 * 1000)


def _start_of_day(day: dt.date, tz: dt.tzinfo | None) -> dt.datetime:
    # A naive datetime converts with the system zone rules in force on that day
    return _to_utc(dt.datetime.combine(day, dt.time.min, tzinfo=tz))


def _end_of_day(day: dt.date, tz: dt.tzinfo | None) -> dt.datetime:
    return _to_utc(dt.datetime.combine(day, _END_OF_DAY, tzinfo=tz))


def _parse_shortcut(shortcut: DateShortcut | str) -> DateShortcut:
    if isinstance(shortcut, DateShortcut):
        return shortcut
    for member in DateShortcut:
        if member.value.lower() == str(shortcut).lower():
            return member
    valid = ", ".join(member.value for member in DateShortcut)
    msg = f"Unknown date shortcut {shortcut!r}, expected one of: {valid}"
    raise ValidationError(msg)


def _resolve_shortcut(shortcut: DateShortcut, now: dt.datetime) -> DateRange:
    today = now.date()
    tz = now.tzinfo
    end_now = _to_utc(now)

    if shortcut is DateShortcut.YESTERDAY:
        # Historical behavior: end is the end of *today*, not yesterday.
        return DateRange(
            _start_of_day(today - dt.timedelta(days=1), tz),
            _end_of_day(today, tz),
        )
    if shortcut is DateShortcut.TODAY:
        return DateRange(_start_of_day(today, tz), end_now)
    if shortcut is DateShortcut.SINCE_YESTERDAY:
        return DateRange(_start_of_day(today - dt.timedelta(days=1), tz), end_now)
    if shortcut is DateShortcut.THIS_WEEK:
        monday = today - dt.timedelta(days=today.weekday())
        return DateRange(_start_of_day(monday, tz), end_now)
    if shortcut is DateShortcut.LAST_30_DAYS:
        return DateRange(_start_of_day(today - dt.timedelta(days=30), tz), end_now)
    # ONE_YEAR
    return DateRange(_start_of_day(today - dt.timedelta(days=365), tz), end_now)


def _resolve_explicit(
    begin_date: dt.date,
    end_date: dt.date,
    tz: dt.tzinfo | None,
) -> DateRange:
    if isinstance(begin_date, dt.datetime):
        begin_date = begin_date.date()
    if isinstance(end_date, dt.datetime):
        end_date = end_date.date()
    if begin_date > end_date:
        msg = f"begin_date {begin_date} is after end_date {end_date}"
        raise ValidationError(msg)
    return DateRange(_start_of_day(begin_date, tz), _end_of_day(end_date, tz))


def resolve(
    shortcut: DateShortcut | str | None = None,
    begin_date: dt.date | None = None,
    end_date: dt.date | None = None,
    *,
    now: dt.datetime | None = None,
    picker: DatePicker | None = None,
) -> DateRange | None:
    """Resolve a shortcut, an explicit date pair, or an interactive pick.

    Args:
        shortcut: One of :class:`DateShortcut` (or its string value).
        begin_date: First day of an explicit range.
        end_date: Last day of an explicit range (inclusive).
        now: Reference moment; defaults to the current local time. Day
            boundaries use the zone of an aware value (a ``ZoneInfo`` applies
            its DST rules per day) and the system local zone otherwise.
        picker: Collaborator used when neither a shortcut nor dates are
            given.

    Returns:
        The resolved :class:`DateRange`, or ``None`` if the interactive
        pick was cancelled.

    Raises:
        ValidationError: On unknown shortcuts, incomplete or inverted date
            pairs, a shortcut mixed with dates, or when no input and no
            picker is available.
    """
    if now is None:
        now = dt.datetime.now()

    has_dates = begin_date is not None or end_date is not None

    if shortcut is not None:
        if has_dates:
            msg = "A date shortcut cannot be combined with begin_date/end_date"
            raise ValidationError(msg)
        return _resolve_shortcut(_parse_shortcut(shortcut), now)

    if has_dates:
        if begin_date is None or end_date is None:
            msg = "begin_date and end_date must be supplied together"
            raise ValidationError(msg)
        return _resolve_explicit(begin_date, end_date, now.tzinfo)

    if picker is None:
        msg = "No date range given and no date picker available"
        raise ValidationError(msg)

    picked = picker()
    if picked is None:
        logger.info("Date range selection cancelled")
        return None
    return _resolve_explicit(picked[0], picked[1], now.tzinfo)
