"""Tests for date range resolution.

All shortcut tests pin ``now`` so results are deterministic. The reference
moment is Wednesday 2024-05-15 13:45:12.345678 UTC.
"""

import datetime as dt
import time
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from controlroom_api import daterange
from controlroom_api.errors import ValidationError

UTC = dt.timezone.utc
NOW = dt.datetime(2024, 5, 15, 13, 45, 12, 345678, tzinfo=UTC)
NOW_MS = dt.datetime(2024, 5, 15, 13, 45, 12, 345000, tzinfo=UTC)


def _utc(*args) -> dt.datetime:
    return dt.datetime(*args, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Shortcuts
# ---------------------------------------------------------------------------


def test_today_begins_at_midnight_and_ends_now():
    """Today spans local midnight to the current moment."""
    result = daterange.resolve(daterange.DateShortcut.TODAY, now=NOW)
    assert result.begin_utc == _utc(2024, 5, 15)
    assert result.end_utc == NOW_MS


def test_yesterday_ends_at_end_of_today():
    """Yesterday keeps its historical end boundary: the end of today."""
    result = daterange.resolve(daterange.DateShortcut.YESTERDAY, now=NOW)
    assert result.begin_utc == _utc(2024, 5, 14)
    assert result.end_utc == _utc(2024, 5, 15, 23, 59, 59, 999000)


def test_since_yesterday_ends_now():
    """SinceYesterday starts yesterday at midnight and ends now."""
    result = daterange.resolve(daterange.DateShortcut.SINCE_YESTERDAY, now=NOW)
    assert result.begin_utc == _utc(2024, 5, 14)
    assert result.end_utc == NOW_MS


@pytest.mark.parametrize("day", range(13, 20))
def test_this_week_begins_on_monday(day):
    """ThisWeek starts on the most recent Monday whatever the weekday."""
    now = dt.datetime(2024, 5, day, 9, 30, tzinfo=UTC)
    result = daterange.resolve(daterange.DateShortcut.THIS_WEEK, now=now)
    assert result.begin_utc == _utc(2024, 5, 13)
    assert result.begin_utc.weekday() == 0
    assert result.end_utc == now


def test_last_30_days_begins_thirty_days_ago():
    """Last30Days starts at midnight thirty days before now."""
    result = daterange.resolve(daterange.DateShortcut.LAST_30_DAYS, now=NOW)
    assert result.begin_utc == _utc(2024, 4, 15)
    assert result.end_utc == NOW_MS


def test_one_year_begins_365_days_ago():
    """OneYear starts at midnight 365 days before now (2024 is a leap year)."""
    result = daterange.resolve(daterange.DateShortcut.ONE_YEAR, now=NOW)
    assert result.begin_utc == _utc(2023, 5, 16)


def test_shortcut_accepts_case_insensitive_string():
    """String shortcuts are matched ignoring case."""
    result = daterange.resolve("last30days", now=NOW)
    assert result.begin_utc == _utc(2024, 4, 15)


def test_unknown_shortcut_raises():
    """An unknown shortcut name is a validation error."""
    with pytest.raises(ValidationError, match="Unknown date shortcut"):
        daterange.resolve("LastDecade", now=NOW)


def test_shortcut_is_deterministic_for_fixed_now():
    """Resolving twice with the same now gives the same range."""
    first = daterange.resolve("Today", now=NOW)
    second = daterange.resolve("Today", now=NOW)
    assert first == second


def test_midnight_is_local_converted_to_utc():
    """Day boundaries are taken in the timezone of now, then made UTC."""
    plus_two = dt.timezone(dt.timedelta(hours=2))
    now = dt.datetime(2024, 5, 15, 1, 0, tzinfo=plus_two)
    result = daterange.resolve("Today", now=now)
    assert result.begin_utc == _utc(2024, 5, 14, 22, 0)
    assert result.end_utc == _utc(2024, 5, 14, 23, 0)
    assert result.end_utc.tzinfo == UTC


# ---------------------------------------------------------------------------
# Daylight saving changeovers
# ---------------------------------------------------------------------------

# Europe/Berlin switches from +01:00 to +02:00 on 2024-03-31.
BERLIN = ZoneInfo("Europe/Berlin")


@pytest.fixture
def berlin_local_time(monkeypatch):
    """Make Europe/Berlin the system local timezone for the test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "Europe/Berlin")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_last_30_days_across_dst_uses_offset_of_begin_day():
    """A begin day in winter time gets the winter offset, even if now is summer."""
    now = dt.datetime(2024, 4, 5, 12, 0, tzinfo=BERLIN)
    result = daterange.resolve("Last30Days", now=now)
    assert result.begin_utc == _utc(2024, 3, 5, 23, 0)
    assert result.end_utc == _utc(2024, 4, 5, 10, 0)


def test_this_week_across_dst_uses_offset_of_monday():
    """The Monday before a changeover Sunday is still in winter time."""
    now = dt.datetime(2024, 3, 31, 12, 0, tzinfo=BERLIN)
    result = daterange.resolve("ThisWeek", now=now)
    assert result.begin_utc == _utc(2024, 3, 24, 23, 0)


def test_explicit_winter_dates_resolved_in_summer():
    """Explicit winter days use the winter offset for both boundaries."""
    now = dt.datetime(2024, 7, 1, 12, 0, tzinfo=BERLIN)
    result = daterange.resolve(
        begin_date=dt.date(2024, 1, 10),
        end_date=dt.date(2024, 1, 11),
        now=now,
    )
    assert result.begin_utc == _utc(2024, 1, 9, 23, 0)
    assert result.end_utc == _utc(2024, 1, 11, 22, 59, 59, 999000)


def test_explicit_range_spanning_changeover():
    """Begin and end of one range can carry different offsets."""
    result = daterange.resolve(
        begin_date=dt.date(2024, 3, 30),
        end_date=dt.date(2024, 4, 1),
        now=dt.datetime(2024, 4, 2, tzinfo=BERLIN),
    )
    assert result.begin_utc == _utc(2024, 3, 29, 23, 0)
    assert result.end_utc == _utc(2024, 4, 1, 21, 59, 59, 999000)


def test_naive_now_uses_system_zone_rules_per_day(berlin_local_time):
    """A naive now resolves each boundary day with the system zone's DST rules."""
    result = daterange.resolve("Last30Days", now=dt.datetime(2024, 4, 5, 12, 0))
    assert result.begin_utc == _utc(2024, 3, 5, 23, 0)
    assert result.end_utc == _utc(2024, 4, 5, 10, 0)


def test_naive_now_explicit_dates_use_system_zone_rules(berlin_local_time):
    """Explicit winter dates resolved on a summer day keep the winter offset."""
    result = daterange.resolve(
        begin_date=dt.date(2024, 1, 10),
        end_date=dt.date(2024, 1, 11),
        now=dt.datetime(2024, 7, 1, 12, 0),
    )
    assert result.begin_utc == _utc(2024, 1, 9, 23, 0)


def test_picker_range_uses_system_zone_rules(berlin_local_time):
    """Picked dates on the winter side of a changeover get the winter offset."""
    picker = MagicMock(return_value=(dt.date(2024, 2, 1), dt.date(2024, 2, 2)))
    result = daterange.resolve(now=dt.datetime(2024, 7, 1, 12, 0), picker=picker)
    assert result.begin_utc == _utc(2024, 1, 31, 23, 0)
    assert result.end_utc == _utc(2024, 2, 2, 22, 59, 59, 999000)


# ---------------------------------------------------------------------------
# Explicit dates
# ---------------------------------------------------------------------------


def test_explicit_dates_cover_whole_days():
    """Begin is normalized to 00:00:00.000 and end to 23:59:59.999."""
    result = daterange.resolve(
        begin_date=dt.date(2024, 1, 1),
        end_date=dt.date(2024, 1, 31),
        now=NOW,
    )
    assert result.begin_utc == _utc(2024, 1, 1)
    assert result.end_utc == _utc(2024, 1, 31, 23, 59, 59, 999000)


def test_explicit_same_day_range_is_valid():
    """A one-day range has begin before end."""
    result = daterange.resolve(
        begin_date=dt.date(2024, 1, 1),
        end_date=dt.date(2024, 1, 1),
        now=NOW,
    )
    assert result.begin_utc < result.end_utc


def test_begin_date_without_end_date_raises():
    """Supplying only begin_date is a validation error."""
    with pytest.raises(ValidationError, match="together"):
        daterange.resolve(begin_date=dt.date(2024, 1, 1), now=NOW)


def test_end_date_without_begin_date_raises():
    """Supplying only end_date is a validation error."""
    with pytest.raises(ValidationError, match="together"):
        daterange.resolve(end_date=dt.date(2024, 1, 1), now=NOW)


def test_inverted_dates_raise():
    """begin_date after end_date is a validation error."""
    with pytest.raises(ValidationError, match="after"):
        daterange.resolve(
            begin_date=dt.date(2024, 2, 1),
            end_date=dt.date(2024, 1, 1),
            now=NOW,
        )


def test_shortcut_with_dates_raises():
    """A shortcut cannot be mixed with explicit dates."""
    with pytest.raises(ValidationError, match="cannot be combined"):
        daterange.resolve("Today", begin_date=dt.date(2024, 1, 1), now=NOW)


# ---------------------------------------------------------------------------
# Interactive picker
# ---------------------------------------------------------------------------


def test_picker_used_without_arguments():
    """With no shortcut or dates the picker supplies the range."""
    picker = MagicMock(return_value=(dt.date(2024, 3, 1), dt.date(2024, 3, 2)))
    result = daterange.resolve(now=NOW, picker=picker)
    picker.assert_called_once_with()
    assert result.begin_utc == _utc(2024, 3, 1)
    assert result.end_utc == _utc(2024, 3, 2, 23, 59, 59, 999000)


def test_cancelled_picker_returns_none():
    """A cancelled pick yields None rather than an error."""
    picker = MagicMock(return_value=None)
    assert daterange.resolve(now=NOW, picker=picker) is None


def test_no_arguments_and_no_picker_raises():
    """Without any input or picker there is nothing to resolve."""
    with pytest.raises(ValidationError, match="no date picker"):
        daterange.resolve(now=NOW)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def test_audit_format_has_milliseconds_and_offset():
    """Audit timestamps carry milliseconds and a Z offset marker."""
    result = daterange.resolve("Today", now=NOW)
    assert result.format(daterange.DateFormat.AUDIT) == (
        "2024-05-15T00:00:00.000Z",
        "2024-05-15T13:45:12.345Z",
    )


def test_bot_insight_format_has_seconds_only():
    """Bot Insight timestamps stop at seconds and carry no offset."""
    result = daterange.resolve("Today", now=NOW)
    assert result.format(daterange.DateFormat.BOT_INSIGHT) == (
        "2024-05-15T00:00:00",
        "2024-05-15T13:45:12",
    )


def test_end_of_day_formats_with_999_milliseconds():
    """The fixed-window end renders as 23:59:59.999."""
    result = daterange.resolve("Yesterday", now=NOW)
    _, end = result.format(daterange.DateFormat.AUDIT)
    assert end == "2024-05-15T23:59:59.999Z"
