"""Deadline Rules: deadline day closes at 00:00 UTC, null deadlines, staleness cutoff."""

from datetime import date, datetime, timedelta, timezone

from jobboard.core.deadlines import (
    days_from_today, deadline_instant, is_deadline_passed, stale_cutoff, utc_today,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_yesterday_deadline_has_passed():
    assert is_deadline_passed(date(2024, 5, 31), NOW)


def test_deadline_day_is_closed_after_midnight_utc():
    assert is_deadline_passed(date(2024, 6, 1), NOW)


def test_deadline_day_at_exactly_midnight_is_still_open():
    midnight = datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
    assert not is_deadline_passed(date(2024, 6, 1), midnight)
    assert is_deadline_passed(date(2024, 6, 1), midnight + timedelta(seconds=1))


def test_deadline_compares_in_utc():
    # 21:00 on May 31st in UTC-5 is 02:00 on June 1st in UTC
    evening = datetime(2024, 5, 31, 21, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert is_deadline_passed(date(2024, 6, 1), evening)


def test_deadline_instant_is_utc_midnight():
    assert deadline_instant(date(2024, 6, 1)) == datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_future_and_null_deadlines_never_pass():
    assert not is_deadline_passed(date(2024, 6, 2), NOW)
    assert not is_deadline_passed(None, NOW)


def test_long_expired_deadline():
    assert is_deadline_passed(date(2024, 1, 1), NOW)


def test_utc_today_converts_other_timezones():
    # 23:30 in UTC-5 on May 31st is already June 1st in UTC
    late_evening = datetime(2024, 5, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert utc_today(late_evening) == date(2024, 6, 1)


def test_stale_cutoff_is_seven_days_back_by_default():
    assert stale_cutoff(NOW) == NOW - timedelta(days=7)
    assert stale_cutoff(NOW, 2) == NOW - timedelta(days=2)


def test_days_from_today():
    assert days_from_today(NOW, 3) == date(2024, 6, 4)
