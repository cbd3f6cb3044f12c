"""
Tests for business-day resolution and minute rounding
"""
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from attendance_tracker.utils.datetime_utils import (
    ensure_utc,
    iso_local,
    now_utc,
    resolve_today,
    round_minutes,
)

IST = ZoneInfo("Asia/Kolkata")
UTC = timezone.utc


def test_resolve_today_truncates_to_local_midnight():
    """10:00 IST on 2025-03-14 belongs to the 2025-03-14 bucket starting at IST midnight."""
    now = datetime(2025, 3, 14, 4, 30, tzinfo=UTC)  # 10:00 IST
    bucket = resolve_today(now, IST)
    assert bucket.day == date(2025, 3, 14)
    assert bucket.start == datetime(2025, 3, 14, 0, 0, tzinfo=IST)
    assert bucket.end - bucket.start == timedelta(hours=24)
    assert bucket.next_day == date(2025, 3, 15)


def test_resolve_today_uses_business_timezone_not_utc_date():
    """20:00 UTC on the 14th is already the 15th in IST."""
    now = datetime(2025, 3, 14, 20, 0, tzinfo=UTC)
    assert resolve_today(now, IST).day == date(2025, 3, 15)
    assert resolve_today(now, UTC).day == date(2025, 3, 14)


def test_bucket_is_half_open():
    bucket = resolve_today(datetime(2025, 3, 14, 6, 0, tzinfo=UTC), IST)
    assert bucket.contains(bucket.start)
    assert bucket.contains(bucket.end - timedelta(milliseconds=1))
    assert not bucket.contains(bucket.end)
    assert resolve_today(bucket.end, IST).day == date(2025, 3, 15)


def test_resolve_today_reads_naive_as_utc():
    naive = datetime(2025, 3, 14, 20, 0)
    assert resolve_today(naive, IST) == resolve_today(naive.replace(tzinfo=UTC), IST)


def test_round_minutes_half_up_from_milliseconds():
    assert round_minutes(timedelta(milliseconds=90_500)) == 2
    assert round_minutes(timedelta(milliseconds=89_999)) == 1
    assert round_minutes(timedelta(seconds=30)) == 1
    assert round_minutes(timedelta(milliseconds=29_999)) == 0
    assert round_minutes(timedelta(minutes=55)) == 55
    assert round_minutes(timedelta(0)) == 0


def test_round_minutes_ignores_sub_millisecond_part():
    # 29.9999 s is 29 999 ms, which rounds down
    assert round_minutes(timedelta(microseconds=29_999_900)) == 0


def test_now_utc_is_aware_with_millisecond_resolution():
    now = now_utc()
    assert now.tzinfo is not None
    assert now.microsecond % 1000 == 0


def test_ensure_utc_and_iso_local():
    naive = datetime(2025, 1, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
    assert ensure_utc(None) is None
    assert iso_local(naive, IST) == "2025-01-01T17:30:00+05:30"
    assert iso_local(None, IST) is None
