"""
Timezone-aware datetime helpers.
- Store and compute in UTC in DB.
- Group attendance by business day: local midnight to the next local midnight
  in the configured BUSINESS_TZ, as a half-open interval.
- API responses expose datetimes in the business timezone.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional

UTC = timezone.utc
_DAY = timedelta(hours=24)


@dataclass(frozen=True)
class DayBucket:
    """Business day `day`, spanning [start, end) with start at local midnight."""
    day: date
    start: datetime
    end: datetime

    @property
    def next_day(self) -> date:
        """Exclusive upper bound for date-column range queries."""
        return self.day + timedelta(days=1)

    def contains(self, dt: datetime) -> bool:
        return self.start <= ensure_utc(dt) < self.end


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware), truncated to millisecond resolution."""
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def resolve_today(now: datetime, tz: tzinfo) -> DayBucket:
    """
    Map an instant to its business-day bucket in `tz`.

    The bucket starts at local midnight and ends 24 hours later. Pure function
    of `now` and `tz`; naive `now` is read as UTC.
    """
    local = ensure_utc(now).astimezone(tz)
    start = datetime.combine(local.date(), time.min, tzinfo=tz)
    return DayBucket(day=local.date(), start=start, end=start + _DAY)


def day_bucket(day: date, tz: tzinfo) -> DayBucket:
    """Bucket for a given calendar day in `tz`."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    return DayBucket(day=day, start=start, end=start + _DAY)


def round_minutes(delta: timedelta) -> int:
    """
    Round a duration to whole minutes, half up, from its millisecond count.

    90_500 ms -> 2, 89_999 ms -> 1, 30_000 ms -> 1, 29_999 ms -> 0.
    """
    ms = delta // timedelta(milliseconds=1)
    return (ms + 30_000) // 60_000


def minutes_between(start: datetime, end: datetime) -> int:
    return round_minutes(ensure_utc(end) - ensure_utc(start))


def to_local(dt: Optional[datetime], tz: tzinfo) -> Optional[datetime]:
    """Convert to the business timezone. Naive datetimes are treated as UTC before converting."""
    if dt is None:
        return None
    return ensure_utc(dt).astimezone(tz)


def iso_local(dt: Optional[datetime], tz: tzinfo) -> Optional[str]:
    """Serialize as ISO-8601 with the business timezone offset."""
    if dt is None:
        return None
    return to_local(dt, tz).isoformat()
