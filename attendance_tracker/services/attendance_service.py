"""
Attendance service: check-in/out and breaks for one employee per business day,
live status across employees, and history views.

Every mutating operation runs inside one repository transaction: load today's
record, validate, write. Preconditions are all checked before the first write,
so a rejected call never leaves partial state behind.

Minutes are rounded independently for each break and for the overall
check-in -> check-out span, so total_work_time can drift by one minute from
the raw (check_out - check_in - sum of raw breaks). total_work_time is only
written at check-out; between breaks it stays unset.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from math import ceil
from typing import Dict, Iterable, List, Optional, Tuple

from attendance_tracker.core.constants import (
    LIVE_CHECKED_OUT,
    LIVE_ON_BREAK,
    LIVE_WORKING,
    WEEKDAY_LABELS,
)
from attendance_tracker.core.errors import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    AlreadyOnBreak,
    NoAttendanceToday,
    NotCheckedIn,
    NotFound,
    NotOnBreak,
)
from attendance_tracker.models.attendance import (
    AttendanceRecord,
    AttendanceStatus,
    BreakRecord,
    active_break,
)
from attendance_tracker.repositories.attendance_repository import (
    AttendanceRepository,
    RecordConflict,
)
from attendance_tracker.utils.datetime_utils import (
    DayBucket,
    minutes_between,
    now_utc,
    resolve_today,
)

_log = logging.getLogger(__name__)


@dataclass
class CheckInResult:
    record: AttendanceRecord
    check_in_time: datetime


@dataclass
class CheckOutResult:
    record: AttendanceRecord
    check_out_time: datetime
    total_work_time: int
    total_break_time: int


@dataclass
class BreakStartResult:
    break_record: BreakRecord
    start_time: datetime


@dataclass
class BreakEndResult:
    break_record: BreakRecord
    duration: int
    total_break_time: int


@dataclass
class TodayStatus:
    record: Optional[AttendanceRecord] = None
    is_checked_in: bool = False
    is_checked_out: bool = False
    is_on_break: bool = False
    current_break: Optional[BreakRecord] = None


@dataclass
class LiveStatus:
    working: List[AttendanceRecord] = field(default_factory=list)
    on_break: List[AttendanceRecord] = field(default_factory=list)
    checked_out: List[AttendanceRecord] = field(default_factory=list)
    total_present: int = 0

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "working": len(self.working),
            "on_break": len(self.on_break),
            "checked_out": len(self.checked_out),
        }


@dataclass
class HistoryFilters:
    """
    Filters for the management history view.

    `day` selects a single business day and takes precedence over
    start_date/end_date. `visible_user_ids` is the caller's population as
    decided by the authorization layer; None means unrestricted.
    """
    day: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    user_id: Optional[int] = None
    department_id: Optional[int] = None
    visible_user_ids: Optional[Iterable[int]] = None


@dataclass
class HistoryPage:
    records: List[AttendanceRecord]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0


def live_bucket(record: AttendanceRecord) -> Optional[str]:
    """
    Classify a day record for the live board.

    checked-out wins over on-break, which wins over working. Records with
    no check-in and no active break belong to no bucket.
    """
    if record.check_out is not None:
        return LIVE_CHECKED_OUT
    if active_break(record) is not None:
        return LIVE_ON_BREAK
    if record.check_in is not None:
        return LIVE_WORKING
    return None


class AttendanceService:
    """
    Attendance state machine for (employee, business day):
    NOT_STARTED -> CHECKED_IN <-> ON_BREAK, CHECKED_IN -> CHECKED_OUT.
    """

    def __init__(self, repository: AttendanceRepository, tz: tzinfo):
        self.repo = repository
        self.tz = tz

    def today(self, now: Optional[datetime] = None) -> DayBucket:
        return resolve_today(now or now_utc(), self.tz)

    # --- transitions ---

    def check_in(self, user_id: int, now: Optional[datetime] = None) -> CheckInResult:
        now = now or now_utc()
        bucket = self.today(now)

        try:
            with self.repo.transaction():
                record = self.repo.get_for_day(user_id, bucket, for_update=True)
                if record is not None and record.check_in is not None:
                    raise AlreadyCheckedIn()

                if record is None:
                    record = AttendanceRecord(
                        user_id=user_id,
                        date=bucket.day,
                        check_in=now,
                        status=AttendanceStatus.PRESENT,
                        total_break_time=0,
                        total_work_time=None,
                    )
                    self.repo.add_record(record)
                else:
                    # Record without check_in: not created by this service, repair it
                    record.check_in = now
                    record.status = AttendanceStatus.PRESENT
                record_id = record.id
        except RecordConflict:
            # Lost the race against a concurrent check-in for the same day
            raise AlreadyCheckedIn()

        _log.info("check_in: user_id=%s record_id=%s day=%s", user_id, record_id, bucket.day)
        return CheckInResult(record=record, check_in_time=now)

    def check_out(self, user_id: int, now: Optional[datetime] = None) -> CheckOutResult:
        now = now or now_utc()
        bucket = self.today(now)

        with self.repo.transaction():
            record = self.repo.get_for_day(user_id, bucket, for_update=True)
            if record is None or record.check_in is None:
                raise NotCheckedIn()
            if record.check_out is not None:
                raise AlreadyCheckedOut()

            open_break = active_break(record)
            if open_break is not None:
                self._close_break(open_break, now)

            total_break_time = sum(b.duration or 0 for b in record.breaks)
            elapsed = minutes_between(record.check_in, now)
            total_work_time = elapsed - total_break_time

            record.check_out = now
            record.total_break_time = total_break_time
            record.total_work_time = total_work_time
            record_id = record.id
            closed_break_id = open_break.id if open_break is not None else None

        if total_work_time < 0:
            _log.warning(
                "check_out: negative work time user_id=%s record_id=%s work=%s break=%s",
                user_id, record_id, total_work_time, total_break_time,
            )
        _log.info(
            "check_out: user_id=%s record_id=%s work=%s break=%s auto_closed_break=%s",
            user_id, record_id, total_work_time, total_break_time, closed_break_id,
        )
        return CheckOutResult(
            record=record,
            check_out_time=now,
            total_work_time=total_work_time,
            total_break_time=total_break_time,
        )

    def break_start(self, user_id: int, now: Optional[datetime] = None) -> BreakStartResult:
        now = now or now_utc()
        bucket = self.today(now)

        with self.repo.transaction():
            record = self.repo.get_for_day(user_id, bucket, for_update=True)
            if record is None or record.check_in is None:
                raise NotCheckedIn()
            if record.check_out is not None:
                raise AlreadyCheckedOut("Already checked out")
            if active_break(record) is not None:
                raise AlreadyOnBreak()

            brk = BreakRecord(start_time=now, end_time=None, duration=None)
            self.repo.add_break(record, brk)
            record_id, break_id = record.id, brk.id

        _log.info("break_start: user_id=%s record_id=%s break_id=%s", user_id, record_id, break_id)
        return BreakStartResult(break_record=brk, start_time=now)

    def break_end(self, user_id: int, now: Optional[datetime] = None) -> BreakEndResult:
        now = now or now_utc()
        bucket = self.today(now)

        with self.repo.transaction():
            record = self.repo.get_for_day(user_id, bucket, for_update=True)
            if record is None:
                raise NoAttendanceToday()
            brk = active_break(record)
            if brk is None:
                raise NotOnBreak()

            duration = self._close_break(brk, now)
            total_break_time = sum(b.duration or 0 for b in record.breaks)
            record.total_break_time = total_break_time
            record_id, break_id = record.id, brk.id

        _log.info(
            "break_end: user_id=%s record_id=%s break_id=%s duration=%s total_break=%s",
            user_id, record_id, break_id, duration, total_break_time,
        )
        return BreakEndResult(break_record=brk, duration=duration, total_break_time=total_break_time)

    @staticmethod
    def _close_break(brk: BreakRecord, now: datetime) -> int:
        brk.end_time = now
        brk.duration = minutes_between(brk.start_time, now)
        return brk.duration

    # --- reads ---

    def get_today(self, user_id: int, now: Optional[datetime] = None) -> TodayStatus:
        bucket = self.today(now)
        with self.repo.snapshot():
            record = self.repo.get_for_day(user_id, bucket)
        if record is None:
            return TodayStatus()

        current = active_break(record)
        return TodayStatus(
            record=record,
            is_checked_in=record.check_in is not None,
            is_checked_out=record.check_out is not None,
            is_on_break=current is not None,
            current_break=current,
        )

    def get_live_status(self, now: Optional[datetime] = None) -> LiveStatus:
        bucket = self.today(now)
        with self.repo.snapshot():
            records = self.repo.list_for_day(bucket)

        status = LiveStatus(total_present=len(records))
        buckets = {
            LIVE_WORKING: status.working,
            LIVE_ON_BREAK: status.on_break,
            LIVE_CHECKED_OUT: status.checked_out,
        }
        for record in records:
            kind = live_bucket(record)
            if kind is not None:
                buckets[kind].append(record)
        return status

    def get_history(
        self,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        *,
        limit: int = 30,
        offset: int = 0,
    ) -> List[AttendanceRecord]:
        """Own records, most recent day first, at most `limit` of them."""
        with self.repo.snapshot():
            records, _ = self.repo.list_records(
                user_id=user_id,
                start_date=start_date,
                end_date=end_date,
                offset=offset,
                limit=limit,
            )
        return records

    def get_all_history(self, filters: HistoryFilters, page: int = 1, limit: int = 20) -> HistoryPage:
        start_date, end_date = filters.start_date, filters.end_date
        if filters.day is not None:
            start_date = end_date = filters.day

        user_ids = filters.visible_user_ids
        if user_ids is not None:
            user_ids = set(user_ids)
            if filters.user_id is not None and filters.user_id not in user_ids:
                return HistoryPage(records=[], page=page, limit=limit, total=0)

        with self.repo.snapshot():
            records, total = self.repo.list_records(
                user_id=filters.user_id,
                user_ids=user_ids,
                department_id=filters.department_id,
                start_date=start_date,
                end_date=end_date,
                offset=(page - 1) * limit,
                limit=limit,
            )
        return HistoryPage(records=records, page=page, limit=limit, total=total)

    def get_record(self, record_id: int) -> AttendanceRecord:
        with self.repo.snapshot():
            record = self.repo.get_record(record_id)
        if record is None:
            raise NotFound()
        return record

    def get_attendance_chart(self, now: Optional[datetime] = None, days: int = 7) -> List[Dict]:
        """Checked-in head count per business day for the last `days` days, oldest first."""
        today = self.today(now).day
        first = today - timedelta(days=days - 1)
        with self.repo.snapshot():
            counts = self.repo.checked_in_counts(first, today)

        chart = []
        for offset in range(days):
            day = first + timedelta(days=offset)
            chart.append({
                "date": day.isoformat(),
                "day": WEEKDAY_LABELS[day.weekday()],
                "count": counts.get(day, 0),
            })
        return chart

    # --- administration ---

    def reset_day(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """Delete all attendance of the business day containing `now`."""
        bucket = self.today(now)
        with self.repo.transaction():
            breaks_deleted, records_deleted = self.repo.delete_for_day(bucket)
        _log.warning(
            "reset_day: day=%s breaks_deleted=%s records_deleted=%s",
            bucket.day, breaks_deleted, records_deleted,
        )
        return breaks_deleted, records_deleted
