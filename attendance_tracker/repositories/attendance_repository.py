"""
Storage for attendance records and breaks.

AttendanceRepository is the contract the attendance service depends on;
SqlAlchemyAttendanceRepository is the production implementation over a
SQLAlchemy Session. Day-scoped lookups use the half-open range
[bucket.day, bucket.next_day) on the `date` column.
"""
import abc
import logging
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from attendance_tracker.core.errors import AlreadyOnBreak, AttendanceError, StorageFailure
from attendance_tracker.models.attendance import AttendanceRecord, BreakRecord
from attendance_tracker.models.employee import Employee
from attendance_tracker.utils.datetime_utils import DayBucket

_log = logging.getLogger(__name__)


class RecordConflict(Exception):
    """An attendance record already exists for this (user, day)."""


class AttendanceRepository(abc.ABC):
    """Operations the attendance service needs from the store."""

    @abc.abstractmethod
    def transaction(self):
        """
        Context manager wrapping one atomic unit of work.

        Commits on normal exit and rolls back on any exception. Driver errors
        are re-raised as StorageFailure; AttendanceError and RecordConflict
        propagate unchanged.
        """

    @abc.abstractmethod
    def snapshot(self):
        """Context manager for read-only access; driver errors become StorageFailure."""

    @abc.abstractmethod
    def get_for_day(self, user_id: int, bucket: DayBucket, for_update: bool = False) -> Optional[AttendanceRecord]:
        """The user's record for `bucket` with breaks loaded, or None."""

    @abc.abstractmethod
    def add_record(self, record: AttendanceRecord) -> AttendanceRecord:
        """Persist a new record; raises RecordConflict when (user, day) is taken."""

    @abc.abstractmethod
    def add_break(self, record: AttendanceRecord, brk: BreakRecord) -> BreakRecord:
        """Attach a new break to `record` and persist it; AlreadyOnBreak if one is still open."""

    @abc.abstractmethod
    def get_record(self, record_id: int) -> Optional[AttendanceRecord]:
        pass

    @abc.abstractmethod
    def list_for_day(self, bucket: DayBucket) -> List[AttendanceRecord]:
        """All users' records for `bucket`, fetched in one round trip."""

    @abc.abstractmethod
    def list_records(
        self,
        *,
        user_id: Optional[int] = None,
        user_ids: Optional[Iterable[int]] = None,
        department_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[AttendanceRecord], int]:
        """
        Filtered page of records, most recent day first, plus the total match count.

        `user_ids` restricts to a population (an empty collection matches
        nothing); `start_date`/`end_date` are inclusive.
        """

    @abc.abstractmethod
    def checked_in_counts(self, start_date: date, end_date: date) -> Dict[date, int]:
        """Records with check_in set, grouped by day, for the inclusive range."""

    @abc.abstractmethod
    def delete_for_day(self, bucket: DayBucket) -> Tuple[int, int]:
        """Delete every record of `bucket`; returns (breaks_deleted, records_deleted)."""


class SqlAlchemyAttendanceRepository(AttendanceRepository):

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except (AttendanceError, RecordConflict):
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageFailure(str(exc)) from exc
        except Exception:
            self.db.rollback()
            raise

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            raise StorageFailure(str(exc)) from exc

    def _day_query(self, bucket: DayBucket):
        return (
            self.db.query(AttendanceRecord)
            .filter(
                AttendanceRecord.date >= bucket.day,
                AttendanceRecord.date < bucket.next_day,
            )
        )

    def get_for_day(self, user_id, bucket, for_update=False):
        query = (
            self._day_query(bucket)
            .options(selectinload(AttendanceRecord.breaks))
            .filter(AttendanceRecord.user_id == user_id)
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def add_record(self, record):
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError as exc:
            _log.info(
                "attendance insert conflict: user_id=%s date=%s",
                record.user_id, record.date,
            )
            raise RecordConflict(str(exc.orig)) from exc
        return record

    def add_break(self, record, brk):
        record.breaks.append(brk)
        try:
            self.db.flush()
        except IntegrityError as exc:
            _log.info("active break conflict: attendance_id=%s", record.id)
            raise AlreadyOnBreak() from exc
        return brk

    def get_record(self, record_id):
        return (
            self.db.query(AttendanceRecord)
            .options(
                selectinload(AttendanceRecord.breaks),
                joinedload(AttendanceRecord.user),
            )
            .filter(AttendanceRecord.id == record_id)
            .first()
        )

    def list_for_day(self, bucket):
        return (
            self._day_query(bucket)
            .options(
                selectinload(AttendanceRecord.breaks),
                joinedload(AttendanceRecord.user),
            )
            .order_by(AttendanceRecord.check_in.asc(), AttendanceRecord.id.asc())
            .all()
        )

    def list_records(
        self,
        *,
        user_id=None,
        user_ids=None,
        department_id=None,
        start_date=None,
        end_date=None,
        offset=0,
        limit=None,
    ):
        query = self.db.query(AttendanceRecord)

        if user_ids is not None:
            user_ids = list(user_ids)
            if not user_ids:
                return [], 0
            query = query.filter(AttendanceRecord.user_id.in_(user_ids))
        if user_id is not None:
            query = query.filter(AttendanceRecord.user_id == user_id)
        if department_id is not None:
            query = query.join(Employee, AttendanceRecord.user_id == Employee.id).filter(
                Employee.department_id == department_id
            )
        if start_date is not None:
            query = query.filter(AttendanceRecord.date >= start_date)
        if end_date is not None:
            query = query.filter(AttendanceRecord.date <= end_date)

        total = query.count()

        page = (
            query.options(
                selectinload(AttendanceRecord.breaks),
                joinedload(AttendanceRecord.user),
            )
            .order_by(AttendanceRecord.date.desc(), AttendanceRecord.id.desc())
            .offset(offset)
        )
        if limit is not None:
            page = page.limit(limit)
        return page.all(), total

    def checked_in_counts(self, start_date, end_date):
        rows = (
            self.db.query(AttendanceRecord.date, func.count(AttendanceRecord.id))
            .filter(
                AttendanceRecord.date >= start_date,
                AttendanceRecord.date <= end_date,
                AttendanceRecord.check_in.isnot(None),
            )
            .group_by(AttendanceRecord.date)
            .all()
        )
        return {day: count for day, count in rows}

    def delete_for_day(self, bucket):
        record_ids = [row[0] for row in self._day_query(bucket).with_entities(AttendanceRecord.id).all()]
        if not record_ids:
            return 0, 0
        breaks_deleted = (
            self.db.query(BreakRecord)
            .filter(BreakRecord.attendance_id.in_(record_ids))
            .delete(synchronize_session=False)
        )
        records_deleted = (
            self.db.query(AttendanceRecord)
            .filter(AttendanceRecord.id.in_(record_ids))
            .delete(synchronize_session=False)
        )
        return breaks_deleted, records_deleted
