"""
Tests for the SQLAlchemy attendance repository and the service on top of it
"""
import threading
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine, inspect as sa_inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from attendance_tracker.core.errors import AlreadyCheckedIn, AlreadyOnBreak, AttendanceError, StorageFailure
from attendance_tracker.db.base import Base
from attendance_tracker.db.session import SessionLocal, serialize_sqlite_writes
from attendance_tracker.models import AttendanceRecord, AttendanceStatus, BreakRecord, Department, Employee, Role
from attendance_tracker.repositories.attendance_repository import RecordConflict, SqlAlchemyAttendanceRepository
from attendance_tracker.services.attendance_service import AttendanceService, HistoryFilters
from attendance_tracker.utils.datetime_utils import resolve_today

IST = ZoneInfo("Asia/Kolkata")
T0 = datetime(2025, 3, 14, 3, 30, tzinfo=timezone.utc)
TODAY = date(2025, 3, 14)


@pytest.fixture
def repo(db):
    return SqlAlchemyAttendanceRepository(db)


@pytest.fixture
def service(repo):
    return AttendanceService(repo, IST)


def test_record_conflict_on_duplicate_user_day(db, repo, employee):
    with repo.transaction():
        repo.add_record(AttendanceRecord(user_id=employee.id, date=TODAY, status=AttendanceStatus.PRESENT, total_break_time=0))

    with pytest.raises(RecordConflict):
        with repo.transaction():
            repo.add_record(AttendanceRecord(user_id=employee.id, date=TODAY, status=AttendanceStatus.PRESENT, total_break_time=0))

    assert db.query(AttendanceRecord).count() == 1


def test_uniqueness_backstop_turns_into_already_checked_in(db, employee):
    """A stale read that misses the existing row still ends in AlreadyCheckedIn."""
    class StaleReadRepository(SqlAlchemyAttendanceRepository):
        def get_for_day(self, user_id, bucket, for_update=False):
            return None

    AttendanceService(SqlAlchemyAttendanceRepository(db), IST).check_in(employee.id, now=T0)

    stale = AttendanceService(StaleReadRepository(db), IST)
    with pytest.raises(AlreadyCheckedIn):
        stale.check_in(employee.id, now=T0 + timedelta(minutes=1))
    assert db.query(AttendanceRecord).count() == 1


def test_service_round_trip_persists(db, service, employee):
    service.check_in(employee.id, now=T0)
    service.break_start(employee.id, now=T0 + timedelta(minutes=10))
    service.break_end(employee.id, now=T0 + timedelta(minutes=15))
    service.check_out(employee.id, now=T0 + timedelta(minutes=60))

    db.expire_all()
    record = db.query(AttendanceRecord).one()
    assert record.date == TODAY
    assert record.total_break_time == 5
    assert record.total_work_time == 55
    assert [b.duration for b in record.breaks] == [5]


def test_check_out_auto_closes_break_persisted(db, service, employee):
    service.check_in(employee.id, now=T0)
    service.break_start(employee.id, now=T0 + timedelta(minutes=10))
    service.check_out(employee.id, now=T0 + timedelta(minutes=20))

    db.expire_all()
    brk = db.query(BreakRecord).one()
    assert brk.end_time is not None
    assert brk.duration == 10
    record = db.query(AttendanceRecord).one()
    assert record.total_break_time == 10
    assert record.total_work_time == 10


def test_get_for_day_uses_business_day(repo, service, employee):
    service.check_in(employee.id, now=T0)
    assert repo.get_for_day(employee.id, resolve_today(T0, IST)) is not None
    assert repo.get_for_day(employee.id, resolve_today(T0 + timedelta(days=1), IST)) is None


def test_list_records_filters_and_orders(db, repo, make_employee):
    qa = Department(name="QA", active=True)
    db.add(qa)
    db.commit()
    alice = make_employee("EMP101")
    bob = make_employee("EMP102", department_id=qa.id)
    for offset in range(3):
        db.add(AttendanceRecord(user_id=alice.id, date=TODAY - timedelta(days=offset),
                                check_in=T0, status=AttendanceStatus.PRESENT, total_break_time=0))
    db.add(AttendanceRecord(user_id=bob.id, date=TODAY, check_in=T0,
                            status=AttendanceStatus.PRESENT, total_break_time=0))
    db.commit()

    records, total = repo.list_records(offset=0, limit=2)
    assert total == 4
    assert len(records) == 2
    assert records[0].date == TODAY

    records, total = repo.list_records(user_id=alice.id)
    assert [r.date for r in records] == [TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2)]

    records, total = repo.list_records(department_id=qa.id)
    assert total == 1
    assert records[0].user_id == bob.id

    records, total = repo.list_records(start_date=TODAY - timedelta(days=1), end_date=TODAY - timedelta(days=1))
    assert total == 1

    assert repo.list_records(user_ids=[]) == ([], 0)
    assert repo.list_records(user_ids=[bob.id])[1] == 1


def test_checked_in_counts_and_delete_for_day(db, repo, service, make_employee):
    first = make_employee("EMP201")
    second = make_employee("EMP202")
    service.check_in(first.id, now=T0)
    service.check_in(second.id, now=T0)
    service.break_start(second.id, now=T0 + timedelta(minutes=1))
    service.check_in(first.id, now=T0 - timedelta(days=1))

    counts = repo.checked_in_counts(TODAY - timedelta(days=6), TODAY)
    assert counts == {TODAY: 2, TODAY - timedelta(days=1): 1}

    assert service.reset_day(now=T0) == (1, 2)
    assert db.query(AttendanceRecord).count() == 1
    assert db.query(BreakRecord).count() == 0


def test_history_scoped_to_role_population(db, service, make_employee):
    emp = make_employee("EMP301")
    mgr = make_employee("MGR301", role=Role.MANAGER)
    service.check_in(emp.id, now=T0)
    service.check_in(mgr.id, now=T0)

    page = service.get_all_history(HistoryFilters(visible_user_ids=[emp.id]), page=1, limit=10)
    assert [r.user_id for r in page.records] == [emp.id]
    assert page.total == 1


def test_storage_errors_are_wrapped(db, employee):
    class BrokenRepository(SqlAlchemyAttendanceRepository):
        def get_for_day(self, user_id, bucket, for_update=False):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    service = AttendanceService(BrokenRepository(db), IST)
    with pytest.raises(StorageFailure) as exc:
        service.check_in(employee.id, now=T0)
    assert exc.value.detail == "Failed to process request"
    assert "database is locked" in exc.value.internal_detail

    with pytest.raises(StorageFailure):
        service.get_today(employee.id, now=T0)


def test_second_open_break_rejected_by_index(db, repo, employee):
    record = AttendanceRecord(user_id=employee.id, date=TODAY, check_in=T0,
                              status=AttendanceStatus.PRESENT, total_break_time=0)
    with repo.transaction():
        repo.add_record(record)
        repo.add_break(record, BreakRecord(start_time=T0 + timedelta(minutes=1)))

    with pytest.raises(AlreadyOnBreak):
        with repo.transaction():
            repo.add_break(record, BreakRecord(start_time=T0 + timedelta(minutes=2)))

    assert db.query(BreakRecord).filter(BreakRecord.end_time.is_(None)).count() == 1


def test_closed_breaks_do_not_count_against_active_index(db, service, employee):
    service.check_in(employee.id, now=T0)
    for start in (5, 15, 25):
        service.break_start(employee.id, now=T0 + timedelta(minutes=start))
        service.break_end(employee.id, now=T0 + timedelta(minutes=start + 5))

    assert db.query(BreakRecord).count() == 3


def test_session_keeps_results_loaded_after_commit(service, employee):
    assert SessionLocal.kw["expire_on_commit"] is False

    result = service.check_in(employee.id, now=T0)
    assert sa_inspect(result.record).expired_attributes == set()
    brk = service.break_start(employee.id, now=T0 + timedelta(minutes=5)).break_record
    assert sa_inspect(brk).expired_attributes == set()


# --- concurrent transitions on a file-backed database ---

class ReadBarrierRepository(SqlAlchemyAttendanceRepository):
    """Holds each transaction right after the day read so two transitions line up."""

    def __init__(self, db, barrier):
        super().__init__(db)
        self.barrier = barrier

    def get_for_day(self, user_id, bucket, for_update=False):
        record = super().get_for_day(user_id, bucket, for_update)
        try:
            self.barrier.wait(timeout=1)
        except threading.BrokenBarrierError:
            # The other transaction is still waiting for the write lock
            pass
        return record


@pytest.fixture
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'attendance.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    serialize_sqlite_writes(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    engine.dispose()


def _checked_in_employee(factory):
    session = factory()
    try:
        dept = Department(name="Ops", active=True)
        session.add(dept)
        session.flush()
        emp = Employee(emp_code="EMP900", name="Racer", role=Role.EMPLOYEE.value,
                       department_id=dept.id, active=True)
        session.add(emp)
        session.commit()
        user_id = emp.id
        AttendanceService(SqlAlchemyAttendanceRepository(session), IST).check_in(user_id, now=T0)
        return user_id
    finally:
        session.close()


def _race(factory, *actions):
    """Run (name, action) pairs in parallel threads; return name -> "ok" or error code."""
    barrier = threading.Barrier(len(actions))
    outcomes = {}

    def run(name, action):
        session = factory()
        try:
            action(AttendanceService(ReadBarrierRepository(session, barrier), IST))
            outcomes[name] = "ok"
        except AttendanceError as exc:
            outcomes[name] = exc.code
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=(name, action)) for name, action in actions]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def _today_record(factory, user_id):
    session = factory()
    try:
        record = SqlAlchemyAttendanceRepository(session).get_for_day(user_id, resolve_today(T0, IST))
        return record, [b for b in record.breaks if b.end_time is None]
    finally:
        session.close()


def test_concurrent_break_start_opens_one_break(file_sessions):
    user_id = _checked_in_employee(file_sessions)
    start = T0 + timedelta(minutes=10)

    outcomes = _race(
        file_sessions,
        ("first", lambda s: s.break_start(user_id, now=start)),
        ("second", lambda s: s.break_start(user_id, now=start)),
    )

    assert sorted(outcomes.values()) == ["ALREADY_ON_BREAK", "ok"]
    _, open_breaks = _today_record(file_sessions, user_id)
    assert len(open_breaks) == 1


def test_check_out_racing_break_start_leaves_no_open_break(file_sessions):
    user_id = _checked_in_employee(file_sessions)

    outcomes = _race(
        file_sessions,
        ("break_start", lambda s: s.break_start(user_id, now=T0 + timedelta(minutes=10))),
        ("check_out", lambda s: s.check_out(user_id, now=T0 + timedelta(minutes=20))),
    )

    assert outcomes["check_out"] == "ok"
    assert outcomes["break_start"] in ("ok", "ALREADY_CHECKED_OUT")
    record, open_breaks = _today_record(file_sessions, user_id)
    assert record.check_out is not None
    assert open_breaks == []


def test_concurrent_check_in_creates_one_record(file_sessions):
    user_id = _checked_in_employee(file_sessions)
    session = file_sessions()
    try:
        with SqlAlchemyAttendanceRepository(session).transaction():
            session.query(AttendanceRecord).delete()
    finally:
        session.close()

    outcomes = _race(
        file_sessions,
        ("first", lambda s: s.check_in(user_id, now=T0)),
        ("second", lambda s: s.check_in(user_id, now=T0)),
    )

    assert sorted(outcomes.values()) == ["ALREADY_CHECKED_IN", "ok"]
