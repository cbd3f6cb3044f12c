"""
Attendance day record and its nested breaks.

One AttendanceRecord per (employee, business day); breaks are owned by the
record and deleted with it. Timestamps are stored in UTC.
"""
import enum
import logging
from typing import Optional

from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from attendance_tracker.db.base import Base

_log = logging.getLogger(__name__)


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)  # business day (BUSINESS_TZ)
    check_in = Column(DateTime(timezone=True), nullable=True)
    check_out = Column(DateTime(timezone=True), nullable=True)
    status = Column(SQLEnum(AttendanceStatus), nullable=False, default=AttendanceStatus.PRESENT)
    total_break_time = Column(Integer, nullable=False, default=0)  # minutes
    total_work_time = Column(Integer, nullable=True)  # minutes, set at check-out
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
    )

    user = relationship("Employee", backref="attendance_records")
    breaks = relationship(
        "BreakRecord",
        back_populates="attendance",
        order_by="BreakRecord.id",
        cascade="all, delete-orphan",
    )


class BreakRecord(Base):
    __tablename__ = "attendance_breaks"

    id = Column(Integer, primary_key=True, index=True)
    attendance_id = Column(Integer, ForeignKey("attendance_records.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)  # NULL while the break is active
    duration = Column(Integer, nullable=True)  # minutes, set together with end_time
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    attendance = relationship("AttendanceRecord", back_populates="breaks")

    __table_args__ = (
        # At most one active break per attendance record
        Index(
            "uq_attendance_breaks_one_active",
            "attendance_id",
            unique=True,
            sqlite_where=text("end_time IS NULL"),
            postgresql_where=text("end_time IS NULL"),
        ),
    )


def active_break(record: Optional[AttendanceRecord]) -> Optional[BreakRecord]:
    """
    Return the break currently in progress on `record`, or None.

    A record holds at most one break without end_time. Should stored data ever
    hold several, the error is logged and the most recently created one wins,
    so callers always see a single active break.
    """
    if record is None:
        return None
    open_breaks = [b for b in record.breaks if b.end_time is None]
    if not open_breaks:
        return None
    if len(open_breaks) > 1:
        _log.error(
            "attendance record %s has %d active breaks: %s",
            record.id, len(open_breaks), [b.id for b in open_breaks],
        )
    return open_breaks[-1]
