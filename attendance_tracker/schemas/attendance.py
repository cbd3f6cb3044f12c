"""
Attendance schemas. All datetimes are serialized in the business timezone.
"""
from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, field_serializer

from attendance_tracker.core.config import settings
from attendance_tracker.models.attendance import AttendanceStatus
from attendance_tracker.utils.datetime_utils import iso_local


def _serialize_dt(dt: Optional[datetime]) -> Optional[str]:
    return iso_local(dt, settings.business_tz())


class BreakDto(BaseModel):
    """Break inside an attendance day; end_time/duration are null while active."""
    id: Optional[int] = None
    attendance_id: Optional[int] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("start_time", "end_time")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt(dt)


class AttendanceUserDto(BaseModel):
    id: int
    emp_code: str
    name: str
    email: Optional[str] = None
    position: Optional[str] = None
    department_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceDto(BaseModel):
    """Attendance day record with its breaks in creation order."""
    id: Optional[int] = None
    user_id: int
    date: date
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    status: AttendanceStatus
    total_break_time: int = 0
    total_work_time: Optional[int] = None
    breaks: List[BreakDto] = []

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("check_in", "check_out")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt(dt)


class AttendanceWithUserDto(AttendanceDto):
    user: Optional[AttendanceUserDto] = None


class LiveStatusEntry(AttendanceWithUserDto):
    live_status: str


class CheckInResponse(BaseModel):
    message: str = "Checked in successfully"
    attendance: AttendanceDto
    check_in_time: datetime

    @field_serializer("check_in_time")
    def _ser_datetime(self, dt: datetime) -> Optional[str]:
        return _serialize_dt(dt)


class CheckOutResponse(BaseModel):
    message: str = "Checked out successfully"
    attendance: AttendanceDto
    check_out_time: datetime
    total_work_time: int
    total_break_time: int

    @field_serializer("check_out_time")
    def _ser_datetime(self, dt: datetime) -> Optional[str]:
        return _serialize_dt(dt)


class BreakStartResponse(BaseModel):
    message: str = "Break started"
    break_record: BreakDto
    start_time: datetime

    @field_serializer("start_time")
    def _ser_datetime(self, dt: datetime) -> Optional[str]:
        return _serialize_dt(dt)


class BreakEndResponse(BaseModel):
    message: str = "Break ended"
    break_record: BreakDto
    duration: int
    total_break_time: int


class TodayResponse(BaseModel):
    attendance: Optional[AttendanceDto] = None
    is_checked_in: bool = False
    is_checked_out: bool = False
    is_on_break: bool = False
    current_break: Optional[BreakDto] = None


class LiveStatusSummary(BaseModel):
    working: int
    on_break: int
    checked_out: int


class LiveStatusResponse(BaseModel):
    working: List[LiveStatusEntry]
    on_break: List[LiveStatusEntry]
    checked_out: List[LiveStatusEntry]
    total_present: int
    summary: LiveStatusSummary


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AttendanceHistoryResponse(BaseModel):
    records: List[AttendanceWithUserDto]
    pagination: Pagination


class AttendanceChartPoint(BaseModel):
    date: date
    day: str
    count: int
