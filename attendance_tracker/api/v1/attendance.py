"""
Attendance endpoints: check-in/out, breaks, today's status and history.
Any authenticated employee acts on their own day; live status, the
all-employee history, record lookup and the chart are management only.
"""
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from attendance_tracker.core.config import settings
from attendance_tracker.core.constants import LIVE_CHECKED_OUT, LIVE_ON_BREAK, LIVE_WORKING
from attendance_tracker.core.errors import NotFound
from attendance_tracker.core.deps import (
    get_attendance_service,
    get_current_user,
    get_db,
    require_management,
    visible_user_ids,
)
from attendance_tracker.models.employee import Employee
from attendance_tracker.schemas.attendance import (
    AttendanceChartPoint,
    AttendanceDto,
    AttendanceHistoryResponse,
    AttendanceWithUserDto,
    BreakDto,
    BreakEndResponse,
    BreakStartResponse,
    CheckInResponse,
    CheckOutResponse,
    LiveStatusEntry,
    LiveStatusResponse,
    LiveStatusSummary,
    Pagination,
    TodayResponse,
)
from attendance_tracker.services.attendance_service import AttendanceService, HistoryFilters

router = APIRouter()
_log = logging.getLogger(__name__)


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date is not None and end_date is not None and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must be less than or equal to end_date",
        )


def _live_entries(records, live_status: str) -> List[LiveStatusEntry]:
    return [
        LiveStatusEntry(**AttendanceWithUserDto.model_validate(r).model_dump(), live_status=live_status)
        for r in records
    ]


@router.post("/check-in", response_model=CheckInResponse)
async def check_in_endpoint(
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(get_current_user),
):
    """Check in for today. A second check-in the same business day => 400 ALREADY_CHECKED_IN."""
    result = service.check_in(current_user.id)
    return CheckInResponse(
        attendance=AttendanceDto.model_validate(result.record),
        check_in_time=result.check_in_time,
    )


@router.post("/check-out", response_model=CheckOutResponse)
async def check_out_endpoint(
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(get_current_user),
):
    """
    Check out for today; closes an active break first and finalizes
    total_break_time and total_work_time (minutes).
    """
    result = service.check_out(current_user.id)
    return CheckOutResponse(
        attendance=AttendanceDto.model_validate(result.record),
        check_out_time=result.check_out_time,
        total_work_time=result.total_work_time,
        total_break_time=result.total_break_time,
    )


@router.post("/break-start", response_model=BreakStartResponse)
async def break_start_endpoint(
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(get_current_user),
):
    result = service.break_start(current_user.id)
    return BreakStartResponse(
        break_record=BreakDto.model_validate(result.break_record),
        start_time=result.start_time,
    )


@router.post("/break-end", response_model=BreakEndResponse)
async def break_end_endpoint(
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(get_current_user),
):
    result = service.break_end(current_user.id)
    return BreakEndResponse(
        break_record=BreakDto.model_validate(result.break_record),
        duration=result.duration,
        total_break_time=result.total_break_time,
    )


@router.get("/today", response_model=TodayResponse)
async def today_endpoint(
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(get_current_user),
):
    """Today's record for the current user plus derived check-in/break flags."""
    today = service.get_today(current_user.id)
    return TodayResponse(
        attendance=AttendanceDto.model_validate(today.record) if today.record else None,
        is_checked_in=today.is_checked_in,
        is_checked_out=today.is_checked_out,
        is_on_break=today.is_on_break,
        current_break=BreakDto.model_validate(today.current_break) if today.current_break else None,
    )


@router.get("/my", response_model=List[AttendanceDto])
async def my_endpoint(
    start_date: Optional[date] = Query(None, description="Start date (YYYY-MM-DD), inclusive"),
    end_date: Optional[date] = Query(None, description="End date (YYYY-MM-DD), inclusive"),
    limit: Optional[int] = Query(None, ge=1, description="Page size, capped at HISTORY_PAGE_SIZE"),
    offset: int = Query(0, ge=0),
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(get_current_user),
):
    """Own attendance, most recent day first."""
    _check_range(start_date, end_date)
    page_size = min(limit or settings.HISTORY_PAGE_SIZE, settings.HISTORY_PAGE_SIZE)
    records = service.get_history(
        current_user.id, start_date, end_date, limit=page_size, offset=offset
    )
    return [AttendanceDto.model_validate(r) for r in records]


@router.get("/live-status", response_model=LiveStatusResponse)
async def live_status_endpoint(
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(require_management),
):
    """Who is working, on break or checked out right now (today's records)."""
    live = service.get_live_status()
    return LiveStatusResponse(
        working=_live_entries(live.working, LIVE_WORKING),
        on_break=_live_entries(live.on_break, LIVE_ON_BREAK),
        checked_out=_live_entries(live.checked_out, LIVE_CHECKED_OUT),
        total_present=live.total_present,
        summary=LiveStatusSummary(**live.summary),
    )


@router.get("/chart", response_model=List[AttendanceChartPoint])
async def chart_endpoint(
    days: int = Query(7, ge=1, le=31, description="Number of business days ending today"),
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(require_management),
):
    """Checked-in head count per day."""
    return service.get_attendance_chart(days=days)


@router.get("/records/{record_id}", response_model=AttendanceWithUserDto)
async def record_endpoint(
    record_id: int,
    db: Session = Depends(get_db),
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(require_management),
):
    """Single attendance record; records outside the caller's population are reported as not found."""
    record = service.get_record(record_id)
    scope = visible_user_ids(db, current_user)
    if scope is not None and record.user_id not in scope:
        raise NotFound()
    return AttendanceWithUserDto.model_validate(record)


@router.get("", response_model=AttendanceHistoryResponse)
async def all_history_endpoint(
    day: Optional[date] = Query(None, alias="date", description="Single business day (YYYY-MM-DD)"),
    start_date: Optional[date] = Query(None, description="Start date (YYYY-MM-DD), inclusive"),
    end_date: Optional[date] = Query(None, description="End date (YYYY-MM-DD), inclusive"),
    user_id: Optional[int] = Query(None, description="Filter by employee ID"),
    department_id: Optional[int] = Query(None, description="Filter by department ID"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    service: AttendanceService = Depends(get_attendance_service),
    current_user: Employee = Depends(require_management),
):
    """
    Attendance of every employee visible to the caller, most recent day first.

    Role-based scoping:
    - ADMIN/HR: all employees
    - MANAGER: employees with the EMPLOYEE role
    """
    _check_range(start_date, end_date)
    page_size = min(limit or settings.DEFAULT_PAGE_LIMIT, settings.MAX_PAGE_LIMIT)
    filters = HistoryFilters(
        day=day,
        start_date=start_date,
        end_date=end_date,
        user_id=user_id,
        department_id=department_id,
        visible_user_ids=visible_user_ids(db, current_user),
    )
    result = service.get_all_history(filters, page=page, limit=page_size)
    return AttendanceHistoryResponse(
        records=[AttendanceWithUserDto.model_validate(r) for r in result.records],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            pages=result.pages,
        ),
    )
