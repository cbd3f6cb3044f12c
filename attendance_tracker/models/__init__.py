"""
Database models
"""
from attendance_tracker.models.department import Department
from attendance_tracker.models.employee import Employee, Role, MANAGEMENT_ROLES
from attendance_tracker.models.attendance import (
    AttendanceRecord,
    AttendanceStatus,
    BreakRecord,
    active_break,
)

__all__ = [
    "Department",
    "Employee",
    "Role",
    "MANAGEMENT_ROLES",
    "AttendanceRecord",
    "AttendanceStatus",
    "BreakRecord",
    "active_break",
]
