from attendance_tracker.repositories.attendance_repository import (
    AttendanceRepository,
    RecordConflict,
    SqlAlchemyAttendanceRepository,
)

__all__ = ["AttendanceRepository", "RecordConflict", "SqlAlchemyAttendanceRepository"]
