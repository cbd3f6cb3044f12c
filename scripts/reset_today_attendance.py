#!/usr/bin/env python3
"""
Delete today's attendance records and their breaks (business day in BUSINESS_TZ).
Uses the same DATABASE_URL as the app (from attendance_tracker.core.config.settings).
Intended for test/staging environments.
Run from project root: python scripts/reset_today_attendance.py [--yes]
"""
import argparse
import logging
import sys
import os

# Ensure the package is importable when run from the repo root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from attendance_tracker.core.config import settings  # noqa: E402
from attendance_tracker.core.errors import StorageFailure  # noqa: E402
from attendance_tracker.core.logging import setup_logging  # noqa: E402
from attendance_tracker.db.session import SessionLocal  # noqa: E402
from attendance_tracker.repositories.attendance_repository import SqlAlchemyAttendanceRepository  # noqa: E402
from attendance_tracker.services.attendance_service import AttendanceService  # noqa: E402

logger = logging.getLogger("reset_today_attendance")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = parser.parse_args(argv)

    if settings.APP_ENV == "prod":
        print("Refusing to reset attendance with APP_ENV=prod", file=sys.stderr)
        return 2

    setup_logging()
    db = SessionLocal()
    try:
        service = AttendanceService(SqlAlchemyAttendanceRepository(db), settings.business_tz())
        day = service.today().day
        if not args.yes:
            answer = input(f"Delete all attendance for {day}? [y/N] ")
            if answer.strip().lower() != "y":
                print("Aborted")
                return 1
        breaks_deleted, records_deleted = service.reset_day()
    except StorageFailure as exc:
        logger.error("Reset failed: %s", exc.internal_detail)
        return 1
    finally:
        db.close()

    print(f"Deleted {breaks_deleted} break records")
    print(f"Deleted {records_deleted} attendance records")
    print(f"Attendance for {day} has been reset")
    return 0


if __name__ == "__main__":
    sys.exit(main())
