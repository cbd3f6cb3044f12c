#!/usr/bin/env python3
"""
Check whether the attendance_records and attendance_breaks tables exist.
Uses the same DATABASE_URL as the app (from attendance_tracker.core.config.settings).
Run from project root: python scripts/check_attendance_tables.py
"""
import sys
import os

# Ensure the package is importable when run from the repo root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

REQUIRED_TABLES = ("employees", "attendance_records", "attendance_breaks")


def main() -> int:
    try:
        from attendance_tracker.core.config import settings
        from sqlalchemy import create_engine, inspect
    except ImportError as e:
        print("Error: Could not import attendance_tracker or sqlalchemy.", e, file=sys.stderr)
        return 1

    url = settings.DATABASE_URL
    print(f"DATABASE_URL: {url if url.startswith('sqlite') else url.split('@')[-1]}")
    engine = create_engine(url)
    existing = set(inspect(engine).get_table_names())

    missing = [name for name in REQUIRED_TABLES if name not in existing]
    for name in REQUIRED_TABLES:
        print(f"{name + ':':<20} {'MISSING' if name in missing else 'exists'}")
    if missing:
        print("Run: alembic upgrade head", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
