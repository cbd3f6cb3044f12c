"""
Attendance Tracker Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from attendance_tracker.api.router import api_router
from attendance_tracker.core.config import settings
from attendance_tracker.core.errors import (
    AttendanceError,
    attendance_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from attendance_tracker.core.logging import setup_logging
from attendance_tracker.core.security import hash_password, validate_password
from attendance_tracker.db.session import SessionLocal
from attendance_tracker.models.employee import Employee, Role
from attendance_tracker.models.department import Department

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "***"
    if parsed.scheme.startswith("sqlite"):
        return url
    if parsed.password:
        netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    return url


app = FastAPI(
    title="Attendance Tracker Backend",
    description="Check-in/out, break tracking and live attendance status",
    version=settings.VERSION or "1.0.0"
)

# Configure CORS - must be before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(AttendanceError, attendance_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so the target database can be verified."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))


@app.on_event("startup")
def bootstrap_initial_admin() -> None:
    """
    Create the initial admin user and Administration department if no admin exists.
    """
    db = SessionLocal()
    try:
        admin_exists = db.query(Employee).filter(
            (Employee.emp_code == "ADM-001") | (Employee.role == Role.ADMIN.value)
        ).first()
        if admin_exists:
            logger.info("Admin user already exists, skipping initial bootstrap")
            return

        logger.info("No admin user found, creating initial admin setup...")
        admin_dept = db.query(Department).filter(Department.name == "Administration").first()
        if not admin_dept:
            admin_dept = Department(name="Administration", active=True)
            db.add(admin_dept)
            db.flush()
            logger.info("Created department: Administration")

        db.add(Employee(
            emp_code="ADM-001",
            name="System Administrator",
            role=Role.ADMIN.value,
            department_id=admin_dept.id,
            password_hash=hash_password(validate_password(settings.INITIAL_ADMIN_PASSWORD)),
            active=True,
        ))
        db.commit()
        logger.info("Initial admin user created (emp_code=ADM-001, password from INITIAL_ADMIN_PASSWORD)")
    except OperationalError as e:
        db.rollback()
        # Database not ready yet (tables might not exist)
        if "no such table" in str(e).lower():
            logger.warning("Database tables not ready yet, skipping initial bootstrap")
        else:
            logger.error("Database error during admin bootstrap: %s", e)
    finally:
        db.close()
