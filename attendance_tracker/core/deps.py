"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Generator, List, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from attendance_tracker.db.session import SessionLocal
from attendance_tracker.core.config import settings
from attendance_tracker.core.security import decode_token
from attendance_tracker.models.employee import MANAGEMENT_ROLES, Employee, Role
from attendance_tracker.repositories.attendance_repository import SqlAlchemyAttendanceRepository
from attendance_tracker.services.attendance_service import AttendanceService


security = HTTPBearer()


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_attendance_service(db: Session = Depends(get_db)) -> AttendanceService:
    """Attendance service bound to this request's session and the business timezone"""
    return AttendanceService(SqlAlchemyAttendanceRepository(db), settings.business_tz())


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Employee:
    """
    Get current authenticated user from JWT token
    """
    token = credentials.credentials

    try:
        payload = decode_token(token)
        sub_value = payload.get("sub")
        if sub_value is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        # Convert string sub back to integer
        employee_id: int = int(sub_value)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return employee


def require_roles(*allowed_roles: Role):
    """
    Dependency factory for role-based access control

    Usage:
        @router.get("/hr-only")
        async def hr_endpoint(user: Employee = Depends(require_roles(Role.HR))):
            ...
    """
    allowed = {r.value for r in allowed_roles}

    def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        # Allow ADMIN superuser access regardless of required roles
        if current_user.role == Role.ADMIN.value:
            return current_user

        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}"
            )
        return current_user
    return role_checker


require_management = require_roles(*MANAGEMENT_ROLES)


def visible_user_ids(db: Session, current_user: Employee) -> Optional[List[int]]:
    """
    Employee ids whose attendance the current user may list.

    ADMIN/HR: None (everyone). MANAGER: every EMPLOYEE-role account.
    Anyone else: only themselves.
    """
    if current_user.role in (Role.ADMIN.value, Role.HR.value):
        return None
    if current_user.role == Role.MANAGER.value:
        return [
            row[0]
            for row in db.query(Employee.id).filter(Employee.role == Role.EMPLOYEE.value).all()
        ]
    return [current_user.id]
