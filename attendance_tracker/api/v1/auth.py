"""
Authentication endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from attendance_tracker.core.deps import get_db, get_current_user
from attendance_tracker.core.security import verify_password, create_access_token
from attendance_tracker.models.employee import Employee
from attendance_tracker.schemas.auth import LoginRequest, MeResponse, TokenResponse

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token

    Validates emp_code and password, rejects inactive employees.
    """
    employee = db.query(Employee).filter(Employee.emp_code == login_data.emp_code).first()

    if not employee:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid employee code or password"
        )

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    if employee.password_hash is None or not verify_password(login_data.password, employee.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid employee code or password"
        )

    # JWT 'sub' claim must be a string per JWT spec
    access_token = create_access_token(data={
        "sub": str(employee.id),
        "emp_code": employee.emp_code,
        "role": employee.role,
    })
    return TokenResponse(access_token=access_token, role=employee.role)


@router.get("/me", response_model=MeResponse)
async def me(current_user: Employee = Depends(get_current_user)):
    """Profile of the authenticated caller"""
    return MeResponse.model_validate(current_user)
