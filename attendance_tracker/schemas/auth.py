"""
Authentication schemas
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Login request schema"""
    emp_code: str = Field(..., description="Employee code")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """Token response schema"""
    access_token: str
    token_type: str = "bearer"
    role: str


class MeResponse(BaseModel):
    id: int
    emp_code: str
    name: str
    email: Optional[str] = None
    position: Optional[str] = None
    role: str
    department_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)
