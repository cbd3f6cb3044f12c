"""
Main API router
"""
from fastapi import APIRouter

from attendance_tracker.api.v1 import (
    health,
    version,
    auth,
    attendance,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
