"""
Version and metadata endpoint
"""
from fastapi import APIRouter
from attendance_tracker.core.config import settings
from attendance_tracker.core.constants import SERVICE_NAME

router = APIRouter()


@router.get("/version")
async def get_version():
    """
    Get application version and metadata

    Returns:
        Service name, version, environment and business timezone
    """
    return {
        "service": SERVICE_NAME,
        "version": settings.VERSION or "1.0.0",
        "env": settings.APP_ENV,
        "business_tz": settings.BUSINESS_TZ,
    }
