"""Health check endpoints for monitoring service status"""
from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.orm import Session
from datetime import datetime, timezone

from app.db.base import get_db_session

health_router = APIRouter()


@health_router.get(
    "/health",
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Check if the API is responsive"
)
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "categories-api"
    }


@health_router.get(
    "/health/detailed",
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
    description="Check service dependencies including the database"
)
def detailed_health_check(db: Session = Depends(get_db_session)):
    """Detailed health check including the database"""
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "categories-api",
        "dependencies": {}
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        health_status["dependencies"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["dependencies"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}"
        }

    return health_status
