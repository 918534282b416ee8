"""Health check endpoints."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
import redis

from pricelab.database import get_db
from pricelab.config import get_settings

router = APIRouter()
settings = get_settings()


@router.get("/health")
@router.head("/health")
async def health_check():
    """Basic health check."""
    return {"status": "healthy", "service": "pricelab-backend"}


@router.get("/health/detailed")
def detailed_health_check(request: Request, db: Session = Depends(get_db)):
    """
    Database and Redis connectivity plus the rotation scheduler's state.

    A stopped scheduler does not degrade the status: rotation may be driven
    by the cron endpoint instead.
    """
    checks = {"database": "unknown"}

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # Redis only backs cross-instance rotation locks
    if settings.redis_url:
        try:
            redis.from_url(settings.redis_url).ping()
            checks["redis"] = "healthy"
        except Exception as e:
            checks["redis"] = f"unhealthy: {str(e)}"

    response = {
        "status": "healthy" if all(v == "healthy" for v in checks.values()) else "degraded",
        "checks": checks
    }

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        response["scheduler"] = scheduler.get_status().model_dump(mode="json")

    return response
