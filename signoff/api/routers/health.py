"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signoff import __version__
from signoff.api.deps import get_db
from signoff.core.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/ready")
def readiness_check(db: Session = Depends(get_db)):
    """Readiness check: database reachable and provider configuration present."""
    settings = get_settings()
    checks = {
        "database": "ok",
        "signature_provider": "ok" if settings.signature_configured else "not_configured",
        "signature_webhook": "ok" if settings.signature_webhook_secret else "not_configured",
    }
    try:
        db.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        checks["database"] = f"error: {e.__class__.__name__}"

    healthy = all(value == "ok" for value in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "not_ready", "checks": checks},
    )
