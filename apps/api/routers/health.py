"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from config import validate_scoring_settings

router = APIRouter()


def _scoring_status() -> str:
    try:
        validate_scoring_settings()
    except ValueError as exc:
        return f"invalid: {exc}"
    return "valid"


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    scoring = _scoring_status()
    return {
        "status": "healthy" if scoring == "valid" else "degraded",
        "api": "up",
        "scoring_config": scoring,
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    scoring = _scoring_status()
    if scoring != "valid":
        return JSONResponse(
            status_code=503,
            content={"ready": False, "reason": scoring},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
