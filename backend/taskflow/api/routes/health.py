from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from taskflow.db import ping_db

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness check. Returns 503 while the app drains after SIGTERM."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": "taskflow-backend"},
        )
    return {"status": "healthy", "service": "taskflow-backend"}


@router.get("/ready")
async def readiness_check():
    """Readiness check: the database must answer."""
    checks = {"database": await ping_db()}
    all_healthy = all(checks.values())
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
