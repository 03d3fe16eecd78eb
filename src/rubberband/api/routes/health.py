"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from rubberband.config import settings
from rubberband.errors.exceptions import RubberbandError
from rubberband.services.context import AdministrativeContext

router = APIRouter()


@router.get("/health")
async def health_check():
    """Return service health status."""
    return {"status": "healthy", "service": "rubberband-api", "version": "0.1.0"}


@router.get("/health/live")
async def liveness():
    """Liveness check: 200 while the process is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    """Readiness check: can the backend answer an administrative call."""
    checks: dict[str, str] = {}
    overall_ok = True

    backend = request.app.state.backend
    try:
        await backend.list_identities(
            AdministrativeContext(service_role_key=settings.supabase_service_role_key), page=1, per_page=1
        )
        checks["backend"] = "ok"
    except RubberbandError as exc:
        checks["backend"] = f"error: {exc.message}"
        overall_ok = False

    status_code = 200 if overall_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if overall_ok else "not_ready",
            "checks": checks,
        },
    )
