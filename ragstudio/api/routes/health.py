"""Health check endpoints for Kubernetes probes."""

from datetime import UTC, datetime

import httpx
from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from ragstudio.core.config import get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    version: str
    checks: dict | None = None


# Startup state
_startup_complete = False


def set_startup_complete():
    """Mark startup as complete."""
    global _startup_complete
    _startup_complete = True


def _now() -> str:
    return datetime.now(UTC).isoformat()


async def check_ollama(base_url: str) -> tuple[bool, str]:
    """Check Ollama connectivity."""
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{base_url.rstrip('/')}/api/tags", timeout=5.0)
            if response.status_code == 200:
                return True, "healthy"
            return False, f"unhealthy: status {response.status_code}"
    except httpx.HTTPError as e:
        return False, f"unhealthy: {e!s}"


@router.get("/health/live", response_model=HealthResponse)
async def liveness():
    """Kubernetes liveness probe.

    Returns 200 if the process is alive.
    """
    settings = get_settings()

    return HealthResponse(status="alive", timestamp=_now(), version=settings.app_version)


@router.get("/health/ready", response_model=HealthResponse)
async def readiness(request: Request):
    """Kubernetes readiness probe.

    Returns 200 once the pipeline is built. Provider status is reported
    but does not fail readiness.
    """
    pipeline = getattr(request.app.state, "pipeline", None)

    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "unhealthy", "checks": {"pipeline": "not initialized"}},
        )

    settings = pipeline.settings

    checks = {
        "pipeline": "healthy",
        "documents": len(pipeline.document_store),
        "vectors": pipeline.vector_store.size(),
        "huggingface": "configured" if settings.huggingface_api_key else "not configured",
    }

    # Non-critical - answers fall back to the top chunk without it
    _ollama_ok, ollama_status = await check_ollama(settings.ollama_base_url)
    checks["ollama"] = ollama_status

    return HealthResponse(status="ready", timestamp=_now(), version=settings.app_version, checks=checks)


@router.get("/health/startup", response_model=HealthResponse)
async def startup():
    """Kubernetes startup probe.

    Returns 200 once initialization is complete.
    """
    settings = get_settings()

    if not _startup_complete:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "starting", "message": "Initialization in progress"},
        )

    return HealthResponse(status="started", timestamp=_now(), version=settings.app_version)
