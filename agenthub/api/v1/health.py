"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(request: Request) -> dict[str, Any]:
    """Basic health check with database status and resident session count."""
    storage = getattr(request.app.state, "storage", None)
    orchestrator = getattr(request.app.state, "orchestrator", None)
    database_ok = await storage.health_check() if storage is not None else False
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": database_ok,
        "active_sessions": len(orchestrator.sessions) if orchestrator is not None else 0,
    }


@router.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness probe for orchestration."""
    return {"status": "ready"}


@router.get("/models")
async def model_health(request: Request) -> dict[str, bool]:
    """Per-provider availability."""
    llm_router = getattr(request.app.state, "llm_router", None)
    if llm_router is None:
        return {}
    return await llm_router.health_check()
