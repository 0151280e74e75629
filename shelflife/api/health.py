"""
Health check endpoints.
/health always returns 200; DB connectivity and which external services are
configured are reported, not enforced.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from shelflife.config import settings
from shelflife.models.database import async_session_factory

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Verifies the API is running, tests DB connectivity and lists configured services."""
    db_ok = False
    db_error = None
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            db_ok = result.scalar() == 1
    except Exception as e:
        db_ok = False
        db_error = str(e)[:200]

    response = {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.APP_VERSION,
        "database": "connected" if db_ok else "unreachable",
    }
    clients = getattr(request.app.state, "clients", None)
    if clients is not None:
        response["services"] = clients.configured()
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is not None:
        response["sync_in_progress"] = dispatcher.in_progress
    if db_error:
        response["database_error"] = db_error

    return response


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: ready only if the database answers."""
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
            return {"ready": True}
    except Exception:
        return {"ready": False}
