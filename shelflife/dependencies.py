"""
FastAPI dependency injection.
Provides DB sessions, the acting user, API key validation and the
long-lived services built in the lifespan (held on app.state).
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.auth import SessionUser, ensure_admin, resolve_session_user
from shelflife.clients.registry import ServiceClients
from shelflife.config import settings
from shelflife.deletion.orchestrator import DeletionOrchestrator
from shelflife.errors import NotAuthenticated
from shelflife.models.database import get_session
from shelflife.sync.dispatch import SyncDispatcher
from shelflife.sync.scheduler import SyncScheduler


async def get_db() -> AsyncSession:
    """Yield an async DB session."""
    async for session in get_session():
        yield session


async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[str]:
    """
    Verify API key if configured.
    If API_KEY is not set, all requests are allowed (dev mode).
    """
    if settings.API_KEY is None:
        return None

    if x_api_key is None or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return x_api_key


# ── Identity ─────────────────────────────────────────────────

async def get_current_user(
    x_plex_id: Optional[str] = Header(None, alias="X-Plex-Id"),
    session: AsyncSession = Depends(get_db),
) -> SessionUser:
    """
    The caller, as forwarded by the upstream auth layer.
    X-Plex-Id is only trusted behind API_KEY; DEBUG lifts that for local dev.
    """
    if settings.API_KEY is None and not settings.DEBUG:
        raise NotAuthenticated("API_KEY is not configured; forwarded identities are not accepted")
    return await resolve_session_user(session, x_plex_id)


async def require_admin(user: SessionUser = Depends(get_current_user)) -> SessionUser:
    return ensure_admin(user)


# ── Long-lived services ──────────────────────────────────────

def get_service_clients(request: Request) -> ServiceClients:
    return request.app.state.clients


def get_orchestrator(request: Request) -> DeletionOrchestrator:
    return request.app.state.orchestrator


def get_dispatcher(request: Request) -> SyncDispatcher:
    return request.app.state.dispatcher


def get_scheduler(request: Request) -> SyncScheduler:
    return request.app.state.scheduler
