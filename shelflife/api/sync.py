"""
Sync endpoints: manual trigger, status, and the admin-editable schedule.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.auth import SessionUser
from shelflife.dependencies import (
    get_db,
    get_dispatcher,
    get_scheduler,
    require_admin,
    verify_api_key,
)
from shelflife.schemas.sync import (
    SyncLogSummary,
    SyncRequest,
    SyncResponse,
    SyncSchedule,
    SyncStatusResponse,
)
from shelflife.sync.dispatch import SyncDispatcher
from shelflife.sync.scheduler import SyncScheduler, get_schedule, update_schedule

router = APIRouter(prefix="/api/v1", tags=["sync"], dependencies=[Depends(verify_api_key)])


@router.post("/sync", response_model=SyncResponse)
async def trigger_sync(
    body: Optional[SyncRequest] = None,
    admin: SessionUser = Depends(require_admin),
    dispatcher: SyncDispatcher = Depends(get_dispatcher),
):
    """Run a sync now. 409 if one is already running."""
    body = body or SyncRequest()
    counts = await dispatcher.dispatch(body.type.value)
    return SyncResponse(synced=counts)


@router.get("/sync/status", response_model=SyncStatusResponse)
async def get_sync_status(
    admin: SessionUser = Depends(require_admin),
    dispatcher: SyncDispatcher = Depends(get_dispatcher),
):
    last = await dispatcher.last_sync()
    return SyncStatusResponse(
        in_progress=dispatcher.in_progress,
        last_sync=SyncLogSummary.model_validate(last) if last else None,
    )


@router.get("/admin/settings/sync-schedule", response_model=SyncSchedule)
async def read_sync_schedule(
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    return await get_schedule(session)


@router.put("/admin/settings/sync-schedule", response_model=SyncSchedule)
async def write_sync_schedule(
    body: SyncSchedule,
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    """Persist the schedule and restart the background loop with it."""
    schedule = await update_schedule(session, body)
    await scheduler.reschedule()
    return schedule
