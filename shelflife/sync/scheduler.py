"""
Periodic sync.
The schedule lives in app_settings so admins can change it at runtime;
settings.SYNC_* only supply defaults for keys that were never written.
"""

import asyncio
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shelflife.config import settings
from shelflife.errors import SyncInProgressError
from shelflife.models.database import async_session_factory
from shelflife.models.enums import SyncType
from shelflife.models.tables import AppSetting, utcnow
from shelflife.models.upsert import upsert
from shelflife.schemas.sync import SyncSchedule
from shelflife.sync.dispatch import SyncDispatcher

logger = structlog.get_logger(__name__)

SCHEDULE_KEYS = {
    "enabled": "sync_schedule_enabled",
    "interval_minutes": "sync_schedule_interval_minutes",
    "sync_type": "sync_schedule_type",
}


def default_schedule() -> SyncSchedule:
    return SyncSchedule(
        enabled=settings.SYNC_SCHEDULE_ENABLED,
        interval_minutes=settings.SYNC_INTERVAL_MINUTES,
        sync_type=settings.SYNC_SCHEDULE_TYPE,
    )


def _parse_interval(raw: Optional[str], default: int) -> int:
    if raw and raw.isdigit() and 5 <= int(raw) <= 10080:
        return int(raw)
    return default


async def get_schedule(session: AsyncSession) -> SyncSchedule:
    """Stored schedule; unreadable or missing values fall back to defaults."""
    result = await session.execute(
        select(AppSetting.key, AppSetting.value).where(AppSetting.key.in_(list(SCHEDULE_KEYS.values())))
    )
    stored = dict(result.all())
    defaults = default_schedule()

    enabled = stored.get(SCHEDULE_KEYS["enabled"])
    interval = stored.get(SCHEDULE_KEYS["interval_minutes"])
    sync_type = stored.get(SCHEDULE_KEYS["sync_type"])

    return SyncSchedule(
        enabled=enabled == "true" if enabled is not None else defaults.enabled,
        interval_minutes=_parse_interval(interval, defaults.interval_minutes),
        sync_type=sync_type if sync_type in {t.value for t in SyncType} else defaults.sync_type,
    )


async def update_schedule(session: AsyncSession, schedule: SyncSchedule) -> SyncSchedule:
    now = utcnow()
    values = {
        SCHEDULE_KEYS["enabled"]: "true" if schedule.enabled else "false",
        SCHEDULE_KEYS["interval_minutes"]: str(schedule.interval_minutes),
        SCHEDULE_KEYS["sync_type"]: SyncType(schedule.sync_type).value,
    }
    for key, value in values.items():
        await upsert(session, AppSetting, keys={"key": key}, values={"value": value, "updated_at": now})
    await session.commit()

    logger.info(
        "sync_schedule_updated",
        enabled=schedule.enabled,
        interval_minutes=schedule.interval_minutes,
        sync_type=SyncType(schedule.sync_type).value,
    )
    return schedule


class SyncScheduler:
    """
    One background asyncio task that sleeps for the configured interval and
    then dispatches. A tick that finds a sync running is skipped.
    """

    def __init__(
        self,
        dispatcher: SyncDispatcher,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.dispatcher = dispatcher
        self.session_factory = session_factory or async_session_factory
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        await self.reschedule()

    async def reschedule(self) -> Optional[SyncSchedule]:
        """Re-read the stored schedule and restart the loop. Serialized."""
        async with self._lock:
            await self._cancel()

            async with self.session_factory() as session:
                schedule = await get_schedule(session)

            if not schedule.enabled:
                logger.info("sync_schedule_disabled")
                return None

            self._task = asyncio.create_task(self._loop(schedule), name="scheduled-sync")
            logger.info(
                "sync_scheduled",
                interval_minutes=schedule.interval_minutes,
                sync_type=SyncType(schedule.sync_type).value,
            )
            return schedule

    async def stop(self) -> None:
        """Stop the loop and wait for a scheduled run that already started."""
        async with self._lock:
            await self._cancel()
            if self._inflight is not None and not self._inflight.done():
                logger.info("scheduled_sync_draining")
                await self._inflight

    async def run_once(self, sync_type: str) -> Optional[dict[str, int]]:
        """One scheduled tick. Failures are logged; the loop keeps going."""
        if self.dispatcher.in_progress:
            logger.info("scheduled_sync_skipped", reason="sync_in_progress")
            return None
        try:
            return await self.dispatcher.dispatch(sync_type)
        except SyncInProgressError:
            logger.info("scheduled_sync_skipped", reason="sync_in_progress")
        except Exception as e:
            logger.error("scheduled_sync_failed", sync_type=sync_type, error=str(e))
        return None

    async def _loop(self, schedule: SyncSchedule) -> None:
        while True:
            await asyncio.sleep(schedule.interval_minutes * 60)
            # Cancelling the loop only interrupts the sleep; a started run finishes
            self._inflight = asyncio.create_task(
                self.run_once(SyncType(schedule.sync_type).value), name="scheduled-sync-run"
            )
            await asyncio.shield(self._inflight)

    async def _cancel(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
