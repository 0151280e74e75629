"""
Sync dispatch: one in-progress guard shared by manual and scheduled triggers,
and one sync_log row per run.
"""

import asyncio
import json
import time
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shelflife.clients.registry import ServiceClients
from shelflife.errors import SyncInProgressError, ValidationFailed
from shelflife.models.database import async_session_factory
from shelflife.models.enums import SyncStatus, SyncType
from shelflife.models.tables import SyncLogEntry, utcnow
from shelflife.observability.metrics import sync_duration_seconds, sync_in_progress, sync_runs_total
from shelflife.sync.reconciler import sync_overseerr
from shelflife.sync.watch_history import sync_tautulli

logger = structlog.get_logger(__name__)


class SyncDispatcher:
    """
    Runs overseerr, tautulli or full syncs.
    The in-progress flag is process-local; the event loop makes the
    check-and-set atomic.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clients: Optional[ServiceClients] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.clients = clients or ServiceClients()
        self._running = False

    @property
    def in_progress(self) -> bool:
        return self._running

    async def dispatch(self, sync_type: str = SyncType.FULL.value) -> dict[str, int]:
        """Run one sync. Raises SyncInProgressError if one is already running."""
        sync_type = SyncType(sync_type)
        if self._running:
            raise SyncInProgressError()

        self._running = True
        sync_in_progress.set(1)
        try:
            return await self._run(sync_type)
        finally:
            self._running = False
            sync_in_progress.set(0)

    async def _run(self, sync_type: SyncType) -> dict[str, int]:
        log_id = await self._open_log(sync_type)
        started = time.perf_counter()
        logger.info("sync_started", sync_type=sync_type.value, sync_log_id=log_id)

        counts: dict[str, int] = {}
        try:
            if sync_type in (SyncType.OVERSEERR, SyncType.FULL):
                counts["overseerr"] = await self._sync_overseerr()
            if sync_type in (SyncType.TAUTULLI, SyncType.FULL):
                counts["tautulli"] = await self._sync_tautulli()
        except (Exception, asyncio.CancelledError) as e:
            message = str(e) or type(e).__name__
            await self._close_log(
                log_id,
                SyncStatus.FAILED,
                items_synced=sum(counts.values()),
                errors=json.dumps({"message": message}),
            )
            sync_runs_total.labels(sync_type=sync_type.value, status=SyncStatus.FAILED.value).inc()
            logger.error("sync_failed", sync_type=sync_type.value, sync_log_id=log_id, error=message)
            raise

        await self._close_log(log_id, SyncStatus.COMPLETED, items_synced=sum(counts.values()))
        sync_runs_total.labels(sync_type=sync_type.value, status=SyncStatus.COMPLETED.value).inc()
        sync_duration_seconds.labels(sync_type=sync_type.value).observe(time.perf_counter() - started)
        logger.info("sync_completed", sync_type=sync_type.value, sync_log_id=log_id, **counts)
        return counts

    async def _sync_overseerr(self) -> int:
        if self.clients.overseerr is None:
            raise ValidationFailed("Overseerr is not configured")
        async with self.session_factory() as session:
            result = await sync_overseerr(session, self.clients.overseerr)
        return result.synced

    async def _sync_tautulli(self) -> int:
        if self.clients.tautulli is None:
            raise ValidationFailed("Tautulli is not configured")
        async with self.session_factory() as session:
            return await sync_tautulli(session, self.clients.tautulli)

    # ── sync_log ─────────────────────────────────────────────

    async def _open_log(self, sync_type: SyncType) -> int:
        async with self.session_factory() as session:
            entry = SyncLogEntry(sync_type=sync_type.value, status=SyncStatus.RUNNING.value)
            session.add(entry)
            await session.commit()
            return entry.id

    async def _close_log(
        self,
        log_id: int,
        status: SyncStatus,
        items_synced: int = 0,
        errors: Optional[str] = None,
    ) -> None:
        async with self.session_factory() as session:
            entry = await session.get(SyncLogEntry, log_id)
            entry.status = status.value
            entry.items_synced = items_synced
            entry.errors = errors
            entry.completed_at = utcnow()
            await session.commit()

    async def last_sync(self) -> Optional[SyncLogEntry]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SyncLogEntry).order_by(SyncLogEntry.id.desc()).limit(1)
            )
            return result.scalar_one_or_none()
