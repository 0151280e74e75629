"""
Deletion orchestrator: best-effort removal of one media item across Sonarr,
Radarr and Overseerr, with exactly one audit row per claimed item.

Order of operations:
    1. CLAIM   conditional UPDATE status -> 'removed', committed
    2. ATTEMPT sonarr / radarr / overseerr concurrently, each isolated
    3. AUDIT   one deletion_log row with the three outcomes

The claim is the only guard against duplicate deletions. A second call on
the same item updates zero rows and fails before any external call.
"""

import asyncio
import json
from typing import Awaitable, Callable, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shelflife.clients.registry import ServiceClients
from shelflife.errors import AlreadyRemovedError, NotFound
from shelflife.models.database import async_session_factory
from shelflife.models.enums import DeletionService, MediaStatus, MediaType
from shelflife.models.tables import DeletionLogEntry, MediaItem, utcnow
from shelflife.observability.metrics import (
    deletion_service_outcomes_total,
    deletions_total,
    media_items_marked_removed_total,
)
from shelflife.schemas.deletion import DeletionResult, ServiceOutcome, ServiceStatusResponse

logger = structlog.get_logger(__name__)


def service_status(clients: ServiceClients) -> ServiceStatusResponse:
    """Which deletion targets are configured."""
    return ServiceStatusResponse(
        sonarr=clients.sonarr is not None,
        radarr=clients.radarr is not None,
        overseerr=clients.overseerr is not None,
    )


class DeletionOrchestrator:
    """
    Coordinates one deletion. Holds no per-call state, so one instance is
    shared for the life of the process.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clients: Optional[ServiceClients] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.clients = clients or ServiceClients()

    async def execute(
        self,
        media_item_id: int,
        delete_files: bool,
        deleted_by_plex_id: str,
        review_round_id: Optional[int] = None,
    ) -> DeletionResult:
        item = await self._claim(media_item_id)

        logger.info(
            "deletion_claimed",
            media_item_id=media_item_id,
            media_type=item.media_type,
            delete_files=delete_files,
            deleted_by=deleted_by_plex_id,
            review_round_id=review_round_id,
        )

        sonarr, radarr, overseerr = await asyncio.gather(
            self._delete_from_sonarr(item, delete_files),
            self._delete_from_radarr(item, delete_files),
            self._delete_from_overseerr(item),
        )
        result = DeletionResult(
            media_item_id=media_item_id,
            sonarr=sonarr,
            radarr=radarr,
            overseerr=overseerr,
        )

        await self._write_audit(result, delete_files, deleted_by_plex_id, review_round_id)

        errors = result.errors
        deletions_total.labels(result="partial" if errors else "success").inc()
        logger.info(
            "deletion_complete",
            media_item_id=media_item_id,
            sonarr=sonarr.success,
            radarr=radarr.success,
            overseerr=overseerr.success,
            error_count=len(errors),
        )
        return result

    # ── Claim ────────────────────────────────────────────────

    async def _claim(self, media_item_id: int) -> MediaItem:
        async with self.session_factory() as session:
            item = await session.get(MediaItem, media_item_id)
            if item is None:
                raise NotFound(f"Media item not found: {media_item_id}")

            claimed = await session.execute(
                update(MediaItem)
                .where(
                    MediaItem.id == media_item_id,
                    MediaItem.status != MediaStatus.REMOVED.value,
                )
                .values(status=MediaStatus.REMOVED.value, updated_at=utcnow())
            )
            if claimed.rowcount == 0:
                await session.rollback()
                deletions_total.labels(result="already_removed").inc()
                logger.warning("deletion_claim_lost", media_item_id=media_item_id)
                raise AlreadyRemovedError(media_item_id)

            await session.commit()
            media_items_marked_removed_total.labels(source="deletion").inc()
            return item

    # ── Per-service attempts ─────────────────────────────────

    async def _attempt(
        self,
        service: DeletionService,
        media_item_id: int,
        call: Callable[[], Awaitable[None]],
    ) -> ServiceOutcome:
        """Run one service's deletion; every exception becomes a failed outcome."""
        try:
            await call()
        except Exception as e:
            deletion_service_outcomes_total.labels(service=service.value, outcome="failed").inc()
            logger.warning(
                "deletion_service_failed",
                service=service.value,
                media_item_id=media_item_id,
                error=str(e),
            )
            return ServiceOutcome(attempted=True, success=False, error=str(e))

        deletion_service_outcomes_total.labels(service=service.value, outcome="success").inc()
        return ServiceOutcome(attempted=True, success=True)

    async def _delete_from_sonarr(self, item: MediaItem, delete_files: bool) -> ServiceOutcome:
        client = self.clients.sonarr
        if item.media_type != MediaType.TV.value or client is None or not item.tvdb_id:
            return ServiceOutcome()

        async def call():
            series = await client.lookup_by_tvdb_id(item.tvdb_id)
            # Not tracked upstream: already gone
            if series is not None:
                await client.delete_series(series["id"], delete_files)

        return await self._attempt(DeletionService.SONARR, item.id, call)

    async def _delete_from_radarr(self, item: MediaItem, delete_files: bool) -> ServiceOutcome:
        client = self.clients.radarr
        if item.media_type != MediaType.MOVIE.value or client is None or not item.tmdb_id:
            return ServiceOutcome()

        async def call():
            movie = await client.lookup_by_tmdb_id(item.tmdb_id)
            if movie is not None:
                await client.delete_movie(movie["id"], delete_files)

        return await self._attempt(DeletionService.RADARR, item.id, call)

    async def _delete_from_overseerr(self, item: MediaItem) -> ServiceOutcome:
        client = self.clients.overseerr
        if client is None or not item.overseerr_id:
            return ServiceOutcome()

        async def call():
            await client.delete_media(item.overseerr_id)

        return await self._attempt(DeletionService.OVERSEERR, item.id, call)

    # ── Audit ────────────────────────────────────────────────

    async def _write_audit(
        self,
        result: DeletionResult,
        delete_files: bool,
        deleted_by_plex_id: str,
        review_round_id: Optional[int],
    ) -> None:
        errors = result.errors
        async with self.session_factory() as session:
            session.add(
                DeletionLogEntry(
                    media_item_id=result.media_item_id,
                    review_round_id=review_round_id,
                    deleted_by_plex_id=deleted_by_plex_id,
                    delete_files=delete_files,
                    sonarr_success=result.sonarr.success,
                    radarr_success=result.radarr.success,
                    overseerr_success=result.overseerr.success,
                    errors=json.dumps(errors) if errors else None,
                )
            )
            await session.commit()
