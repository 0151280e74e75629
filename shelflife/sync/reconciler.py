"""
Overseerr request sync.

Fetches every request, resolves titles, upserts requesters and media items,
then marks tracked items that vanished upstream as removed. `removed` is
terminal here too: an upsert never moves an item out of it.

Network calls happen before the first write so the write transaction stays
short.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.clients.base import ServiceError
from shelflife.clients.overseerr import OverseerrClient, OverseerrRequest, map_media_status
from shelflife.models.enums import MediaStatus, MediaType
from shelflife.models.tables import MediaItem, User, utcnow
from shelflife.models.upsert import dialect_insert, upsert
from shelflife.observability.metrics import media_items_marked_removed_total

logger = structlog.get_logger(__name__)


@dataclass
class ReconcileResult:
    synced: int
    marked_removed: int
    stale_guard_triggered: bool = False


def fallback_title(tmdb_id: Optional[int]) -> str:
    return f"Unknown (TMDB: {tmdb_id})"


async def _resolve_details(client: OverseerrClient, request: OverseerrRequest) -> dict[str, Any]:
    """Title, poster, imdb id and season count; falls back on lookup failure."""
    tmdb_id = request.media.tmdbId if request.media else None
    resolved: dict[str, Any] = {
        "title": fallback_title(tmdb_id),
        "poster_path": None,
        "imdb_id": None,
        "season_count": None,
    }
    if not tmdb_id:
        return resolved

    try:
        details = await client.get_media_details(tmdb_id, request.type)
    except (ServiceError, ValidationError) as e:
        logger.warning(
            "overseerr_details_failed",
            request_id=request.id,
            tmdb_id=tmdb_id,
            error=str(e),
        )
        return resolved

    resolved["title"] = details.display_title or resolved["title"]
    resolved["poster_path"] = details.posterPath
    resolved["imdb_id"] = details.resolved_imdb_id
    if request.type == MediaType.TV.value:
        resolved["season_count"] = details.numberOfSeasons
    return resolved


async def _upsert_requester(session: AsyncSession, request: OverseerrRequest) -> Optional[str]:
    requester = request.requestedBy
    if requester is None or requester.plexId is None:
        return None

    plex_id = str(requester.plexId)
    values = {
        "username": requester.display_name,
        "email": requester.email,
        "avatar_url": requester.avatar,
        "updated_at": utcnow(),
    }
    await upsert(session, User, keys={"plex_id": plex_id}, values=values)
    return plex_id


async def _upsert_media_item(
    session: AsyncSession,
    request: OverseerrRequest,
    details: dict[str, Any],
    requested_by_plex_id: Optional[str],
) -> int:
    media = request.media
    overseerr_id = media.id if media and media.id is not None else request.id
    now = utcnow()

    values = {
        "overseerr_id": overseerr_id,
        "overseerr_request_id": request.id,
        "tmdb_id": media.tmdbId if media else None,
        "tvdb_id": media.tvdbId if media else None,
        "imdb_id": details["imdb_id"],
        "media_type": request.type,
        "title": details["title"],
        "poster_path": details["poster_path"],
        "status": map_media_status(media.status if media else None),
        "requested_by_plex_id": requested_by_plex_id,
        "requested_at": request.createdAt,
        "rating_key": media.ratingKey if media else None,
        "season_count": details["season_count"],
        "last_synced_at": now,
        "updated_at": now,
    }

    stmt = dialect_insert(session, MediaItem).values(**values)
    excluded = stmt.excluded
    status_column = MediaItem.__table__.c.status
    stmt = stmt.on_conflict_do_update(
        index_elements=["overseerr_id"],
        set_={
            "title": excluded.title,
            "poster_path": excluded.poster_path,
            "imdb_id": func.coalesce(excluded.imdb_id, MediaItem.__table__.c.imdb_id),
            "tvdb_id": excluded.tvdb_id,
            "season_count": func.coalesce(excluded.season_count, MediaItem.__table__.c.season_count),
            "rating_key": excluded.rating_key,
            "status": case(
                (status_column == MediaStatus.REMOVED.value, status_column),
                else_=excluded.status,
            ),
            "last_synced_at": excluded.last_synced_at,
            "updated_at": excluded.updated_at,
        },
    )
    await session.execute(stmt)
    return overseerr_id


async def mark_stale_items_removed(session: AsyncSession, fetched_ids: set[int]) -> tuple[int, bool]:
    """
    Tracked items absent from `fetched_ids` become removed. Returns
    (items marked removed, whether the empty-set guard fired).

    An empty fetched set while non-removed items are tracked is treated as an
    upstream failure: nothing is transitioned and a warning is logged.
    """
    if not fetched_ids:
        tracked = (
            await session.execute(
                select(func.count())
                .select_from(MediaItem)
                .where(
                    MediaItem.overseerr_id.is_not(None),
                    MediaItem.status != MediaStatus.REMOVED.value,
                )
            )
        ).scalar_one()
        if tracked:
            logger.warning("sync_stale_guard_triggered", tracked_items=tracked)
            return 0, True
        return 0, False

    result = await session.execute(
        update(MediaItem)
        .where(
            MediaItem.overseerr_id.is_not(None),
            MediaItem.overseerr_id.not_in(fetched_ids),
            MediaItem.status != MediaStatus.REMOVED.value,
        )
        .values(status=MediaStatus.REMOVED.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    marked = result.rowcount or 0
    if marked:
        media_items_marked_removed_total.labels(source="sync").inc(marked)
        logger.info("sync_stale_items_removed", count=marked)
    return marked, False


async def sync_overseerr(session: AsyncSession, client: OverseerrClient) -> ReconcileResult:
    """Full Overseerr reconcile, committed as one transaction."""
    requests = await client.get_all_requests()
    logger.info("overseerr_sync_started", requests=len(requests))

    resolved = [(request, await _resolve_details(client, request)) for request in requests]

    fetched_ids: set[int] = set()
    for request, details in resolved:
        requested_by = await _upsert_requester(session, request)
        fetched_ids.add(await _upsert_media_item(session, request, details, requested_by))

    marked, guard_triggered = await mark_stale_items_removed(session, fetched_ids)
    await session.commit()

    result = ReconcileResult(
        synced=len(resolved),
        marked_removed=marked,
        stale_guard_triggered=guard_triggered,
    )
    logger.info(
        "overseerr_sync_complete",
        synced=result.synced,
        marked_removed=result.marked_removed,
        stale_guard_triggered=result.stale_guard_triggered,
    )
    return result
