"""
Tautulli watch-history sync.
Tautulli users are matched to local users by username. Watch rows hold
absolute values recomputed from the full history on every run.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.clients.base import ServiceError
from shelflife.clients.tautulli import TautulliClient, TautulliHistoryRecord
from shelflife.models.tables import MediaItem, User, WatchStatus, utcnow
from shelflife.models.upsert import upsert

logger = structlog.get_logger(__name__)


@dataclass
class WatchAggregate:
    watched: bool = False
    play_count: int = 0
    last_watched_at: Optional[datetime] = None

    def add(self, record: TautulliHistoryRecord) -> None:
        self.play_count += 1
        if record.watched_status is not None and record.watched_status >= 1:
            self.watched = True
        if record.stopped:
            stopped = datetime.fromtimestamp(record.stopped, tz=timezone.utc)
            if self.last_watched_at is None or stopped > self.last_watched_at:
                self.last_watched_at = stopped


def aggregate_history(
    history: list[TautulliHistoryRecord],
    tautulli_names: dict[int, str],
    local_plex_ids: dict[str, str],
) -> dict[str, WatchAggregate]:
    """Fold history records into one aggregate per local plex id."""
    aggregates: dict[str, WatchAggregate] = {}
    for record in history:
        if record.user_id is None:
            continue
        name = tautulli_names.get(record.user_id) or record.user
        plex_id = local_plex_ids.get(name) if name else None
        if plex_id is None:
            continue
        aggregates.setdefault(plex_id, WatchAggregate()).add(record)
    return aggregates


async def sync_tautulli(session: AsyncSession, client: TautulliClient) -> int:
    """Returns the number of (item, user) watch rows written."""
    items_result = await session.execute(
        select(MediaItem.id, MediaItem.rating_key, MediaItem.title).where(
            MediaItem.rating_key.is_not(None)
        )
    )
    items = items_result.all()

    tautulli_users = await client.get_users()
    tautulli_names = {u.user_id: u.friendly_name or u.username for u in tautulli_users}

    users_result = await session.execute(select(User.username, User.plex_id))
    local_plex_ids = dict(users_result.all())

    per_item: list[tuple[int, dict[str, WatchAggregate]]] = []
    for media_item_id, rating_key, title in items:
        try:
            history = await client.get_history(rating_key)
        except (ServiceError, ValidationError) as e:
            logger.warning(
                "tautulli_history_failed",
                media_item_id=media_item_id,
                title=title,
                error=str(e),
            )
            continue
        per_item.append((media_item_id, aggregate_history(history, tautulli_names, local_plex_ids)))

    synced = 0
    now = utcnow()
    for media_item_id, aggregates in per_item:
        for plex_id, agg in aggregates.items():
            await upsert(
                session,
                WatchStatus,
                keys={"media_item_id": media_item_id, "user_plex_id": plex_id},
                values={
                    "watched": agg.watched,
                    "play_count": agg.play_count,
                    "last_watched_at": agg.last_watched_at,
                    "synced_at": now,
                },
            )
            synced += 1
    await session.commit()

    logger.info("tautulli_sync_complete", items=len(items), watch_rows=synced)
    return synced
