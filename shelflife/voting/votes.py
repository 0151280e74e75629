"""
Vote store: self votes (delete/trim by the requester or an admin proxy) and
community keep votes. Each cast is a single native upsert on the
(media_item_id, user_plex_id) unique index.
"""

from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.auth import SessionUser
from shelflife.errors import NotFound, ValidationFailed
from shelflife.models.enums import CommunityVoteValue, MediaType, SelfVoteValue
from shelflife.models.tables import CommunityVote, MediaItem, SelfVote, utcnow
from shelflife.models.upsert import upsert
from shelflife.observability.metrics import votes_cast_total
from shelflife.voting.nominations import ensure_community_vote_eligible

logger = structlog.get_logger(__name__)


async def _get_votable_item(session: AsyncSession, user: SessionUser, media_item_id: int) -> MediaItem:
    """Requesters vote on their own items; admins on any item."""
    query = select(MediaItem).where(MediaItem.id == media_item_id)
    if not user.is_admin:
        query = query.where(MediaItem.requested_by_plex_id == user.plex_id)

    item = (await session.execute(query)).scalar_one_or_none()
    if item is None:
        raise NotFound("Media item not found")
    return item


def validate_trim(item: MediaItem, keep_seasons: Optional[int]) -> int:
    if item.media_type != MediaType.TV.value:
        raise ValidationFailed("Trim is only available for TV shows")
    if not item.season_count or item.season_count <= 1:
        raise ValidationFailed("Trim requires a show with more than one season")
    if keep_seasons is None:
        raise ValidationFailed("keep_seasons is required when vote is 'trim'")
    if keep_seasons < 1:
        raise ValidationFailed("keep_seasons must be at least 1")
    if keep_seasons >= item.season_count:
        raise ValidationFailed(
            f"keep_seasons must be less than the total season count ({item.season_count})"
        )
    return keep_seasons


# ── Self votes ───────────────────────────────────────────────

async def cast_self_vote(
    session: AsyncSession,
    user: SessionUser,
    media_item_id: int,
    vote: str,
    keep_seasons: Optional[int] = None,
) -> SelfVote:
    try:
        vote = SelfVoteValue(vote).value
    except ValueError:
        raise ValidationFailed(f"Invalid vote: {vote}")

    item = await _get_votable_item(session, user, media_item_id)

    if vote == SelfVoteValue.TRIM.value:
        keep_seasons = validate_trim(item, keep_seasons)
    else:
        keep_seasons = None

    now = utcnow()
    await upsert(
        session,
        SelfVote,
        keys={"media_item_id": media_item_id, "user_plex_id": user.plex_id},
        values={"vote": vote, "keep_seasons": keep_seasons, "updated_at": now},
    )
    await session.commit()

    votes_cast_total.labels(kind="self", operation="cast").inc()
    logger.info(
        "self_vote_cast",
        media_item_id=media_item_id,
        user_plex_id=user.plex_id,
        vote=vote,
        keep_seasons=keep_seasons,
        proxy=item.requested_by_plex_id != user.plex_id,
    )

    result = await session.execute(
        select(SelfVote).where(
            SelfVote.media_item_id == media_item_id,
            SelfVote.user_plex_id == user.plex_id,
        ).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def retract_self_vote(session: AsyncSession, user: SessionUser, media_item_id: int) -> bool:
    """Delete the caller's self vote. Returns True if a row was removed."""
    await _get_votable_item(session, user, media_item_id)

    result = await session.execute(
        delete(SelfVote).where(
            SelfVote.media_item_id == media_item_id,
            SelfVote.user_plex_id == user.plex_id,
        )
    )
    await session.commit()

    removed = result.rowcount > 0
    if removed:
        votes_cast_total.labels(kind="self", operation="retract").inc()
    logger.info("self_vote_retracted", media_item_id=media_item_id, user_plex_id=user.plex_id, removed=removed)
    return removed


# ── Community votes ──────────────────────────────────────────

async def cast_community_vote(
    session: AsyncSession,
    user: SessionUser,
    media_item_id: int,
    vote: str = CommunityVoteValue.KEEP.value,
) -> CommunityVote:
    try:
        vote = CommunityVoteValue(vote).value
    except ValueError:
        raise ValidationFailed(f"Invalid vote: {vote}")

    await ensure_community_vote_eligible(session, user, media_item_id)

    await upsert(
        session,
        CommunityVote,
        keys={"media_item_id": media_item_id, "user_plex_id": user.plex_id},
        values={"vote": vote, "updated_at": utcnow()},
    )
    await session.commit()

    votes_cast_total.labels(kind="community", operation="cast").inc()
    logger.info("community_vote_cast", media_item_id=media_item_id, user_plex_id=user.plex_id, vote=vote)

    result = await session.execute(
        select(CommunityVote).where(
            CommunityVote.media_item_id == media_item_id,
            CommunityVote.user_plex_id == user.plex_id,
        ).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def retract_community_vote(session: AsyncSession, user: SessionUser, media_item_id: int) -> bool:
    result = await session.execute(
        delete(CommunityVote).where(
            CommunityVote.media_item_id == media_item_id,
            CommunityVote.user_plex_id == user.plex_id,
        )
    )
    await session.commit()

    removed = result.rowcount > 0
    if removed:
        votes_cast_total.labels(kind="community", operation="retract").inc()
    logger.info("community_vote_retracted", media_item_id=media_item_id, user_plex_id=user.plex_id, removed=removed)
    return removed
