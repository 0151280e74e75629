"""
Review round state machine: active -> closed, never reopened.

At most one round is active. create_round checks inside the inserting
transaction and the partial unique index `uq_review_rounds_single_active`
rejects whichever concurrent insert loses, so exactly one creator wins.
"""

from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.auth import SessionUser
from shelflife.errors import NotFound, RoundAlreadyActiveError, ValidationFailed
from shelflife.models.enums import CompletionField, ReviewActionValue, RoundStatus
from shelflife.models.tables import (
    MediaItem,
    ReviewAction,
    ReviewRound,
    UserReviewStatus,
    utcnow,
)
from shelflife.models.upsert import upsert
from shelflife.observability.metrics import review_actions_total, review_rounds_total

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = ("name", "end_date")


# ── Lifecycle ────────────────────────────────────────────────

async def get_active_round(session: AsyncSession) -> Optional[ReviewRound]:
    result = await session.execute(
        select(ReviewRound).where(ReviewRound.status == RoundStatus.ACTIVE.value).limit(1)
    )
    return result.scalar_one_or_none()


async def create_round(
    session: AsyncSession,
    admin: SessionUser,
    name: str,
    end_date: Optional[date] = None,
) -> ReviewRound:
    """Open a new round. Raises RoundAlreadyActiveError if one is open."""
    if await get_active_round(session) is not None:
        raise RoundAlreadyActiveError()

    review_round = ReviewRound(
        name=name,
        end_date=end_date,
        status=RoundStatus.ACTIVE.value,
        created_by_plex_id=admin.plex_id,
    )
    session.add(review_round)
    try:
        await session.commit()
    except IntegrityError:
        # A concurrent creator committed first
        await session.rollback()
        raise RoundAlreadyActiveError()

    review_rounds_total.labels(transition="created").inc()
    logger.info(
        "review_round_created",
        review_round_id=review_round.id,
        name=name,
        created_by=admin.plex_id,
    )
    return review_round


async def list_rounds(session: AsyncSession) -> list[tuple[ReviewRound, int]]:
    """All rounds, newest first, each with its recorded action count."""
    action_counts = (
        select(
            ReviewAction.review_round_id,
            func.count(ReviewAction.id).label("action_count"),
        )
        .group_by(ReviewAction.review_round_id)
        .subquery()
    )
    result = await session.execute(
        select(ReviewRound, func.coalesce(action_counts.c.action_count, 0))
        .outerjoin(action_counts, action_counts.c.review_round_id == ReviewRound.id)
        .order_by(ReviewRound.started_at.desc(), ReviewRound.id.desc())
    )
    return [(review_round, count) for review_round, count in result.all()]


async def get_round(session: AsyncSession, round_id: int) -> ReviewRound:
    review_round = await session.get(ReviewRound, round_id)
    if review_round is None:
        raise NotFound("Review round not found")
    return review_round


async def update_round(session: AsyncSession, round_id: int, changes: dict[str, Any]) -> ReviewRound:
    """
    Edit name and/or end_date. Closed rounds stay editable.
    `changes` holds only the fields the caller supplied.
    """
    changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
    if not changes:
        raise ValidationFailed("At least one field (name, end_date) must be provided")
    if "name" in changes and not changes["name"]:
        raise ValidationFailed("Name must not be empty")

    review_round = await get_round(session, round_id)
    for key, value in changes.items():
        setattr(review_round, key, value)
    await session.commit()

    logger.info("review_round_updated", review_round_id=round_id, fields=sorted(changes))
    return review_round


async def close_round(session: AsyncSession, round_id: int) -> ReviewRound:
    """
    Conditional active -> closed transition. Missing and already-closed
    rounds both raise NotFound; closed_at is written exactly once.
    """
    result = await session.execute(
        update(ReviewRound)
        .where(
            ReviewRound.id == round_id,
            ReviewRound.status == RoundStatus.ACTIVE.value,
        )
        .values(status=RoundStatus.CLOSED.value, closed_at=utcnow())
    )
    if result.rowcount == 0:
        await session.rollback()
        raise NotFound("Review round not found or already closed")
    await session.commit()

    review_rounds_total.labels(transition="closed").inc()
    logger.info("review_round_closed", review_round_id=round_id)

    reloaded = await session.execute(
        select(ReviewRound)
        .where(ReviewRound.id == round_id)
        .execution_options(populate_existing=True)
    )
    return reloaded.scalar_one()


# ── Per-user completion ──────────────────────────────────────

async def get_user_status(
    session: AsyncSession, user: SessionUser
) -> Optional[tuple[ReviewRound, Optional[UserReviewStatus]]]:
    """
    None when no round is active. Otherwise the active round and the user's
    row, which is None until the user first toggles a flag.
    """
    active = await get_active_round(session)
    if active is None:
        return None

    result = await session.execute(
        select(UserReviewStatus).where(
            UserReviewStatus.review_round_id == active.id,
            UserReviewStatus.user_plex_id == user.plex_id,
        )
    )
    return active, result.scalar_one_or_none()


async def set_user_completion(
    session: AsyncSession,
    user: SessionUser,
    field: str,
    value: bool,
) -> None:
    """Toggle one completion flag on the active round, leaving the other alone."""
    field = CompletionField(field).value
    active = await get_active_round(session)
    if active is None:
        raise NotFound("No active review round")

    now = utcnow()
    timestamp_column = field.replace("_complete", "_completed_at")
    touched = {field: value, timestamp_column: now if value else None, "updated_at": now}

    await upsert(
        session,
        UserReviewStatus,
        keys={"review_round_id": active.id, "user_plex_id": user.plex_id},
        values=touched,
    )
    await session.commit()

    logger.info(
        "review_completion_toggled",
        review_round_id=active.id,
        user_plex_id=user.plex_id,
        field=field,
        value=value,
    )


# ── Per-item actions ─────────────────────────────────────────

async def record_action(
    session: AsyncSession,
    admin: SessionUser,
    round_id: int,
    media_item_id: int,
    action: str,
) -> ReviewAction:
    """Record remove/keep/skip for an item; re-recording overwrites."""
    action = ReviewActionValue(action).value

    review_round = await session.get(ReviewRound, round_id)
    if review_round is None or review_round.status != RoundStatus.ACTIVE.value:
        raise NotFound("Review round not found or not active")

    if await session.get(MediaItem, media_item_id) is None:
        raise NotFound("Media item not found")

    await upsert(
        session,
        ReviewAction,
        keys={"review_round_id": round_id, "media_item_id": media_item_id},
        values={"action": action, "acted_by_plex_id": admin.plex_id, "acted_at": utcnow()},
    )
    await session.commit()

    review_actions_total.labels(action=action).inc()
    logger.info(
        "review_action_recorded",
        review_round_id=round_id,
        media_item_id=media_item_id,
        action=action,
        acted_by=admin.plex_id,
    )

    result = await session.execute(
        select(ReviewAction)
        .where(
            ReviewAction.review_round_id == round_id,
            ReviewAction.media_item_id == media_item_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()
