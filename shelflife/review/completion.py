"""
Per-round completion aggregation for the admin dashboard.
Non-admin users are the eligible participants.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.models.tables import User, UserReviewStatus
from shelflife.review.rounds import get_round
from shelflife.schemas.rounds import CompletionSummary, UserCompletion


async def completion_summary(session: AsyncSession, round_id: int) -> CompletionSummary:
    await get_round(session, round_id)

    participants = await session.execute(
        select(User.plex_id, User.username)
        .where(User.is_admin.is_(False))
        .order_by(User.username)
    )
    statuses_result = await session.execute(
        select(UserReviewStatus).where(UserReviewStatus.review_round_id == round_id)
    )
    statuses = {s.user_plex_id: s for s in statuses_result.scalars()}

    users = []
    for plex_id, username in participants.all():
        status = statuses.get(plex_id)
        if status is None:
            users.append(UserCompletion(plex_id=plex_id, username=username))
            continue
        users.append(
            UserCompletion(
                plex_id=plex_id,
                username=username,
                nominations_complete=status.nominations_complete,
                voting_complete=status.voting_complete,
                nominations_completed_at=status.nominations_completed_at,
                voting_completed_at=status.voting_completed_at,
            )
        )

    return CompletionSummary(
        review_round_id=round_id,
        total_users=len(users),
        nominations_complete=sum(1 for u in users if u.nominations_complete),
        voting_complete=sum(1 for u in users if u.voting_complete),
        users=users,
    )
