"""
/api/v1/admin/review-rounds endpoints.
Round lifecycle, per-item actions, completion progress and deletion.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.auth import SessionUser
from shelflife.deletion.orchestrator import DeletionOrchestrator
from shelflife.dependencies import get_db, get_orchestrator, require_admin, verify_api_key
from shelflife.errors import AlreadyRemovedError, NotFound, ValidationFailed
from shelflife.models.enums import MediaStatus, ReviewActionValue, RoundStatus
from shelflife.models.tables import MediaItem, ReviewAction
from shelflife.review.completion import completion_summary
from shelflife.review.rounds import (
    close_round,
    create_round,
    get_round,
    list_rounds,
    record_action,
    update_round,
)
from shelflife.schemas.deletion import DeletionRequest, DeletionResult
from shelflife.schemas.nominations import RoundDetailResponse
from shelflife.schemas.rounds import (
    CompletionSummary,
    ReviewActionRequest,
    ReviewActionResponse,
    ReviewRoundCreate,
    ReviewRoundListResponse,
    ReviewRoundResponse,
    ReviewRoundSummary,
    ReviewRoundUpdate,
)
from shelflife.voting.nominations import list_round_candidates


router = APIRouter(
    prefix="/api/v1/admin/review-rounds",
    tags=["review-rounds"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("", response_model=ReviewRoundListResponse)
async def list_review_rounds(
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    rounds = await list_rounds(session)
    return ReviewRoundListResponse(
        rounds=[
            ReviewRoundSummary(
                **ReviewRoundResponse.model_validate(review_round).model_dump(),
                action_count=action_count,
            )
            for review_round, action_count in rounds
        ]
    )


@router.post("", response_model=ReviewRoundResponse, status_code=status.HTTP_201_CREATED)
async def create_review_round(
    body: ReviewRoundCreate,
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Open a round. 409 if another round is active."""
    review_round = await create_round(session, admin, body.name, body.end_date)
    return ReviewRoundResponse.model_validate(review_round)


@router.get("/{round_id}", response_model=RoundDetailResponse)
async def get_review_round(
    round_id: int,
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """The round with every candidate, its tally and this round's action."""
    review_round = await get_round(session, round_id)
    candidates = await list_round_candidates(session, round_id)
    return RoundDetailResponse(
        round=ReviewRoundResponse.model_validate(review_round),
        candidates=candidates,
    )


@router.patch("/{round_id}", response_model=ReviewRoundResponse)
async def update_review_round(
    round_id: int,
    body: ReviewRoundUpdate,
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    review_round = await update_round(session, round_id, body.model_dump(exclude_unset=True))
    return ReviewRoundResponse.model_validate(review_round)


@router.post("/{round_id}/close", response_model=ReviewRoundResponse)
async def close_review_round(
    round_id: int,
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    review_round = await close_round(session, round_id)
    return ReviewRoundResponse.model_validate(review_round)


@router.post("/{round_id}/action", response_model=ReviewActionResponse)
async def record_review_action(
    round_id: int,
    body: ReviewActionRequest,
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    action = await record_action(session, admin, round_id, body.media_item_id, body.action.value)
    return ReviewActionResponse.model_validate(action)


@router.get("/{round_id}/completion", response_model=CompletionSummary)
async def get_completion(
    round_id: int,
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    return await completion_summary(session, round_id)


# ── Deletion ─────────────────────────────────────────────────

async def _check_deletion_preconditions(
    session: AsyncSession, round_id: int, media_item_id: int
) -> None:
    review_round = await get_round(session, round_id)
    if review_round.status != RoundStatus.ACTIVE.value:
        raise ValidationFailed("Review round is not active")

    result = await session.execute(
        select(ReviewAction.id).where(
            ReviewAction.review_round_id == round_id,
            ReviewAction.media_item_id == media_item_id,
            ReviewAction.action == ReviewActionValue.REMOVE.value,
        )
    )
    if result.scalar_one_or_none() is None:
        raise ValidationFailed("No remove action found for this media item in this round")

    item = await session.get(MediaItem, media_item_id)
    if item is None:
        raise NotFound("Media item not found")
    if item.status == MediaStatus.REMOVED.value:
        raise AlreadyRemovedError(media_item_id)


@router.post("/{round_id}/delete", response_model=DeletionResult)
async def delete_media_item(
    round_id: int,
    body: DeletionRequest,
    admin: SessionUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
    orchestrator: DeletionOrchestrator = Depends(get_orchestrator),
):
    """
    Delete an item marked `remove` in this round from every configured
    service. Always 200 once claimed; inspect each service's outcome.
    """
    await _check_deletion_preconditions(session, round_id, body.media_item_id)
    # Release the read transaction before the orchestrator writes
    await session.commit()

    return await orchestrator.execute(
        media_item_id=body.media_item_id,
        delete_files=body.delete_files,
        deleted_by_plex_id=admin.plex_id,
        review_round_id=round_id,
    )
