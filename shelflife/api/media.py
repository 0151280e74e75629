"""
/api/v1/media endpoints.
Self votes on the caller's own requests, and the caller's review completion.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.auth import SessionUser
from shelflife.dependencies import get_current_user, get_db, verify_api_key
from shelflife.review.rounds import get_user_status, set_user_completion
from shelflife.schemas.votes import (
    ActiveRoundInfo,
    CompletionStatus,
    RetractResponse,
    ReviewStatusResponse,
    ReviewStatusToggleResponse,
    ReviewStatusUpdate,
    SelfVoteRequest,
    SelfVoteResponse,
)
from shelflife.voting.votes import cast_self_vote, retract_self_vote

router = APIRouter(prefix="/api/v1/media", tags=["media"], dependencies=[Depends(verify_api_key)])


@router.get("/review-status", response_model=ReviewStatusResponse)
async def read_review_status(
    user: SessionUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Completion flags on the active round; both fields null when none is active."""
    found = await get_user_status(session, user)
    if found is None:
        return ReviewStatusResponse()

    active, row = found
    return ReviewStatusResponse(
        active_round=ActiveRoundInfo(id=active.id, name=active.name, end_date=active.end_date),
        status=CompletionStatus.model_validate(row, from_attributes=True) if row else CompletionStatus(),
    )


@router.post("/review-status", response_model=ReviewStatusToggleResponse)
async def toggle_review_status(
    body: ReviewStatusUpdate,
    user: SessionUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    await set_user_completion(session, user, body.field.value, body.value)
    return ReviewStatusToggleResponse(field=body.field, value=body.value)


@router.post("/{media_item_id}/vote", response_model=SelfVoteResponse, status_code=status.HTTP_200_OK)
async def cast_vote(
    media_item_id: int,
    body: SelfVoteRequest,
    user: SessionUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Nominate an item for deletion or trimming."""
    vote = await cast_self_vote(session, user, media_item_id, body.vote.value, body.keep_seasons)
    return SelfVoteResponse.model_validate(vote)


@router.delete("/{media_item_id}/vote", response_model=RetractResponse)
async def retract_vote(
    media_item_id: int,
    user: SessionUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    removed = await retract_self_vote(session, user, media_item_id)
    return RetractResponse(media_item_id=media_item_id, removed=removed)
