"""
/api/v1/community endpoints.
Nominated items seen by everyone, and keep votes on other people's requests.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.auth import SessionUser
from shelflife.dependencies import get_current_user, get_db, verify_api_key
from shelflife.schemas.nominations import CommunityListResponse, CommunitySort
from shelflife.schemas.votes import CommunityVoteRequest, CommunityVoteResponse, RetractResponse
from shelflife.voting.nominations import list_community_candidates
from shelflife.voting.votes import cast_community_vote, retract_community_vote

router = APIRouter(prefix="/api/v1/community", tags=["community"], dependencies=[Depends(verify_api_key)])


@router.get("", response_model=CommunityListResponse)
async def list_candidates(
    type_filter: Literal["movie", "tv", "all"] = Query("all", alias="type"),
    unvoted: bool = Query(False),
    sort: CommunitySort = Query("least_keep"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: SessionUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    media_type: Optional[str] = None if type_filter == "all" else type_filter
    items, pagination = await list_community_candidates(
        session,
        user,
        media_type=media_type,
        unvoted=unvoted,
        sort=sort,
        page=page,
        limit=limit,
    )
    return CommunityListResponse(items=items, pagination=pagination)


@router.post("/{media_item_id}/vote", response_model=CommunityVoteResponse)
async def cast_vote(
    media_item_id: int,
    body: Optional[CommunityVoteRequest] = None,
    user: SessionUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    body = body or CommunityVoteRequest()
    vote = await cast_community_vote(session, user, media_item_id, body.vote.value)
    return CommunityVoteResponse.model_validate(vote)


@router.delete("/{media_item_id}/vote", response_model=RetractResponse)
async def retract_vote(
    media_item_id: int,
    user: SessionUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    removed = await retract_community_vote(session, user, media_item_id)
    return RetractResponse(media_item_id=media_item_id, removed=removed)
