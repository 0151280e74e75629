"""
Pydantic request/response schemas for self votes, community votes and
per-user review completion.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from shelflife.models.enums import CommunityVoteValue, CompletionField, SelfVoteValue


# ── Self votes ───────────────────────────────────────────────

class SelfVoteRequest(BaseModel):
    """Body of POST /media/{id}/vote."""
    vote: SelfVoteValue
    keep_seasons: Optional[int] = None


class SelfVoteResponse(BaseModel):
    media_item_id: int
    user_plex_id: str
    vote: str
    keep_seasons: Optional[int] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Community votes ──────────────────────────────────────────

class CommunityVoteRequest(BaseModel):
    """Body of POST /community/{id}/vote. Only `keep` exists."""
    vote: CommunityVoteValue = CommunityVoteValue.KEEP


class CommunityVoteResponse(BaseModel):
    media_item_id: int
    user_plex_id: str
    vote: str
    updated_at: datetime

    model_config = {"from_attributes": True}


class RetractResponse(BaseModel):
    media_item_id: int
    removed: bool


# ── Review completion ────────────────────────────────────────

class ActiveRoundInfo(BaseModel):
    id: int
    name: str
    end_date: Optional[date] = None


class CompletionStatus(BaseModel):
    nominations_complete: bool = False
    voting_complete: bool = False
    nominations_completed_at: Optional[datetime] = None
    voting_completed_at: Optional[datetime] = None


class ReviewStatusResponse(BaseModel):
    """Both fields are null when no round is active."""
    active_round: Optional[ActiveRoundInfo] = None
    status: Optional[CompletionStatus] = None


class ReviewStatusUpdate(BaseModel):
    field: CompletionField
    value: bool


class ReviewStatusToggleResponse(BaseModel):
    success: bool = True
    field: CompletionField
    value: bool
