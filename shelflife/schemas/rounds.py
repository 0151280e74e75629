"""
Pydantic request/response schemas for /api/v1/admin/review-rounds.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from shelflife.models.enums import ReviewActionValue


# ── Request Schemas ──────────────────────────────────────────

class ReviewRoundCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    end_date: Optional[date] = None


class ReviewRoundUpdate(BaseModel):
    """Partial update. Fields left unset are not touched."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    end_date: Optional[date] = None


class ReviewActionRequest(BaseModel):
    media_item_id: int = Field(..., gt=0)
    action: ReviewActionValue


# ── Response Schemas ─────────────────────────────────────────

class ReviewRoundResponse(BaseModel):
    id: int
    name: str
    status: str
    started_at: datetime
    closed_at: Optional[datetime] = None
    end_date: Optional[date] = None
    created_by_plex_id: str

    model_config = {"from_attributes": True}


class ReviewRoundSummary(ReviewRoundResponse):
    action_count: int = 0


class ReviewRoundListResponse(BaseModel):
    rounds: list[ReviewRoundSummary]


class ReviewActionResponse(BaseModel):
    review_round_id: int
    media_item_id: int
    action: str
    acted_by_plex_id: str
    acted_at: datetime

    model_config = {"from_attributes": True}


class UserCompletion(BaseModel):
    plex_id: str
    username: str
    nominations_complete: bool = False
    voting_complete: bool = False
    nominations_completed_at: Optional[datetime] = None
    voting_completed_at: Optional[datetime] = None


class CompletionSummary(BaseModel):
    """Progress only. Nothing is gated on these numbers."""
    review_round_id: int
    total_users: int
    nominations_complete: int
    voting_complete: int
    users: list[UserCompletion]
