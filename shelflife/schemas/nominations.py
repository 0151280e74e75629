"""
Pydantic response schemas for candidate listings.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from shelflife.schemas.common import Pagination
from shelflife.schemas.rounds import ReviewRoundResponse

CommunitySort = Literal["least_keep", "most_keep", "newest", "title_asc", "title_desc"]


class VoteTally(BaseModel):
    keep_count: int = 0
    keep_voters: list[str] = Field(default_factory=list)


class WatchSummary(BaseModel):
    watched: bool
    play_count: int = 0
    last_watched_at: Optional[datetime] = None


class CandidateBase(BaseModel):
    id: int
    title: str
    media_type: str
    status: str
    poster_path: Optional[str] = None
    season_count: Optional[int] = None
    requested_by_username: str = "Unknown"
    nomination_type: str = "delete"
    keep_seasons: Optional[int] = None
    nominated_by: list[str] = Field(default_factory=list)
    tally: VoteTally = Field(default_factory=VoteTally)


class CommunityCandidate(CandidateBase):
    """A candidate as seen by a regular user."""
    imdb_id: Optional[str] = None
    requested_at: Optional[datetime] = None
    watch_status: Optional[WatchSummary] = None
    current_user_vote: Optional[str] = None
    is_own: bool = False
    is_nominator: bool = False


class CommunityListResponse(BaseModel):
    items: list[CommunityCandidate]
    pagination: Pagination


class RoundCandidate(CandidateBase):
    """A candidate as seen by an admin inside a review round."""
    action: Optional[str] = None
    acted_at: Optional[datetime] = None
    action_by_username: Optional[str] = None


class RoundDetailResponse(BaseModel):
    round: ReviewRoundResponse
    candidates: list[RoundCandidate]
