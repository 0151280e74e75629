"""
Overseerr client: request listing, media details and media deletion.
"""

from datetime import datetime
from typing import Optional

import structlog
from pydantic import BaseModel

from shelflife.clients.base import ServiceClient

logger = structlog.get_logger(__name__)


# ── Response models ──────────────────────────────────────────

class OverseerrUser(BaseModel):
    id: int
    email: Optional[str] = None
    plexUsername: Optional[str] = None
    username: Optional[str] = None
    plexId: Optional[int] = None
    avatar: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.plexUsername or self.username or self.email or "Unknown"


class OverseerrMedia(BaseModel):
    id: Optional[int] = None
    tmdbId: Optional[int] = None
    tvdbId: Optional[int] = None
    status: Optional[int] = None
    ratingKey: Optional[str] = None


class OverseerrRequest(BaseModel):
    id: int
    status: int
    createdAt: datetime
    updatedAt: Optional[datetime] = None
    type: str  # 'movie' | 'tv'
    media: Optional[OverseerrMedia] = None
    requestedBy: Optional[OverseerrUser] = None


class OverseerrPageInfo(BaseModel):
    pages: int
    pageSize: int
    results: int
    page: int


class OverseerrRequestPage(BaseModel):
    pageInfo: OverseerrPageInfo
    results: list[OverseerrRequest]


class OverseerrExternalIds(BaseModel):
    imdbId: Optional[str] = None


class OverseerrMediaDetails(BaseModel):
    id: int
    title: Optional[str] = None
    name: Optional[str] = None
    originalTitle: Optional[str] = None
    originalName: Optional[str] = None
    posterPath: Optional[str] = None
    overview: Optional[str] = None
    imdbId: Optional[str] = None
    numberOfSeasons: Optional[int] = None
    externalIds: Optional[OverseerrExternalIds] = None

    @property
    def display_title(self) -> Optional[str]:
        return self.title or self.name or self.originalTitle or self.originalName

    @property
    def resolved_imdb_id(self) -> Optional[str]:
        if self.imdbId:
            return self.imdbId
        return self.externalIds.imdbId if self.externalIds else None


# Overseerr media status codes
MEDIA_STATUS_MAP = {
    1: "unknown",
    2: "pending",
    3: "processing",
    4: "partial",
    5: "available",
}


def map_media_status(status: Optional[int]) -> str:
    """Map an Overseerr media status code to a local status. Never 'removed'."""
    return MEDIA_STATUS_MAP.get(status if status is not None else 1, "unknown")


class OverseerrClient(ServiceClient):
    service_name = "overseerr"
    display_name = "Overseerr"

    def __init__(self, *args, page_size: int = 50, **kwargs):
        super().__init__(*args, **kwargs)
        self.page_size = page_size

    async def get_requests(self, take: int = 20, skip: int = 0) -> OverseerrRequestPage:
        data = await self._request(
            "GET",
            "/api/v1/request",
            params={"take": take, "skip": skip, "sort": "added", "filter": "all"},
            operation="get_requests",
        )
        return OverseerrRequestPage.model_validate(data)

    async def get_all_requests(self) -> list[OverseerrRequest]:
        """Page through every request."""
        requests: list[OverseerrRequest] = []
        skip = 0
        while True:
            page = await self.get_requests(take=self.page_size, skip=skip)
            requests.extend(page.results)
            if skip + self.page_size >= page.pageInfo.results:
                break
            skip += self.page_size

        logger.debug("overseerr_requests_fetched", count=len(requests))
        return requests

    async def get_media_details(self, tmdb_id: int, media_type: str) -> OverseerrMediaDetails:
        data = await self._request(
            "GET", f"/api/v1/{media_type}/{tmdb_id}", operation="get_media_details"
        )
        return OverseerrMediaDetails.model_validate(data)

    async def delete_media(self, media_id: int) -> None:
        await self._request("DELETE", f"/api/v1/media/{media_id}", operation="delete_media")
