"""
Top-level API router.
Combines all sub-routers into a single router.
"""

from fastapi import APIRouter

from shelflife.api.health import router as health_router
from shelflife.api.media import router as media_router
from shelflife.api.community import router as community_router
from shelflife.api.review_rounds import router as review_rounds_router
from shelflife.api.services import router as services_router
from shelflife.api.sync import router as sync_router
from shelflife.schemas.common import ERROR_RESPONSES

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(media_router, responses=ERROR_RESPONSES)
api_router.include_router(community_router, responses=ERROR_RESPONSES)
api_router.include_router(review_rounds_router, responses=ERROR_RESPONSES)
api_router.include_router(services_router, responses=ERROR_RESPONSES)
api_router.include_router(sync_router, responses=ERROR_RESPONSES)
