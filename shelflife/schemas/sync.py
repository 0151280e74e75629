"""
Pydantic schemas for sync triggers, sync status and the sync schedule.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from shelflife.models.enums import SyncType


class SyncRequest(BaseModel):
    type: SyncType = SyncType.FULL


class SyncResponse(BaseModel):
    success: bool = True
    synced: dict[str, int]


class SyncLogSummary(BaseModel):
    id: int
    sync_type: str
    status: str
    items_synced: int
    errors: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SyncStatusResponse(BaseModel):
    in_progress: bool
    last_sync: Optional[SyncLogSummary] = None


class SyncSchedule(BaseModel):
    enabled: bool = False
    interval_minutes: int = Field(360, ge=5, le=10080)
    sync_type: SyncType = SyncType.FULL
