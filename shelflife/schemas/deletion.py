"""
Deletion request and per-service outcome schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field


class DeletionRequest(BaseModel):
    media_item_id: int = Field(..., gt=0)
    delete_files: bool = False


class ServiceOutcome(BaseModel):
    """
    Tri-state outcome of one external service.

    attempted=False, success=None: skipped (not configured or not applicable).
    attempted=True: success is True or False, with `error` set on failure.
    """
    attempted: bool = False
    success: Optional[bool] = None
    error: Optional[str] = None


class DeletionResult(BaseModel):
    """There is no overall success flag; inspect each service."""
    media_item_id: int
    sonarr: ServiceOutcome = Field(default_factory=ServiceOutcome)
    radarr: ServiceOutcome = Field(default_factory=ServiceOutcome)
    overseerr: ServiceOutcome = Field(default_factory=ServiceOutcome)

    @property
    def errors(self) -> list[str]:
        return [
            f"{name}: {outcome.error}"
            for name, outcome in (
                ("sonarr", self.sonarr),
                ("radarr", self.radarr),
                ("overseerr", self.overseerr),
            )
            if outcome.attempted and outcome.success is False
        ]


class ServiceStatusResponse(BaseModel):
    sonarr: bool
    radarr: bool
    overseerr: bool
