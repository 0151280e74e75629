"""
Python enums for the string-valued status and vote columns.
Values MUST match what is stored in the database.
"""

from enum import Enum


class MediaType(str, Enum):
    MOVIE = "movie"
    TV = "tv"


class MediaStatus(str, Enum):
    UNKNOWN = "unknown"
    PENDING = "pending"
    PROCESSING = "processing"
    PARTIAL = "partial"
    AVAILABLE = "available"
    REMOVED = "removed"


class SelfVoteValue(str, Enum):
    DELETE = "delete"
    TRIM = "trim"


class CommunityVoteValue(str, Enum):
    KEEP = "keep"


class RoundStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class ReviewActionValue(str, Enum):
    REMOVE = "remove"
    KEEP = "keep"
    SKIP = "skip"


class CompletionField(str, Enum):
    """User-toggled completion flags on a review round."""
    NOMINATIONS_COMPLETE = "nominations_complete"
    VOTING_COMPLETE = "voting_complete"


class SyncType(str, Enum):
    OVERSEERR = "overseerr"
    TAUTULLI = "tautulli"
    FULL = "full"


class SyncStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class DeletionService(str, Enum):
    SONARR = "sonarr"
    RADARR = "radarr"
    OVERSEERR = "overseerr"
