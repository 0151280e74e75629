"""
Typed errors raised by services and mapped to HTTP status at the API boundary.
"""

from typing import Optional


class ShelflifeError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500
    error_code = "ERR_INTERNAL"

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        super().__init__(message)


class ValidationFailed(ShelflifeError):
    status_code = 400
    error_code = "ERR_VALIDATION"


class NotAuthenticated(ShelflifeError):
    status_code = 401
    error_code = "ERR_NOT_AUTHENTICATED"


class Forbidden(ShelflifeError):
    status_code = 403
    error_code = "ERR_FORBIDDEN"


class NotFound(ShelflifeError):
    status_code = 404
    error_code = "ERR_NOT_FOUND"


class Conflict(ShelflifeError):
    status_code = 409
    error_code = "ERR_CONFLICT"


class RoundAlreadyActiveError(Conflict):
    """Raised when a review round is created while another is active."""

    error_code = "ERR_ROUND_ACTIVE"

    def __init__(self):
        super().__init__(
            "An active review round already exists. Close it before starting a new one."
        )


class AlreadyRemovedError(Conflict):
    """Raised when the deletion claim finds the item already removed."""

    error_code = "ERR_ALREADY_REMOVED"

    def __init__(self, media_item_id: int):
        self.media_item_id = media_item_id
        super().__init__(f"Media item already removed: {media_item_id}")


class SyncInProgressError(Conflict):
    error_code = "ERR_SYNC_IN_PROGRESS"

    def __init__(self):
        super().__init__("A sync is already in progress")
