"""
Caller identity.
Session issuance lives in the upstream auth layer; this module only resolves
the plex id it forwards into a SessionUser and enforces the admin gate.
"""

from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.errors import Forbidden, NotAuthenticated
from shelflife.models.tables import User


class SessionUser(BaseModel):
    """The acting caller, as supplied by the identity provider."""
    user_id: int
    plex_id: str
    username: str
    is_admin: bool = False


async def resolve_session_user(session: AsyncSession, plex_id: Optional[str]) -> SessionUser:
    if not plex_id:
        raise NotAuthenticated("Not authenticated")

    result = await session.execute(select(User).where(User.plex_id == plex_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotAuthenticated("Not authenticated")

    return SessionUser(
        user_id=user.id,
        plex_id=user.plex_id,
        username=user.username,
        is_admin=user.is_admin,
    )


def ensure_admin(user: SessionUser) -> SessionUser:
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user
