"""
Shared test fixtures.
Every test gets its own file-backed SQLite database under tmp_path.
"""

import os

# Keep the module-level engine off the real data directory
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import Optional

import httpx
import pytest

from shelflife.auth import SessionUser
from shelflife.models.database import build_engine, build_session_factory, init_db
from shelflife.models.tables import MediaItem, SelfVote, User


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'shelflife-test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ── Seed helpers ─────────────────────────────────────────────

@pytest.fixture
def make_user(session_factory):
    async def _make(plex_id: str, username: Optional[str] = None, is_admin: bool = False) -> SessionUser:
        async with session_factory() as session:
            user = User(plex_id=plex_id, username=username or plex_id, is_admin=is_admin)
            session.add(user)
            await session.commit()
            return SessionUser(
                user_id=user.id,
                plex_id=user.plex_id,
                username=user.username,
                is_admin=user.is_admin,
            )
    return _make


@pytest.fixture
def make_item(session_factory):
    async def _make(**fields) -> MediaItem:
        values = {"media_type": "movie", "title": "Untitled", "status": "available"}
        values.update(fields)
        async with session_factory() as session:
            item = MediaItem(**values)
            session.add(item)
            await session.commit()
            return item
    return _make


@pytest.fixture
def make_self_vote(session_factory):
    """Insert a self vote directly, bypassing the permission checks."""
    async def _make(media_item_id: int, plex_id: str, vote: str = "delete", keep_seasons: Optional[int] = None):
        async with session_factory() as session:
            session.add(
                SelfVote(
                    media_item_id=media_item_id,
                    user_plex_id=plex_id,
                    vote=vote,
                    keep_seasons=keep_seasons,
                )
            )
            await session.commit()
    return _make


# ── External service clients ─────────────────────────────────

@pytest.fixture
async def mock_client():
    """Build a real service client whose HTTP goes to an httpx.MockTransport."""
    built = []

    def _make(cls, handler, **kwargs):
        client = cls(
            f"http://{cls.service_name}.test",
            "test-key",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        built.append(client)
        return client

    yield _make

    for client in built:
        await client.aclose()
