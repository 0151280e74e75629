"""
Tests for self and community vote casting.
"""

import pytest
from sqlalchemy import func, select

from shelflife.errors import NotFound, ValidationFailed
from shelflife.models.tables import SelfVote
from shelflife.voting.votes import (
    cast_community_vote,
    cast_self_vote,
    retract_community_vote,
    retract_self_vote,
)


async def _self_vote_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(SelfVote))).scalar_one()


class TestTrimValidation:
    """Trim votes need a multi-season show and a keep_seasons below the total."""

    async def test_keep_all_seasons_rejected(self, session, make_user, make_item):
        alice = await make_user("alice")
        show = await make_item(media_type="tv", season_count=5, requested_by_plex_id="alice")

        with pytest.raises(ValidationFailed, match=r"less than the total season count \(5\)"):
            await cast_self_vote(session, alice, show.id, "trim", keep_seasons=5)

    async def test_keep_zero_rejected(self, session, make_user, make_item):
        alice = await make_user("alice")
        show = await make_item(media_type="tv", season_count=5, requested_by_plex_id="alice")

        with pytest.raises(ValidationFailed, match="at least 1"):
            await cast_self_vote(session, alice, show.id, "trim", keep_seasons=0)

    async def test_movie_rejected(self, session, make_user, make_item):
        alice = await make_user("alice")
        movie = await make_item(requested_by_plex_id="alice")

        with pytest.raises(ValidationFailed, match="only available for TV"):
            await cast_self_vote(session, alice, movie.id, "trim", keep_seasons=1)

    async def test_single_season_rejected(self, session, make_user, make_item):
        alice = await make_user("alice")
        show = await make_item(media_type="tv", season_count=1, requested_by_plex_id="alice")

        with pytest.raises(ValidationFailed, match="more than one season"):
            await cast_self_vote(session, alice, show.id, "trim", keep_seasons=1)

    async def test_missing_keep_seasons_rejected(self, session, make_user, make_item):
        alice = await make_user("alice")
        show = await make_item(media_type="tv", season_count=4, requested_by_plex_id="alice")

        with pytest.raises(ValidationFailed, match="keep_seasons is required"):
            await cast_self_vote(session, alice, show.id, "trim")

    async def test_valid_trim_stored(self, session, make_user, make_item):
        alice = await make_user("alice")
        show = await make_item(media_type="tv", season_count=5, requested_by_plex_id="alice")

        vote = await cast_self_vote(session, alice, show.id, "trim", keep_seasons=2)
        assert vote.vote == "trim"
        assert vote.keep_seasons == 2

    async def test_rejected_vote_writes_nothing(self, session, make_user, make_item):
        alice = await make_user("alice")
        show = await make_item(media_type="tv", season_count=5, requested_by_plex_id="alice")

        with pytest.raises(ValidationFailed):
            await cast_self_vote(session, alice, show.id, "trim", keep_seasons=5)
        assert await _self_vote_count(session) == 0


class TestSelfVotes:

    async def test_invalid_value_rejected(self, session, make_user, make_item):
        alice = await make_user("alice")
        item = await make_item(requested_by_plex_id="alice")

        with pytest.raises(ValidationFailed):
            await cast_self_vote(session, alice, item.id, "keep")

    async def test_non_requester_gets_not_found(self, session, make_user, make_item):
        await make_user("alice")
        bob = await make_user("bob")
        item = await make_item(requested_by_plex_id="alice")

        with pytest.raises(NotFound):
            await cast_self_vote(session, bob, item.id, "delete")

    async def test_admin_can_vote_by_proxy(self, session, make_user, make_item):
        await make_user("alice")
        admin = await make_user("admin", is_admin=True)
        item = await make_item(requested_by_plex_id="alice")

        vote = await cast_self_vote(session, admin, item.id, "delete")
        assert vote.user_plex_id == "admin"

    async def test_recast_keeps_one_row(self, session, make_user, make_item):
        alice = await make_user("alice")
        show = await make_item(media_type="tv", season_count=3, requested_by_plex_id="alice")

        await cast_self_vote(session, alice, show.id, "trim", keep_seasons=1)
        vote = await cast_self_vote(session, alice, show.id, "delete")

        assert await _self_vote_count(session) == 1
        assert vote.vote == "delete"
        assert vote.keep_seasons is None

    async def test_retract_missing_vote_returns_false(self, session, make_user, make_item):
        alice = await make_user("alice")
        item = await make_item(requested_by_plex_id="alice")

        assert await retract_self_vote(session, alice, item.id) is False


class TestCommunityVotes:

    async def test_cast_and_retract(self, session, make_user, make_item, make_self_vote):
        await make_user("alice")
        bob = await make_user("bob")
        item = await make_item(requested_by_plex_id="alice")
        await make_self_vote(item.id, "alice", "delete")

        vote = await cast_community_vote(session, bob, item.id)
        assert vote.vote == "keep"

        assert await retract_community_vote(session, bob, item.id) is True
        assert await retract_community_vote(session, bob, item.id) is False

    async def test_cast_on_own_request_rejected(self, session, make_user, make_item, make_self_vote):
        alice = await make_user("alice")
        item = await make_item(requested_by_plex_id="alice")
        await make_self_vote(item.id, "alice", "delete")

        with pytest.raises(NotFound):
            await cast_community_vote(session, alice, item.id)
