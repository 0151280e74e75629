"""
Tests for the nomination resolver.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from shelflife.errors import NotFound
from shelflife.models.tables import CommunityVote
from shelflife.voting.nominations import (
    QualifyingVote,
    ensure_community_vote_eligible,
    list_community_candidates,
    list_round_candidates,
    load_nominations,
    nomination_priority,
    resolve_nomination,
)
from shelflife.voting.votes import cast_community_vote, cast_self_vote, retract_self_vote


def _vote(voter, vote="delete", keep_seasons=None, is_requester=False, media_item_id=1, at=None):
    return QualifyingVote(
        media_item_id=media_item_id,
        voter_plex_id=voter,
        voter_username=voter,
        vote=vote,
        keep_seasons=keep_seasons,
        updated_at=at,
        is_requester=is_requester,
    )


class TestResolveNomination:
    """Merge rule over the qualifying rows of one item."""

    def test_single_delete(self):
        nomination = resolve_nomination([_vote("alice", is_requester=True)])
        assert nomination.nomination_type == "delete"
        assert nomination.keep_seasons is None
        assert nomination.self_nominated

    def test_requester_row_wins_over_admin_trim(self):
        nomination = resolve_nomination([
            _vote("admin", vote="trim", keep_seasons=2),
            _vote("alice", vote="delete", is_requester=True),
        ])
        assert nomination.nomination_type == "delete"
        assert nomination.keep_seasons is None

    def test_requester_keep_seasons_wins(self):
        nomination = resolve_nomination([
            _vote("admin", vote="trim", keep_seasons=4),
            _vote("alice", vote="trim", keep_seasons=1, is_requester=True),
        ])
        assert nomination.nomination_type == "trim"
        assert nomination.keep_seasons == 1

    def test_admin_only_prefers_trim(self):
        nomination = resolve_nomination([
            _vote("admin-b", vote="delete"),
            _vote("admin-a", vote="trim", keep_seasons=3),
        ])
        assert nomination.nomination_type == "trim"
        assert nomination.keep_seasons == 3
        assert not nomination.self_nominated

    def test_admin_only_keep_seasons_is_largest_trim(self):
        nomination = resolve_nomination([
            _vote("admin-a", vote="trim", keep_seasons=1),
            _vote("admin-b", vote="trim", keep_seasons=3),
        ])
        assert nomination.keep_seasons == 3

    def test_nominated_by_lists_every_voter(self):
        nomination = resolve_nomination([
            _vote("zed"),
            _vote("alice", is_requester=True),
        ])
        assert nomination.nominated_by == ["alice", "zed"]
        assert nomination.nominator_plex_ids == {"alice", "zed"}

    def test_last_voted_at_is_latest(self):
        base = datetime(2024, 1, 1)
        nomination = resolve_nomination([
            _vote("a", at=base),
            _vote("b", at=base + timedelta(days=2)),
        ])
        assert nomination.last_voted_at == base + timedelta(days=2)

    def test_empty_input_rejected(self):
        with pytest.raises(ValueError):
            resolve_nomination([])

    def test_priority_is_explicit(self):
        assert nomination_priority("trim") > nomination_priority("delete")
        assert nomination_priority("keep") == 0


class TestLoadNominations:
    """Nomination condition and dedup against the database."""

    async def test_self_and_admin_vote_produce_one_candidate(self, session, make_user, make_item, make_self_vote):
        await make_user("alice")
        await make_user("admin", is_admin=True)
        item = await make_item(media_type="tv", season_count=5, requested_by_plex_id="alice")
        await make_self_vote(item.id, "alice", "trim", keep_seasons=2)
        await make_self_vote(item.id, "admin", "delete")

        nominations = await load_nominations(session)
        assert list(nominations) == [item.id]
        assert nominations[item.id].nomination_type == "trim"
        assert nominations[item.id].keep_seasons == 2

        candidates = await list_round_candidates(session, round_id=1)
        assert [c.id for c in candidates] == [item.id]

    async def test_non_admin_stranger_vote_does_not_nominate(self, session, make_user, make_item, make_self_vote):
        await make_user("alice")
        await make_user("bob")
        item = await make_item(requested_by_plex_id="alice")
        await make_self_vote(item.id, "bob", "delete")

        assert await load_nominations(session) == {}

    async def test_admin_proxy_nominates(self, session, make_user, make_item, make_self_vote):
        await make_user("alice")
        await make_user("admin", is_admin=True)
        item = await make_item(requested_by_plex_id="alice")
        await make_self_vote(item.id, "admin", "delete")

        nominations = await load_nominations(session)
        assert item.id in nominations
        assert not nominations[item.id].self_nominated

    async def test_retract_removes_candidate(self, session, make_user, make_item):
        alice = await make_user("alice")
        item = await make_item(requested_by_plex_id="alice")

        await cast_self_vote(session, alice, item.id, "delete")
        assert item.id in await load_nominations(session)

        assert await retract_self_vote(session, alice, item.id) is True
        assert item.id not in await load_nominations(session)
        assert await list_round_candidates(session, round_id=1) == []


class TestEligibility:
    """Community vote gate."""

    async def test_requester_is_rejected(self, session, make_user, make_item, make_self_vote):
        alice = await make_user("alice")
        item = await make_item(requested_by_plex_id="alice")
        await make_self_vote(item.id, "alice", "delete")

        with pytest.raises(NotFound):
            await ensure_community_vote_eligible(session, alice, item.id)

    async def test_admin_requester_is_rejected(self, session, make_user, make_item, make_self_vote):
        admin = await make_user("admin", is_admin=True)
        item = await make_item(requested_by_plex_id="admin")
        await make_self_vote(item.id, "admin", "delete")

        with pytest.raises(NotFound):
            await ensure_community_vote_eligible(session, admin, item.id)

    async def test_non_candidate_is_rejected(self, session, make_user, make_item):
        await make_user("alice")
        bob = await make_user("bob")
        item = await make_item(requested_by_plex_id="alice")

        with pytest.raises(NotFound):
            await ensure_community_vote_eligible(session, bob, item.id)

    async def test_missing_item_is_rejected(self, session, make_user):
        bob = await make_user("bob")
        with pytest.raises(NotFound):
            await ensure_community_vote_eligible(session, bob, 999)

    async def test_other_user_is_allowed(self, session, make_user, make_item, make_self_vote):
        await make_user("alice")
        bob = await make_user("bob")
        item = await make_item(requested_by_plex_id="alice")
        await make_self_vote(item.id, "alice", "delete")

        found = await ensure_community_vote_eligible(session, bob, item.id)
        assert found.id == item.id


class TestRoundCandidates:
    """Admin listing order and tallies."""

    async def test_order_removed_last_then_most_keep(self, session, make_user, make_item, make_self_vote):
        await make_user("alice")
        voters = [await make_user(f"voter{i}") for i in range(2)]
        quiet = await make_item(title="Quiet", requested_by_plex_id="alice")
        loved = await make_item(title="Loved", requested_by_plex_id="alice")
        gone = await make_item(title="Gone", requested_by_plex_id="alice", status="removed")
        for item in (quiet, loved, gone):
            await make_self_vote(item.id, "alice", "delete")

        for voter in voters:
            await cast_community_vote(session, voter, loved.id)

        candidates = await list_round_candidates(session, round_id=1)
        assert [c.title for c in candidates] == ["Loved", "Quiet", "Gone"]
        assert candidates[0].tally.keep_count == 2
        assert candidates[0].tally.keep_voters == ["voter0", "voter1"]
        assert candidates[1].tally.keep_count == 0


class TestCommunityCandidates:
    """User listing: filters, sort, pagination, viewer fields."""

    async def _seed(self, session, make_user, make_item, make_self_vote):
        await make_user("alice")
        bob = await make_user("bob")
        carol = await make_user("carol")
        movie = await make_item(title="Alpha", media_type="movie", requested_by_plex_id="alice")
        show = await make_item(title="Beta", media_type="tv", season_count=3, requested_by_plex_id="alice")
        own = await make_item(title="Gamma", media_type="movie", requested_by_plex_id="bob")
        removed = await make_item(title="Delta", requested_by_plex_id="alice", status="removed")
        for item, voter in ((movie, "alice"), (show, "alice"), (own, "bob"), (removed, "alice")):
            await make_self_vote(item.id, voter, "delete")
        await cast_community_vote(session, carol, movie.id)
        return bob, carol, movie, show, own

    async def test_removed_items_hidden(self, session, make_user, make_item, make_self_vote):
        bob, *_ = await self._seed(session, make_user, make_item, make_self_vote)
        items, pagination = await list_community_candidates(session, bob)
        assert "Delta" not in [i.title for i in items]
        assert pagination.total == 3

    async def test_own_flag_and_viewer_vote(self, session, make_user, make_item, make_self_vote):
        bob, carol, movie, _, own = await self._seed(session, make_user, make_item, make_self_vote)
        items, _ = await list_community_candidates(session, carol, sort="title_asc")
        by_id = {i.id: i for i in items}
        assert by_id[movie.id].current_user_vote == "keep"
        assert by_id[own.id].current_user_vote is None

        items, _ = await list_community_candidates(session, bob)
        assert {i.id: i.is_own for i in items}[own.id] is True
        assert {i.id: i.is_nominator for i in items}[own.id] is True

    async def test_media_type_filter(self, session, make_user, make_item, make_self_vote):
        bob, *_ = await self._seed(session, make_user, make_item, make_self_vote)
        items, _ = await list_community_candidates(session, bob, media_type="tv")
        assert [i.title for i in items] == ["Beta"]

    async def test_unvoted_filter(self, session, make_user, make_item, make_self_vote):
        _, carol, movie, *_ = await self._seed(session, make_user, make_item, make_self_vote)
        items, _ = await list_community_candidates(session, carol, unvoted=True)
        assert movie.id not in [i.id for i in items]

    async def test_sorts(self, session, make_user, make_item, make_self_vote):
        bob, *_ = await self._seed(session, make_user, make_item, make_self_vote)
        items, _ = await list_community_candidates(session, bob, sort="most_keep")
        assert items[0].title == "Alpha"
        items, _ = await list_community_candidates(session, bob, sort="least_keep")
        assert items[-1].title == "Alpha"
        items, _ = await list_community_candidates(session, bob, sort="title_desc")
        assert [i.title for i in items] == ["Gamma", "Beta", "Alpha"]

    async def test_pagination(self, session, make_user, make_item, make_self_vote):
        bob, *_ = await self._seed(session, make_user, make_item, make_self_vote)
        items, pagination = await list_community_candidates(session, bob, sort="title_asc", page=2, limit=2)
        assert [i.title for i in items] == ["Gamma"]
        assert pagination.pages == 2
        assert pagination.page == 2


class TestCommunityVoteRows:

    async def test_repeat_cast_keeps_one_row(self, session, make_user, make_item, make_self_vote):
        await make_user("alice")
        bob = await make_user("bob")
        item = await make_item(requested_by_plex_id="alice")
        await make_self_vote(item.id, "alice", "delete")

        await cast_community_vote(session, bob, item.id)
        await cast_community_vote(session, bob, item.id)

        rows = (await session.execute(select(CommunityVote))).scalars().all()
        assert len(rows) == 1
