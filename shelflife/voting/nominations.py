"""
Nomination resolver.

An item is a candidate when a self vote of `delete` or `trim` exists on it
whose voter is the item's requester or an admin. Several qualifying rows can
exist for one item (requester plus one or more admins); they are merged here,
in Python, into exactly one Nomination per item.

Merge rule:
    1. The requester's own row wins outright.
    2. Otherwise the row with the highest nomination priority wins
       (trim over delete), ties broken by the voter's plex id.
    3. keep_seasons is taken from the same preferred tier: the requester's
       row if present, else the largest keep_seasons among the admin trims.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from shelflife.auth import SessionUser
from shelflife.errors import NotFound
from shelflife.models.enums import CommunityVoteValue, MediaStatus, SelfVoteValue
from shelflife.models.tables import (
    CommunityVote,
    MediaItem,
    ReviewAction,
    SelfVote,
    User,
    WatchStatus,
)
from shelflife.schemas.common import Pagination, build_pagination
from shelflife.schemas.nominations import (
    CommunityCandidate,
    RoundCandidate,
    VoteTally,
    WatchSummary,
)

logger = structlog.get_logger(__name__)

NOMINATING_VOTES = (SelfVoteValue.DELETE.value, SelfVoteValue.TRIM.value)

NOMINATION_PRIORITY = {
    SelfVoteValue.TRIM.value: 2,
    SelfVoteValue.DELETE.value: 1,
}


def nomination_priority(vote: str) -> int:
    """Rank of a self vote value when no requester row decides the merge."""
    return NOMINATION_PRIORITY.get(vote, 0)


@dataclass
class QualifyingVote:
    """One self-vote row that satisfies the nomination condition."""
    media_item_id: int
    voter_plex_id: str
    voter_username: Optional[str]
    vote: str
    keep_seasons: Optional[int]
    updated_at: Optional[datetime]
    is_requester: bool


@dataclass
class Nomination:
    media_item_id: int
    nomination_type: str
    keep_seasons: Optional[int]
    nominated_by: list[str] = field(default_factory=list)
    nominator_plex_ids: set[str] = field(default_factory=set)
    self_nominated: bool = False
    last_voted_at: Optional[datetime] = None


def resolve_nomination(votes: list[QualifyingVote]) -> Nomination:
    """Merge every qualifying row of one item into a single Nomination."""
    if not votes:
        raise ValueError("resolve_nomination needs at least one qualifying vote")

    own = [v for v in votes if v.is_requester]
    tier = own or votes
    preferred = min(tier, key=lambda v: (-nomination_priority(v.vote), v.voter_plex_id))

    nomination_type = (
        SelfVoteValue.TRIM.value
        if preferred.vote == SelfVoteValue.TRIM.value
        else SelfVoteValue.DELETE.value
    )

    keep_seasons = None
    if nomination_type == SelfVoteValue.TRIM.value:
        trims = [
            v.keep_seasons for v in tier
            if v.vote == SelfVoteValue.TRIM.value and v.keep_seasons is not None
        ]
        keep_seasons = max(trims) if trims else None

    timestamps = [v.updated_at for v in votes if v.updated_at is not None]

    return Nomination(
        media_item_id=preferred.media_item_id,
        nomination_type=nomination_type,
        keep_seasons=keep_seasons,
        nominated_by=sorted({v.voter_username or "Unknown" for v in votes}),
        nominator_plex_ids={v.voter_plex_id for v in votes},
        self_nominated=bool(own),
        last_voted_at=max(timestamps) if timestamps else None,
    )


def merge_nominations(votes: Iterable[QualifyingVote]) -> dict[int, Nomination]:
    grouped: dict[int, list[QualifyingVote]] = {}
    for vote in votes:
        grouped.setdefault(vote.media_item_id, []).append(vote)
    return {item_id: resolve_nomination(rows) for item_id, rows in grouped.items()}


# ── Queries ──────────────────────────────────────────────────

async def load_nominations(
    session: AsyncSession,
    media_item_ids: Optional[list[int]] = None,
) -> dict[int, Nomination]:
    """Fetch every qualifying self vote and merge per item."""
    query = (
        select(
            SelfVote,
            MediaItem.requested_by_plex_id,
            User.username,
        )
        .join(MediaItem, MediaItem.id == SelfVote.media_item_id)
        .join(User, User.plex_id == SelfVote.user_plex_id)
        .where(
            SelfVote.vote.in_(NOMINATING_VOTES),
            or_(
                SelfVote.user_plex_id == MediaItem.requested_by_plex_id,
                User.is_admin.is_(True),
            ),
        )
    )
    if media_item_ids is not None:
        query = query.where(SelfVote.media_item_id.in_(media_item_ids))

    result = await session.execute(query)
    votes = [
        QualifyingVote(
            media_item_id=vote.media_item_id,
            voter_plex_id=vote.user_plex_id,
            voter_username=username,
            vote=vote.vote,
            keep_seasons=vote.keep_seasons,
            updated_at=vote.updated_at,
            is_requester=vote.user_plex_id == requested_by,
        )
        for vote, requested_by, username in result.all()
    ]
    return merge_nominations(votes)


async def is_candidate(session: AsyncSession, media_item_id: int) -> bool:
    return media_item_id in await load_nominations(session, [media_item_id])


async def ensure_community_vote_eligible(
    session: AsyncSession, user: SessionUser, media_item_id: int
) -> MediaItem:
    """
    Return the item if `user` may cast a community vote on it.

    A missing item, a non-candidate and the caller's own request all produce
    the same NotFound so the response never reveals nomination state.
    """
    item = await session.get(MediaItem, media_item_id)
    if (
        item is None
        or item.requested_by_plex_id == user.plex_id
        or not await is_candidate(session, media_item_id)
    ):
        raise NotFound("Item not found, not nominated, or is your own request")
    return item


async def load_keep_tallies(
    session: AsyncSession, media_item_ids: list[int]
) -> dict[int, VoteTally]:
    if not media_item_ids:
        return {}

    result = await session.execute(
        select(CommunityVote.media_item_id, User.username)
        .outerjoin(User, User.plex_id == CommunityVote.user_plex_id)
        .where(
            CommunityVote.vote == CommunityVoteValue.KEEP.value,
            CommunityVote.media_item_id.in_(media_item_ids),
        )
    )

    tallies: dict[int, VoteTally] = {}
    for media_item_id, username in result.all():
        tally = tallies.setdefault(media_item_id, VoteTally())
        tally.keep_count += 1
        tally.keep_voters.append(username or "Unknown")

    for tally in tallies.values():
        tally.keep_voters.sort()
    return tallies


async def _load_items_with_requesters(
    session: AsyncSession, media_item_ids: list[int]
) -> list[tuple[MediaItem, Optional[str]]]:
    if not media_item_ids:
        return []
    result = await session.execute(
        select(MediaItem, User.username)
        .outerjoin(User, User.plex_id == MediaItem.requested_by_plex_id)
        .where(MediaItem.id.in_(media_item_ids))
    )
    return list(result.all())


# ── Admin view ───────────────────────────────────────────────

async def list_round_candidates(session: AsyncSession, round_id: int) -> list[RoundCandidate]:
    """
    Every candidate with its tally and this round's recorded action.
    Removed items sort last, then most keep votes, then media type, then title.
    """
    nominations = await load_nominations(session)
    item_ids = list(nominations)
    rows = await _load_items_with_requesters(session, item_ids)
    tallies = await load_keep_tallies(session, item_ids)

    action_result = await session.execute(
        select(ReviewAction, User.username)
        .outerjoin(User, User.plex_id == ReviewAction.acted_by_plex_id)
        .where(ReviewAction.review_round_id == round_id)
    )
    actions = {action.media_item_id: (action, username) for action, username in action_result.all()}

    candidates = []
    for item, requester_username in rows:
        nomination = nominations[item.id]
        action, action_by = actions.get(item.id, (None, None))
        candidates.append(
            RoundCandidate(
                id=item.id,
                title=item.title,
                media_type=item.media_type,
                status=item.status,
                poster_path=item.poster_path,
                season_count=item.season_count,
                requested_by_username=requester_username or "Unknown",
                nomination_type=nomination.nomination_type,
                keep_seasons=nomination.keep_seasons,
                nominated_by=nomination.nominated_by,
                tally=tallies.get(item.id, VoteTally()),
                action=action.action if action else None,
                acted_at=action.acted_at if action else None,
                action_by_username=action_by if action else None,
            )
        )

    candidates.sort(
        key=lambda c: (
            c.status == MediaStatus.REMOVED.value,
            -c.tally.keep_count,
            c.media_type,
            c.title,
        )
    )
    return candidates


# ── Community view ───────────────────────────────────────────

def _sort_community(items: list[CommunityCandidate], sort: str, last_voted: dict[int, datetime]) -> None:
    if sort == "most_keep":
        items.sort(key=lambda c: (-c.tally.keep_count, c.title.lower()))
    elif sort == "newest":
        # Undated nominations go last
        items.sort(key=lambda c: c.title.lower())
        items.sort(key=lambda c: (c.id in last_voted, last_voted.get(c.id)), reverse=True)
    elif sort == "title_asc":
        items.sort(key=lambda c: c.title.lower())
    elif sort == "title_desc":
        items.sort(key=lambda c: c.title.lower(), reverse=True)
    else:
        items.sort(key=lambda c: (c.tally.keep_count, c.title.lower()))


async def list_community_candidates(
    session: AsyncSession,
    user: SessionUser,
    media_type: Optional[str] = None,
    unvoted: bool = False,
    sort: str = "least_keep",
    page: int = 1,
    limit: int = 20,
) -> tuple[list[CommunityCandidate], Pagination]:
    """Candidates for the community page; removed items are never listed."""
    nominations = await load_nominations(session)
    rows = [
        (item, username)
        for item, username in await _load_items_with_requesters(session, list(nominations))
        if item.status != MediaStatus.REMOVED.value
        and (media_type is None or item.media_type == media_type)
    ]

    own_votes_result = await session.execute(
        select(CommunityVote.media_item_id, CommunityVote.vote).where(
            CommunityVote.user_plex_id == user.plex_id
        )
    )
    own_votes = dict(own_votes_result.all())

    if unvoted:
        rows = [(item, username) for item, username in rows if item.id not in own_votes]

    item_ids = [item.id for item, _ in rows]
    tallies = await load_keep_tallies(session, item_ids)

    watch: dict[int, WatchStatus] = {}
    if item_ids:
        watch_result = await session.execute(
            select(WatchStatus)
            .join(MediaItem, MediaItem.id == WatchStatus.media_item_id)
            .where(
                WatchStatus.media_item_id.in_(item_ids),
                WatchStatus.user_plex_id == MediaItem.requested_by_plex_id,
            )
        )
        watch = {w.media_item_id: w for w in watch_result.scalars()}

    items = []
    for item, requester_username in rows:
        nomination = nominations[item.id]
        status = watch.get(item.id)
        items.append(
            CommunityCandidate(
                id=item.id,
                title=item.title,
                media_type=item.media_type,
                status=item.status,
                poster_path=item.poster_path,
                imdb_id=item.imdb_id,
                requested_at=item.requested_at,
                season_count=item.season_count,
                requested_by_username=requester_username or "Unknown",
                nomination_type=nomination.nomination_type,
                keep_seasons=nomination.keep_seasons,
                nominated_by=nomination.nominated_by,
                tally=tallies.get(item.id, VoteTally()),
                watch_status=WatchSummary(
                    watched=status.watched,
                    play_count=status.play_count,
                    last_watched_at=status.last_watched_at,
                ) if status else None,
                current_user_vote=own_votes.get(item.id),
                is_own=item.requested_by_plex_id == user.plex_id,
                is_nominator=user.plex_id in nomination.nominator_plex_ids,
            )
        )

    last_voted = {
        item_id: n.last_voted_at for item_id, n in nominations.items() if n.last_voted_at
    }
    _sort_community(items, sort, last_voted)

    total = len(items)
    offset = (page - 1) * limit
    return items[offset:offset + limit], build_pagination(page, limit, total)
