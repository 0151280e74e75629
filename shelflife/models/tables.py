"""
SQLAlchemy ORM models.
Generic column types only: the schema runs unchanged on SQLite and PostgreSQL.
The unique constraints below are load-bearing, not incidental.
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from shelflife.models.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ────────────────────────────────────────────────────────────
# USERS
# ────────────────────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plex_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


# ────────────────────────────────────────────────────────────
# MEDIA ITEMS
# ────────────────────────────────────────────────────────────
class MediaItem(Base):
    __tablename__ = "media_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    overseerr_id: Mapped[Optional[int]] = mapped_column(Integer, unique=True, nullable=True)
    overseerr_request_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tmdb_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tvdb_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    imdb_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    media_type: Mapped[str] = mapped_column(String(8), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    poster_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="unknown", server_default="unknown"
    )
    requested_by_plex_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("users.plex_id"), nullable=True
    )
    requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rating_key: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    season_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_media_items_status", "status"),
        Index("idx_media_items_requested_by", "requested_by_plex_id"),
    )


# ────────────────────────────────────────────────────────────
# WATCH STATUS
# ────────────────────────────────────────────────────────────
class WatchStatus(Base):
    __tablename__ = "watch_status"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media_items.id"), nullable=False
    )
    user_plex_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.plex_id"), nullable=False
    )
    watched: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    play_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    last_watched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("media_item_id", "user_plex_id", name="uq_watch_status_media_user"),
    )


# ────────────────────────────────────────────────────────────
# SELF-NOMINATION VOTES
# ────────────────────────────────────────────────────────────
class SelfVote(Base):
    """A requester's (or admin proxy's) delete/trim vote on an item."""
    __tablename__ = "user_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media_items.id"), nullable=False
    )
    user_plex_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.plex_id"), nullable=False
    )
    vote: Mapped[str] = mapped_column(String(8), nullable=False)
    keep_seasons: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("media_item_id", "user_plex_id", name="uq_user_votes_media_user"),
    )


# ────────────────────────────────────────────────────────────
# COMMUNITY VOTES
# ────────────────────────────────────────────────────────────
class CommunityVote(Base):
    """A non-requester's keep vote on a nominated item."""
    __tablename__ = "community_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media_items.id"), nullable=False
    )
    user_plex_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.plex_id"), nullable=False
    )
    vote: Mapped[str] = mapped_column(String(8), nullable=False, default="keep")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("media_item_id", "user_plex_id", name="uq_community_votes_media_user"),
    )


# ────────────────────────────────────────────────────────────
# REVIEW ROUNDS
# ────────────────────────────────────────────────────────────
class ReviewRound(Base):
    __tablename__ = "review_rounds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(8), nullable=False, default="active", server_default="active"
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_by_plex_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.plex_id"), nullable=False
    )

    __table_args__ = (
        # At most one active round system-wide
        Index(
            "uq_review_rounds_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )


# ────────────────────────────────────────────────────────────
# USER REVIEW STATUSES
# ────────────────────────────────────────────────────────────
class UserReviewStatus(Base):
    __tablename__ = "user_review_statuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    review_round_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("review_rounds.id"), nullable=False
    )
    user_plex_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.plex_id"), nullable=False
    )
    nominations_complete: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    voting_complete: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    nominations_completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    voting_completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("review_round_id", "user_plex_id", name="uq_user_review_status_round_user"),
    )


# ────────────────────────────────────────────────────────────
# REVIEW ACTIONS
# ────────────────────────────────────────────────────────────
class ReviewAction(Base):
    __tablename__ = "review_actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    review_round_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("review_rounds.id"), nullable=False
    )
    media_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media_items.id"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(8), nullable=False)
    acted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    acted_by_plex_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.plex_id"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("review_round_id", "media_item_id", name="uq_review_actions_round_item"),
    )


# ────────────────────────────────────────────────────────────
# DELETION LOG (append-only)
# ────────────────────────────────────────────────────────────
class DeletionLogEntry(Base):
    __tablename__ = "deletion_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("media_items.id"), nullable=False
    )
    review_round_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("review_rounds.id"), nullable=True
    )
    deleted_by_plex_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.plex_id"), nullable=False
    )
    delete_files: Mapped[bool] = mapped_column(Boolean, nullable=False)
    # NULL = not attempted
    sonarr_success: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    radarr_success: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    overseerr_success: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    errors: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_deletion_log_media", "media_item_id"),
    )


# ────────────────────────────────────────────────────────────
# SYNC LOG
# ────────────────────────────────────────────────────────────
class SyncLogEntry(Base):
    __tablename__ = "sync_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sync_type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    items_synced: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    errors: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


# ────────────────────────────────────────────────────────────
# APP SETTINGS
# ────────────────────────────────────────────────────────────
class AppSetting(Base):
    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
