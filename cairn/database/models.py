"""
cairn.database.models — SQLAlchemy 2.0 Data Models
===================================================

Cairn persists everything through a single key-value table; the
structure of each record lives in its key (see :mod:`cairn.constants`).

Tables:
- kv_entries — key → (value, metadata, expiry)

The enums shared by the engine and services live here too.
"""

from __future__ import annotations

import enum

from sqlalchemy import Float, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Cairn ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class BadgeRarity(enum.StrEnum):
    """Reward tiers, lowest first: normal < rare < amazing < green."""
    NORMAL = "normal"
    RARE = "rare"
    AMAZING = "amazing"
    GREEN = "green"


class JourneyType(enum.StrEnum):
    """Streak categories that feed the leaderboards."""
    ARTICLE = "article"
    PROMPT = "prompt"
    EVENT = "event"


class TrackerId(enum.StrEnum):
    """Known progress trackers.  Other names are accepted but bind no badge."""
    ACTIVITIES_ADDED = "activities_added"
    IMPACT_POINTS_EARNED = "impact_points_earned"
    PROMPTS_RESPONDED = "prompts_responded"
    EVENTS_CREATED = "events_created"
    ARTICLES_READ = "articles_read"
    ARTICLES_READ_TIME = "articles_read_time"
    EVENTS_ATTENDED = "events_attended"
    PROMPTS_CREATED = "prompts_created"
    EVENT_IMAGES_SUBMITTED = "event_images_submitted"
    FRIENDS_ADDED = "friends_added"
    ARTICLE_QUIZZES_COMPLETED = "article_quizzes_completed"
    EVENT_TYPES_ATTENDED = "event_types_attended"
    EVENT_COUNTRIES_PHOTOGRAPHED = "event_countries_photographed"
    ARTICLE_QUIZZES_COMPLETED_PERFECT_SCORE = "article_quizzes_completed_perfect_score"
    ARTICLES_CREATED = "articles_created"
    ACTIVITY_PAGES_READ_TIME = "activity_pages_read_time"


class ProgressKind(enum.StrEnum):
    """Closed set of progress-computation strategies."""
    CAPPED_RAMP = "capped_ramp"
    SET_COMBINATION = "set_combination"
    TIME_SINCE = "time_since"
    CONSTANT = "constant"


# ---------------------------------------------------------------------------
# KV entries: the only table
# ---------------------------------------------------------------------------
class KVEntry(Base):
    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, default=None)
    # Epoch seconds; NULL means the entry never expires.
    expires_at: Mapped[float | None] = mapped_column(Float, default=None)
    updated_at: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        Index("ix_kv_entries_expires_at", "expires_at"),
    )
