"""
cairn.engine.badges — Static Badge Registry
============================================

Every achievement the platform can award, as an immutable table built
once at import time.  Per-user state never lives on a definition: grants
are records in the KV store and progress comes from trackers.

Badges without a progress rule are binary and can only be granted
explicitly by an authority, never automatically.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from cairn.constants import RARITY_POINTS, title_from_id
from cairn.database.models import BadgeRarity, TrackerId
from cairn.engine.progress import ProgressRule, all_of, capped, days_since
from cairn.errors import UnknownBadgeError

HOUR = 60 * 60


@dataclass(frozen=True, slots=True)
class Badge:
    """An achievement definition.

    ``name`` defaults to the title-cased id (``"avid_reader"`` →
    ``"Avid Reader"``).
    """

    id: str
    description: str
    icon: str
    rarity: BadgeRarity
    progress: ProgressRule | None = None
    tracker_id: str | None = None
    name: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            object.__setattr__(self, "name", title_from_id(self.id))

    @property
    def reward_points(self) -> int:
        return RARITY_POINTS[self.rarity]

    @property
    def is_manual(self) -> bool:
        return self.progress is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "rarity": self.rarity.value,
            "tracker_id": self.tracker_id,
        }


N, R, A, G = BadgeRarity.NORMAL, BadgeRarity.RARE, BadgeRarity.AMAZING, BadgeRarity.GREEN
T = TrackerId

# ---------------------------------------------------------------------------
# The catalogue
# ---------------------------------------------------------------------------
BADGES: tuple[Badge, ...] = (
    # normal
    Badge("getting_started", "Add an activity to your profile", "mdi:rocket-launch", N,
          capped(1), T.ACTIVITIES_ADDED),
    Badge("activist", "Retrieve your first impact points", "mdi:account-star", N,
          capped(1), T.IMPACT_POINTS_EARNED),
    Badge("philosopher", "Respond to a prompt", "mdi:brain", N,
          capped(1), T.PROMPTS_RESPONDED),
    Badge("event_planner", "Create your first event", "mdi:calendar-star", N,
          capped(1), T.EVENTS_CREATED),
    Badge("verified", "Verify your email address", "mdi:check-decagram", N),
    Badge("article_enthusiast", "Read 10 articles", "mdi:book-open-page-variant", N,
          capped(10), T.ARTICLES_READ),
    Badge("bookworm", "Spend 1 hour reading an article", "mdi:book", N,
          capped(HOUR), T.ARTICLES_READ_TIME),
    Badge("social_butterfly", "Attend 5 events", "mdi:account-group", N,
          capped(5), T.EVENTS_ATTENDED),
    Badge("thinker", "Create 3 prompts", "material-symbols:person-outline", N,
          capped(3), T.PROMPTS_CREATED),
    Badge("impacter", "Achieve 100 impact points", "mdi:earth-arrow-right", N,
          capped(100), T.IMPACT_POINTS_EARNED),
    Badge("going_outside", "Submit your first image to an event", "mdi:camera-outline", N,
          capped(1), T.EVENT_IMAGES_SUBMITTED),
    Badge("collaborator", "Add your first friend", "mdi:account-multiple-plus", N,
          capped(1), T.FRIENDS_ADDED),
    Badge("super_philosopher", "Respond to 10 prompts", "mdi:thought-bubble-outline", N,
          capped(10), T.PROMPTS_RESPONDED),
    Badge("close_friends", "Add someone to your close friends", "mdi:heart-circle", N),
    Badge("student", "Complete an article quiz", "mdi:school-outline", N,
          capped(1), T.ARTICLE_QUIZZES_COMPLETED),
    # rare
    Badge("avid_reader", "Read 50 unique articles", "mdi:book-open-variant", R,
          capped(50), T.ARTICLES_READ),
    Badge("super_bookworm", "Read articles for at least 5 hours", "mdi:book-arrow-up", R,
          capped(5 * HOUR), T.ARTICLES_READ_TIME),
    Badge("networker", "Attend an online and in-person event", "mdi:handshake", R,
          all_of("ONLINE", "IN_PERSON"), T.EVENT_TYPES_ATTENDED),
    Badge("event_attendee", "Attend 20 events", "mdi:account-multiple", R,
          capped(20), T.EVENTS_ATTENDED),
    Badge("event_organizer", "Organize 10 different events", "mdi:calendar-multiple", R,
          capped(10), T.EVENTS_CREATED),
    Badge("prompt_engineer", "Create 20 prompts", "mdi:code-braces", R,
          capped(20), T.PROMPTS_CREATED),
    Badge("rich_in_spirit", "Add 10 activities to your profile", "mdi:star-four-points", R,
          capped(10), T.ACTIVITIES_ADDED),
    Badge("big_impact", "Achieve 1,000 impact points", "mdi:earth", R,
          capped(1_000), T.IMPACT_POINTS_EARNED),
    Badge("storyteller", "Create 5 articles", "mdi:book-edit", R,
          capped(5), T.ARTICLES_CREATED),
    Badge("adventurer", "Submit images to 10 different events", "mdi:map", R,
          capped(10), T.EVENT_IMAGES_SUBMITTED),
    Badge("writer", "Create 10 articles", "mdi:feather", R,
          capped(10), T.ARTICLES_CREATED),
    Badge("explorer", "Submit images to 5 different events", "mdi:compass", R,
          capped(5), T.EVENT_IMAGES_SUBMITTED),
    Badge("invested", "Read activity pages for a combined total of 1 hour", "mdi:clock-outline", R,
          capped(60), T.ACTIVITY_PAGES_READ_TIME),
    Badge("night_owl", "Sign up for an event between 12 AM and 4 AM local time", "mdi:owl", R),
    Badge("early_adopter", "Have an account older than 6 months", "mdi:calendar-star", R,
          days_since(182.5)),
    Badge("dedicated_reader", "Read 200 unique articles", "mdi:book-multiple", R,
          capped(200), T.ARTICLES_READ),
    Badge("article_nerd", "Get 100% on an article quiz", "mdi:school", R,
          capped(1), T.ARTICLE_QUIZZES_COMPLETED_PERFECT_SCORE),
    Badge("super_student", "Complete 10 article quizzes", "mdi:account-school", R,
          capped(10), T.ARTICLE_QUIZZES_COMPLETED),
    Badge("world_photographer", "Submit an image to events in 10 different countries",
          "mdi:camera-burst", R, capped(10), T.EVENT_COUNTRIES_PHOTOGRAPHED),
    Badge("ultra_philosopher", "Respond to 50 prompts", "mdi:thought-bubble", R,
          capped(50), T.PROMPTS_RESPONDED),
    Badge("outreacher", "Become friends with someone outside of your country", "mdi:globe-model", R),
    # amazing
    Badge("journey_master", "Maintain a 30-day streak on any journey", "mdi:medal", A),
    Badge("old_account", "Have an account older than 1 year", "mdi:calendar-clock", A,
          days_since(365), name="1 Year Ago"),
    Badge("dedicated_creator", "Create 100 prompts", "mdi:pencil", A,
          capped(100), T.PROMPTS_CREATED),
    Badge("huge_impact", "Achieve 10,000 impact points", "mdi:earth-plus", A,
          capped(10_000), T.IMPACT_POINTS_EARNED),
    Badge("master_writer", "Create 50 articles", "mdi:book-open-variant-outline", A,
          capped(50), T.ARTICLES_CREATED),
    Badge("globetrotter", "Submit images to events in 25 different countries", "mdi:camera-marker", A,
          capped(25), T.EVENT_COUNTRIES_PHOTOGRAPHED),
    Badge("world_explorer", "Submit images to 30 different events", "mdi:earth-arrow-up", A,
          capped(30), T.EVENT_IMAGES_SUBMITTED),
    Badge("early_bird", "Sign up for an event between 4 AM and 9 AM local time", "mdi:bird", A),
    Badge("socialite", "Attend 100 events", "mdi:party-popper", A,
          capped(100), T.EVENTS_ATTENDED),
    Badge("legendary_philosopher", "Respond to 500 prompts", "material-symbols:mindfulness-outline", A,
          capped(500), T.PROMPTS_RESPONDED),
    Badge("lifetime_reader", "Read 600 unique articles", "mdi:comment-bookmark", A,
          capped(600), T.ARTICLES_READ),
    Badge("juris_doctor", "Get 100% on 10 article quizzes", "mdi:gavel", A,
          capped(10), T.ARTICLE_QUIZZES_COMPLETED_PERFECT_SCORE),
    Badge("marathon_bookworm", "Read articles for at least 45 hours", "material-symbols:book-2", A,
          capped(45 * HOUR), T.ARTICLES_READ_TIME),
    # green
    Badge("old_account_2", "Have an account older than 3 years", "mdi:calendar-clock", G,
          days_since(1095), name="3 Years Ago"),
    Badge("ultimate_adventurer", "Maintain a 365-day streak on any journey", "mdi:trophy-award", G),
    Badge("doctorate", "Get 100% on 50 article quizzes", "mdi:script-text", G,
          capped(50), T.ARTICLE_QUIZZES_COMPLETED_PERFECT_SCORE),
    Badge("crazy_impact", "Achieve 100,000 impact points", "mdi:shovel", G,
          capped(100_000), T.IMPACT_POINTS_EARNED),
    Badge("you_know_ball", "Become friends with an administrator", "mdi:shield-star", G),
    Badge("eternal_reader", "Read 1,000 unique articles", "mdi:bookshelf", G,
          capped(1_000), T.ARTICLES_READ),
    Badge("legendary_writer", "Create 1,000 articles", "material-symbols:stylus-pencil", G,
          capped(1_000), T.ARTICLES_CREATED),
    Badge("world_changer", "Achieve 1,000,000 impact points", "mdi:star-plus", G,
          capped(1_000_000), T.IMPACT_POINTS_EARNED),
    Badge("einstein", "Respond to 3,000 prompts", "material-symbols:science-outline", G,
          capped(3_000), T.PROMPTS_RESPONDED),
    Badge("immortal_bookworm", "Read articles for at least 350 hours", "material-symbols:book-5", G,
          capped(350 * HOUR), T.ARTICLES_READ_TIME),
)


def _index(badges: tuple[Badge, ...]) -> MappingProxyType:
    by_id: dict[str, Badge] = {}
    for badge in badges:
        if badge.id in by_id:
            raise ValueError(f"Duplicate badge id in registry: {badge.id}")
        by_id[badge.id] = badge
    return MappingProxyType(by_id)


def _by_tracker(badges: tuple[Badge, ...]) -> MappingProxyType:
    grouped: dict[str, list[Badge]] = {}
    for badge in badges:
        if badge.tracker_id is not None:
            grouped.setdefault(badge.tracker_id, []).append(badge)
    return MappingProxyType({k: tuple(v) for k, v in grouped.items()})


BADGES_BY_ID = _index(BADGES)
BADGES_BY_TRACKER = _by_tracker(BADGES)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def get_badge(badge_id: str) -> Badge:
    """Return the definition for *badge_id* or raise :class:`UnknownBadgeError`."""
    badge = BADGES_BY_ID.get(badge_id)
    if badge is None:
        raise UnknownBadgeError(badge_id)
    return badge


def badges_for_tracker(tracker_id: str) -> tuple[Badge, ...]:
    """All badges whose progress is driven by *tracker_id* (may be empty)."""
    return BADGES_BY_TRACKER.get(tracker_id, ())
