"""
cairn.constants — Shared Constants & Helpers
=============================================

Single source of truth for the key namespace, rarity rewards and a few
small formatting helpers.  Import from here instead of building key
strings by hand in services.
"""

from __future__ import annotations

import time

from cairn.database.models import BadgeRarity

# ---------------------------------------------------------------------------
# Key namespace (colon-delimited; user id segments are canonical)
# ---------------------------------------------------------------------------
JOURNEY_PREFIX = "journey:"
BADGE_PREFIX = "user:badge:"
TRACKER_PREFIX = "user:badge_tracker:"
POINTS_PREFIX = "user:impact_points:"
LEADERBOARD_CACHE_PREFIX = "leaderboard:"

# Prefixes swept by the bulk legacy-key migration.
MIGRATION_PREFIXES: tuple[str, ...] = (
    JOURNEY_PREFIX,
    BADGE_PREFIX,
    TRACKER_PREFIX,
    POINTS_PREFIX,
)


def journey_key(journey_type: str, user_id: str) -> str:
    return f"{JOURNEY_PREFIX}{journey_type}:{user_id}"


def activities_key(user_id: str) -> str:
    return f"{JOURNEY_PREFIX}activities:{user_id}"


def badge_key(user_id: str, badge_id: str) -> str:
    return f"{BADGE_PREFIX}{user_id}:{badge_id}"


def tracker_key(user_id: str, tracker_id: str) -> str:
    return f"{TRACKER_PREFIX}{user_id}:{tracker_id}"


def points_key(user_id: str) -> str:
    return f"{POINTS_PREFIX}{user_id}"


def leaderboard_cache_key(journey_type: str) -> str:
    return f"{LEADERBOARD_CACHE_PREFIX}{journey_type}"


# ---------------------------------------------------------------------------
# Rarity rewards (impact points credited on grant)
# ---------------------------------------------------------------------------
RARITY_POINTS: dict[BadgeRarity, int] = {
    BadgeRarity.NORMAL: 10,
    BadgeRarity.RARE: 25,
    BadgeRarity.AMAZING: 60,
    BadgeRarity.GREEN: 150,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds (stored timestamps)."""
    return int(time.time() * 1000)


def title_from_id(identifier: str) -> str:
    """``"old_account"`` → ``"Old Account"``."""
    return " ".join(word[:1].upper() + word[1:] for word in identifier.split("_"))


def capitalize_fully(text: str) -> str:
    """``"article"`` → ``"Article"``; every word capitalized, rest lowered."""
    return " ".join(word.capitalize() for word in text.split())
