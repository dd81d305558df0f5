"""
cairn.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for the gameplay tuning of the engine (streak
expiry, leaderboard size and freshness, reward amounts) and for the
notification endpoint.  Secrets stay in the environment (``.env``):
``DATABASE_URL``, ``JWT_SECRET`` and ``NOTIFY_API_KEY``.

Usage::

    from cairn.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.leaderboard_size)      # 250
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CairnConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so a partial file (or none, in tests) is
    valid.  Unknown keys in the YAML are ignored.
    """

    # Journeys
    journey_ttl_seconds: int = 60 * 60 * 24 * 2   # inactivity window
    journey_increment_points: int = 5

    # Leaderboards
    leaderboard_size: int = 250                  # TOP_K
    leaderboard_cache_seconds: int = 60 * 60 * 4
    leaderboard_bonus_max: int = 260
    leaderboard_bonus_min: int = 10

    # Points
    points_history_limit: int = 100

    # Migration
    migration_page_size: int = 1000

    # Notifications
    notify_url: str = "https://api.earth-app.com"
    notify_source: str = "cloud"


DEFAULT_CONFIG = CairnConfig()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> CairnConfig:
    """Read *path* and return a :class:`CairnConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a value cannot be coerced to the field's type, or a numeric
        tunable is not positive.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return config_from_mapping(raw)


def config_from_mapping(raw: dict) -> CairnConfig:
    """Build a :class:`CairnConfig` from a parsed mapping."""
    values: dict[str, object] = {}
    for f in fields(CairnConfig):
        if f.name not in raw or raw[f.name] is None:
            continue
        if f.type == "int":
            try:
                number = int(raw[f.name])
            except (TypeError, ValueError):
                raise ValueError(f"{f.name} must be an integer, got {raw[f.name]!r}") from None
            if number <= 0:
                raise ValueError(f"{f.name} must be positive, got {number}")
            values[f.name] = number
        else:
            values[f.name] = str(raw[f.name]).rstrip("/") if f.name == "notify_url" else str(raw[f.name])

    cfg = CairnConfig(**values)
    if cfg.leaderboard_bonus_min > cfg.leaderboard_bonus_max:
        raise ValueError("leaderboard_bonus_min cannot exceed leaderboard_bonus_max")
    return cfg
