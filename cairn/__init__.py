"""
Cairn — Engagement Accounting Engine
=====================================
Tracks per-user progress signals, turns them into badge grants, keeps
decaying journey streaks, ranks users on leaderboards and maintains an
impact points balance.  Everything is persisted in a key-value store
that only offers single-key atomicity.

Package layout::

    cairn/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Key namespace, rarity rewards, helpers
    ├── errors.py          # Validation error hierarchy
    ├── runtime.py         # Collaborator bundle passed to services
    ├── __main__.py        # Maintenance CLI (init-db, migrate, purge)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # kv_entries table + enums
    │   └── kv.py          # KVStore contract + SQL-backed store
    ├── engine/
    │   ├── identity.py    # Id canonicalization + legacy key migration
    │   ├── progress.py    # Pure progress rules (tagged dispatch)
    │   ├── badges.py      # Static badge registry
    │   └── cache.py       # Read-through KV cache
    ├── services/
    │   ├── tasks.py               # Fire-and-forget task runner
    │   ├── notification_service.py
    │   ├── tracker_service.py     # Tracker accumulation
    │   ├── points_service.py      # Impact points ledger
    │   ├── badge_service.py       # Grant / revoke / check-and-grant
    │   ├── journey_service.py     # Streak counters
    │   ├── leaderboard_service.py # Cached top-K ranking
    │   └── migration_service.py   # Bulk legacy-key sweep
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Runtime + admin JWT dependencies
        └── routes/        # Badges, journeys, points, admin
"""

__version__ = "0.1.0"
