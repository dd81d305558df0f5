"""
cairn.errors — Error hierarchy
===============================

Validation failures are raised immediately and surfaced to the caller.
Absence of a record is never an error (callers get a zero/default).
"""

from __future__ import annotations


class CairnError(Exception):
    pass


class ValidationError(CairnError, ValueError):
    """Rejected input: unknown journey type, malformed id, bad amount."""


class UnknownBadgeError(ValidationError):
    def __init__(self, badge_id: str) -> None:
        super().__init__(f"Unknown badge: {badge_id!r}")
        self.badge_id = badge_id
