"""
cairn.engine.progress — Badge Progress Rules
=============================================

Handler-registry implementation of badge progress.  Each
:class:`~cairn.database.models.ProgressKind` maps to a pure function
``(rule, ctx) -> float`` that receives the rule parameters and a
:class:`ProgressContext` snapshot.  Results are always clamped to
``[0, 1]``; a badge is granted once its progress reaches 1.

This module is pure calculation — no storage I/O.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from datetime import UTC, datetime

from cairn.database.models import ProgressKind

SECONDS_PER_DAY = 60 * 60 * 24

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


# ---------------------------------------------------------------------------
# Rule + context
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ProgressRule:
    """Parameters for one progress strategy.

    ``target`` is the cap for :attr:`ProgressKind.CAPPED_RAMP`, the number
    of days for :attr:`ProgressKind.TIME_SINCE` and the fixed value for
    :attr:`ProgressKind.CONSTANT`.  ``tokens`` is the required set for
    :attr:`ProgressKind.SET_COMBINATION`.
    """

    kind: ProgressKind
    target: float = 1
    tokens: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class ProgressContext:
    """Snapshot handed to a progress rule.

    Parameters
    ----------
    value : The tracker snapshot — the accumulated number for a numeric
        tracker, the unique values for a string tracker, None when the
        badge has no tracker.
    created_at : Account-creation date supplied by the caller.
    now : Evaluation time (defaults to the current UTC time).
    """

    value: float | list[str] | None = None
    created_at: datetime | None = None
    now: datetime = field(default_factory=lambda: datetime.now(UTC))


def _clamp(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def _as_amount(value: object) -> float:
    """Collections count their members, numbers are taken as-is and numeric
    strings are parsed from their leading integer; anything else is 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return float(match.group(1)) if match else 0.0
    if isinstance(value, Collection):
        return float(len(value))
    return 0.0


# ---------------------------------------------------------------------------
# Handlers: pure functions (rule, ctx) → float
# ---------------------------------------------------------------------------
def _capped_ramp(rule: ProgressRule, ctx: ProgressContext) -> float:
    """``min(value, cap) / cap``."""
    if rule.target <= 0:
        return 0.0
    amount = _as_amount(ctx.value)
    return min(amount, rule.target) / rule.target


def _set_combination(rule: ProgressRule, ctx: ProgressContext) -> float:
    """1 when every required token is present, 0.5 when some are, else 0."""
    if not rule.tokens or isinstance(ctx.value, str) or not isinstance(ctx.value, Collection):
        return 0.0
    present = rule.tokens.intersection(ctx.value)
    if present == rule.tokens:
        return 1.0
    if present:
        return 0.5
    return 0.0


def _time_since(rule: ProgressRule, ctx: ProgressContext) -> float:
    """Days elapsed since ``ctx.created_at`` over ``rule.target`` days."""
    if ctx.created_at is None or rule.target <= 0:
        return 0.0
    created_at = ctx.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    now = ctx.now if ctx.now.tzinfo is not None else ctx.now.replace(tzinfo=UTC)
    days = (now - created_at).total_seconds() / SECONDS_PER_DAY
    return days / rule.target


def _constant(rule: ProgressRule, ctx: ProgressContext) -> float:
    return float(rule.target)


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------
PROGRESS_HANDLERS: dict[ProgressKind, Callable[[ProgressRule, ProgressContext], float]] = {
    ProgressKind.CAPPED_RAMP: _capped_ramp,
    ProgressKind.SET_COMBINATION: _set_combination,
    ProgressKind.TIME_SINCE: _time_since,
    ProgressKind.CONSTANT: _constant,
}


def evaluate(rule: ProgressRule, ctx: ProgressContext) -> float:
    """Run the handler for ``rule.kind`` and clamp the result into [0, 1]."""
    handler = PROGRESS_HANDLERS[rule.kind]
    return _clamp(handler(rule, ctx))


# Shorthands used by the badge registry
def capped(cap: float) -> ProgressRule:
    return ProgressRule(ProgressKind.CAPPED_RAMP, target=cap)


def all_of(*tokens: str) -> ProgressRule:
    return ProgressRule(ProgressKind.SET_COMBINATION, tokens=frozenset(tokens))


def days_since(days: float) -> ProgressRule:
    return ProgressRule(ProgressKind.TIME_SINCE, target=days)
