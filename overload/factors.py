"""
Overload Analytics — Personalization factors

Independent scoring functions. Each returns a FactorResult: a multiplier
(1.0 = neutral) and the statistic that produced it. Missing or sparse
inputs always give the neutral multiplier.
"""
from datetime import datetime, timedelta

import numpy as np

from overload.config import (
    BODY_WEIGHT_MULTIPLIERS,
    BODY_WEIGHT_STABLE_PCT,
    BODY_WEIGHT_WINDOW_DAYS,
    CONSISTENCY_FLOOR,
    CONSISTENCY_TIERS,
    CONSISTENCY_WINDOW_DAYS,
    KG_TO_LB,
    MOOD_FLOOR,
    MOOD_TIERS,
    MOOD_WINDOW_SESSIONS,
    RECOVERY_FLOOR,
    RECOVERY_TIERS,
    SUCCESS_FLOOR,
    SUCCESS_TIERS,
    SUCCESS_WINDOW_SESSIONS,
    WORKING_SET_PCT,
    get_exercise,
    get_muscle_groups,
)
from overload.history import days_between, newest_first, utcnow
from overload.models import FactorResult, StrengthExercise

NEUTRAL = 1.0


def tiered(value: float, tiers: list[tuple[float, float]], floor: float) -> float:
    """First tier whose lower bound `value` reaches; `floor` below all of them."""
    for bound, multiplier in tiers:
        if value >= bound:
            return multiplier
    return floor


# ═══════════════════════════════════════════════════════════════════════
# 1. SUCCESS RATE: TARGET REPS AT WORKING WEIGHT
# ═══════════════════════════════════════════════════════════════════════

def success_rate_factor(recent_session_sets, target_reps: int) -> FactorResult:
    """
    Share of working sets (≥90% of the window's heaviest set) in the last
    5 sessions that reached `target_reps`.
    """
    all_sets = [s for sets in list(recent_session_sets)[:SUCCESS_WINDOW_SESSIONS] for s in sets]
    if not all_sets:
        return FactorResult(NEUTRAL, 0.0)

    max_weight = max(s.weight for s in all_sets)
    working = [s for s in all_sets if s.weight >= max_weight * WORKING_SET_PCT]
    if not working:
        return FactorResult(NEUTRAL, 0.0)

    rate = sum(1 for s in working if s.reps >= target_reps) / len(working)
    return FactorResult(tiered(rate, SUCCESS_TIERS, SUCCESS_FLOOR), rate)


def describe_success_rate(result: FactorResult) -> str:
    direction = "pushing harder" if result.multiplier > 1 else "easing off"
    return f"Hit target reps {result.statistic * 100:.0f}% of the time → {direction}"


# ═══════════════════════════════════════════════════════════════════════
# 2. CONSISTENCY VS WEEKLY GOAL
# ═══════════════════════════════════════════════════════════════════════

def consistency_factor(
    sessions, weekly_goal: int | None, now: datetime | None = None
) -> FactorResult:
    if not weekly_goal or weekly_goal <= 0:
        return FactorResult(NEUTRAL, 0.0)

    now = now or utcnow()
    since = now - timedelta(days=CONSISTENCY_WINDOW_DAYS)
    completed = [s for s in sessions if s.completed_at is not None and s.completed_at >= since]
    adherence = len(completed) / (weekly_goal * CONSISTENCY_WINDOW_DAYS / 7)
    return FactorResult(tiered(adherence, CONSISTENCY_TIERS, CONSISTENCY_FLOOR), adherence)


def describe_consistency(result: FactorResult) -> str:
    direction = "consistent training" if result.multiplier > 1 else "reduced expectations"
    return f"{result.statistic * 100:.0f}% of target sessions completed → {direction}"


# ═══════════════════════════════════════════════════════════════════════
# 3. RECOVERY: DAYS SINCE SAME MUSCLES TRAINED
# ═══════════════════════════════════════════════════════════════════════

def recovery_factor(
    exercise_id: str, sessions, custom_exercises=(), now: datetime | None = None
) -> FactorResult:
    """
    Scan completed sessions newest-first for one that trained any muscle
    group of `exercise_id`. Statistic is the fractional day count, or None
    when nothing matched.
    """
    info = get_exercise(exercise_id, custom_exercises)
    if info is None or info.type != "strength":
        return FactorResult(NEUTRAL, None)

    now = now or utcnow()
    targets = set(info.muscle_groups)
    for session in newest_first(sessions):
        overlap = any(
            targets & get_muscle_groups(ex.exercise_id, custom_exercises)
            for ex in session.exercises
            if isinstance(ex, StrengthExercise)
        )
        if overlap:
            days = days_between(now, session.started_at)
            return FactorResult(tiered(days, RECOVERY_TIERS, RECOVERY_FLOOR), days)

    return FactorResult(NEUTRAL, None)


def describe_recovery(result: FactorResult) -> str:
    direction = "well rested" if result.multiplier > 1 else "tight recovery"
    return f"{result.statistic:.1f} days since muscle group trained → {direction}"


# ═══════════════════════════════════════════════════════════════════════
# 4. BODY WEIGHT TREND vs GOAL
# ═══════════════════════════════════════════════════════════════════════

def _to_unit(weight: float, unit: str, target_unit: str) -> float:
    if unit == target_unit:
        return weight
    return weight * KG_TO_LB if target_unit == "lbs" else weight / KG_TO_LB


def body_weight_trend(weight_entries, now: datetime | None = None) -> str:
    """
    gaining / losing / stable from the last 60 days, comparing the mean of
    the older half of the entries with the newer half (±1% is stable).
    """
    now = now or utcnow()
    since = now - timedelta(days=BODY_WEIGHT_WINDOW_DAYS)
    recent = sorted((e for e in weight_entries if e.date >= since), key=lambda e: e.date)
    if len(recent) < 2:
        return "unknown"

    unit = recent[0].unit
    values = np.array([_to_unit(e.weight, e.unit, unit) for e in recent], dtype=float)
    mid = len(values) // 2
    first, second = values[:mid].mean(), values[mid:].mean()
    change = (second - first) / first * 100

    if change > BODY_WEIGHT_STABLE_PCT:
        return "gaining"
    if change < -BODY_WEIGHT_STABLE_PCT:
        return "losing"
    return "stable"


def body_weight_factor(weight_entries, workout_goal: str, now: datetime | None = None) -> FactorResult:
    trend = body_weight_trend(weight_entries or (), now)
    if trend == "unknown":
        return FactorResult(NEUTRAL, trend)
    multiplier = BODY_WEIGHT_MULTIPLIERS.get(workout_goal, {}).get(trend, NEUTRAL)
    return FactorResult(multiplier, trend)


def describe_body_weight(result: FactorResult, workout_goal: str) -> str:
    return f"Weight trend: {result.statistic} while goal is {workout_goal}"


# ═══════════════════════════════════════════════════════════════════════
# 5. MOOD TREND
# ═══════════════════════════════════════════════════════════════════════

def mood_factor(sessions) -> FactorResult:
    """Mean mood of the 5 most recent completed sessions that recorded one."""
    moods = [s.mood for s in newest_first(sessions) if s.mood is not None][:MOOD_WINDOW_SESSIONS]
    if not moods:
        return FactorResult(NEUTRAL, None)
    avg = sum(moods) / len(moods)
    return FactorResult(tiered(avg, MOOD_TIERS, MOOD_FLOOR), avg)


def describe_mood(result: FactorResult) -> str:
    direction = "feeling strong" if result.multiplier > 1 else "lower energy"
    return f"Average mood: {result.statistic:.1f}/5 → {direction}"
