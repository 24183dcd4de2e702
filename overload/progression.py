"""
Overload Analytics — Personalized progression

Recency-weighted baseline, per-exercise adaptive increment and the
composer that folds every personalization factor into one bounded
recommendation.

    baseline   = Σ w_i · e^(-0.2 i) / Σ e^(-0.2 i)      (i = 0 most recent)
    increment  = blend(adaptive, default) by confidence
    composite  = clamp(success × consistency × recovery × body weight × mood)
"""
import logging

import numpy as np

from overload.analytics import analyze_exercise, linear_fit
from overload.config import (
    BASELINE_DECAY,
    BASELINE_SESSIONS,
    COMPOSITE_MAX,
    COMPOSITE_MIN,
    CONFIDENCE_BLEND,
    DEFAULT_INCREMENTS,
    DEFAULT_TARGET_REPS,
    HIGH_CONFIDENCE_POINTS,
    MAX_INCREMENT_FACTOR,
    MEDIUM_CONFIDENCE_POINTS,
    MIN_INCREMENT_FACTOR,
    MIN_R_SQUARED,
    MIN_REGRESSION_POINTS,
)
from overload.factors import (
    NEUTRAL,
    body_weight_factor,
    consistency_factor,
    describe_body_weight,
    describe_consistency,
    describe_mood,
    describe_recovery,
    describe_success_rate,
    mood_factor,
    recovery_factor,
    success_rate_factor,
)
from overload.history import recent_session_sets
from overload.models import (
    PersonalizationFactor,
    PersonalizedProgressionConfig,
    ProgressionContext,
    TrainingSnapshot,
)
from overload.outliers import filter_outliers

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# 1. BASELINE
# ═══════════════════════════════════════════════════════════════════════

def exponential_decay_baseline(session_max_weights) -> float:
    """
    Decay-weighted mean of session max weights, index 0 = most recent.
    Empty input gives 0.
    """
    values = np.asarray(list(session_max_weights), dtype=float)
    if values.size == 0:
        return 0.0
    weights = np.exp(-BASELINE_DECAY * np.arange(values.size))
    return float((values * weights).sum() / weights.sum())


def session_max_weights(recent_sets, limit: int = BASELINE_SESSIONS) -> list[float]:
    """Outlier-filtered max weight of each of the `limit` newest sessions; zeros dropped."""
    maxima = []
    for sets in list(recent_sets)[:limit]:
        filtered = filter_outliers(sets, key=lambda s: s.weight)
        top = max((s.weight for s in filtered), default=0)
        if top > 0:
            maxima.append(float(top))
    return maxima


# ═══════════════════════════════════════════════════════════════════════
# 2. INCREMENTS
# ═══════════════════════════════════════════════════════════════════════

def default_increment(weight_unit: str, experience_level: str) -> float:
    """Fixed step: bigger in lbs than kg, bigger for beginners."""
    beginner, other = DEFAULT_INCREMENTS.get(weight_unit, DEFAULT_INCREMENTS["lbs"])
    return beginner if experience_level == "beginner" else other


def adaptive_increment(weekly_performance, default: float) -> tuple[float, bool]:
    """
    Data-driven weekly step from a least-squares fit of weekly max weight.

    Returns (increment, is_adaptive). Falls back to `default` with fewer than
    3 weeks, a poor fit (R² < 0.30), or a step under 25% of default; never
    returns more than 2× default.
    """
    if len(weekly_performance) < MIN_REGRESSION_POINTS:
        return default, False

    ordered = sorted(weekly_performance, key=lambda w: w.week_ago, reverse=True)
    slope, _, r_squared = linear_fit([w.max_weight for w in ordered])
    if r_squared < MIN_R_SQUARED:
        logger.debug("adaptive increment rejected: R²=%.3f", r_squared)
        return default, False

    clamped = min(abs(slope), default * MAX_INCREMENT_FACTOR)
    if clamped < default * MIN_INCREMENT_FACTOR:
        return default, False
    return clamped, True


# ═══════════════════════════════════════════════════════════════════════
# 3. COMPOSER
# ═══════════════════════════════════════════════════════════════════════

def clamp_composite(value: float) -> float:
    return max(COMPOSITE_MIN, min(COMPOSITE_MAX, value))


def confidence_level(data_points: int, weekly_points: int) -> str:
    if data_points >= HIGH_CONFIDENCE_POINTS and weekly_points >= MIN_REGRESSION_POINTS:
        return "high"
    if data_points >= MEDIUM_CONFIDENCE_POINTS:
        return "medium"
    return "low"


def blend_increment(adaptive: float, default: float, confidence: str) -> float:
    share = CONFIDENCE_BLEND[confidence]
    if share == 1.0:
        return adaptive
    if share == 0.0:
        return default
    return adaptive * share + default * (1 - share)


def personalized_progression(ctx: ProgressionContext) -> PersonalizedProgressionConfig:
    """
    Combine baseline, increment and all factor multipliers for one exercise.

    Only non-neutral factors are listed, in a fixed order, each with a
    human-readable reason.
    """
    user = ctx.user
    factors = []

    maxima = session_max_weights(ctx.recent_session_sets)
    baseline = exponential_decay_baseline(maxima)

    default = default_increment(user.weight_unit, user.experience_level)
    weekly = ctx.analysis.weekly_performance
    adaptive, is_adaptive = adaptive_increment(weekly, default)
    if is_adaptive:
        factors.append(PersonalizationFactor(
            name="Adaptive Progression",
            value=adaptive,
            reasoning=f"Per-exercise progression rate: {adaptive:.1f} {user.weight_unit}/week based on your history",
        ))

    success = success_rate_factor(ctx.recent_session_sets, ctx.target_reps)
    if success.multiplier != NEUTRAL:
        factors.append(PersonalizationFactor("Success Rate", success.multiplier, describe_success_rate(success)))

    consistency = consistency_factor(ctx.sessions, user.weekly_workout_goal, ctx.now)
    if consistency.multiplier != NEUTRAL:
        factors.append(PersonalizationFactor(
            "Workout Consistency", consistency.multiplier, describe_consistency(consistency),
        ))

    recovery = recovery_factor(ctx.exercise_id, ctx.sessions, ctx.custom_exercises, ctx.now)
    if recovery.multiplier != NEUTRAL and recovery.statistic is not None:
        factors.append(PersonalizationFactor("Recovery", recovery.multiplier, describe_recovery(recovery)))

    body_weight = body_weight_factor(ctx.weight_entries, user.workout_goal, ctx.now)
    if body_weight.multiplier != NEUTRAL:
        factors.append(PersonalizationFactor(
            "Body Weight Trend", body_weight.multiplier, describe_body_weight(body_weight, user.workout_goal),
        ))

    mood = mood_factor(ctx.sessions)
    if mood.multiplier != NEUTRAL and mood.statistic is not None:
        factors.append(PersonalizationFactor("Mood Trend", mood.multiplier, describe_mood(mood)))

    raw = (
        success.multiplier
        * consistency.multiplier
        * recovery.multiplier
        * body_weight.multiplier
        * mood.multiplier
    )
    composite = clamp_composite(raw)

    confidence = confidence_level(len(maxima), len(weekly))
    increment = blend_increment(adaptive, default, confidence)

    logger.debug(
        "%s: baseline=%.2f increment=%.2f (adaptive=%s) composite=%.3f confidence=%s",
        ctx.exercise_id, baseline, increment, is_adaptive, composite, confidence,
    )
    return PersonalizedProgressionConfig(
        baseline=baseline,
        increment=increment,
        composite_multiplier=composite,
        factors=tuple(factors),
        confidence=confidence,
    )


def progression_context(
    snapshot: TrainingSnapshot,
    exercise_id: str,
    analysis=None,
    target_reps: int | None = None,
) -> ProgressionContext:
    """Assemble a ProgressionContext for one exercise from a snapshot."""
    if target_reps is None:
        target_reps = snapshot.target_reps_for(exercise_id, DEFAULT_TARGET_REPS)
    if analysis is None:
        analysis = analyze_exercise(
            exercise_id, snapshot.sessions, snapshot.custom_exercises,
            target_reps=target_reps, now=snapshot.as_of,
        )
    return ProgressionContext(
        exercise_id=exercise_id,
        analysis=analysis,
        recent_session_sets=tuple(recent_session_sets(snapshot.sessions, exercise_id)),
        target_reps=target_reps,
        user=snapshot.user,
        sessions=snapshot.sessions,
        now=snapshot.as_of,
        weight_entries=snapshot.weight_entries,
        custom_exercises=snapshot.custom_exercises,
    )


def progression_for_snapshot(snapshot: TrainingSnapshot, exercise_id: str, **kwargs) -> PersonalizedProgressionConfig:
    return personalized_progression(progression_context(snapshot, exercise_id, **kwargs))
