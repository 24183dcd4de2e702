"""
Overload Analytics — Deload detection

Rule engine over the whole training history. Each trigger in the strategy
is evaluated independently; the number that fire sets the urgency.

    ≥3 triggers (or too long without a deload) → immediate
     2 triggers                                → soon
     1 trigger                                 → optional
"""
import logging
from datetime import datetime, timedelta

from overload.analytics import analyze_all
from overload.config import (
    DEFAULT_DELOAD_STRATEGY,
    DELOAD_MIN_RECENT_SESSIONS,
    DELOAD_MOOD_MIN_SESSIONS,
    DELOAD_MOOD_SESSIONS,
    DELOAD_RECENT_DAYS,
    FATIGUE_ABANDONED_AFTER_HOURS,
    FATIGUE_ABANDONED_LOOKBACK,
    FATIGUE_ABANDONED_SESSIONS,
    FATIGUE_DECLINING_EXERCISES,
    FATIGUE_LOW_MOOD,
    FATIGUE_VOLUME_DROP,
    FATIGUE_VOLUME_MIN_SESSIONS,
    SUGGESTED_ACTIONS,
    WEEKS_SINCE_DELOAD_SESSION_SPAN,
)
from overload.history import days_between, newest_first
from overload.models import (
    CycleState,
    DeloadContext,
    DeloadRecommendation,
    DeloadStrategy,
    TrainingSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = DeloadStrategy.from_dict(DEFAULT_DELOAD_STRATEGY)

NO_DELOAD = DeloadRecommendation(should_deload=False, urgency=None)


# ═══════════════════════════════════════════════════════════════════════
# 1. SIGNALS
# ═══════════════════════════════════════════════════════════════════════

def _completed_between(sessions, start: datetime, end: datetime | None = None) -> list:
    return [
        s for s in sessions
        if s.completed_at is not None
        and s.completed_at >= start
        and (end is None or s.completed_at < end)
    ]


def plateau_exercises(analyses: dict) -> list[str]:
    return [a.exercise_name for a in analyses.values() if a.progress_status == "plateau"]


def performance_trend(analyses: dict) -> tuple[float, list[str]]:
    """
    Mean strength trend over exercises with enough data, plus the names of
    the declining ones.
    """
    usable = [a for a in analyses.values() if a.progress_status != "insufficient_data"]
    declining = [a.exercise_name for a in usable if a.progress_status == "declining"]
    if not usable:
        return 0.0, declining
    return sum(a.estimated_1rm_trend for a in usable) / len(usable), declining


def average_mood(sessions) -> float | None:
    """Mean mood of the last 10 completed sessions with a mood; needs 3."""
    with_mood = sorted(
        (s for s in sessions if s.completed_at is not None and s.mood is not None),
        key=lambda s: (s.completed_at, s.id),
        reverse=True,
    )[:DELOAD_MOOD_SESSIONS]
    if len(with_mood) < DELOAD_MOOD_MIN_SESSIONS:
        return None
    return sum(s.mood for s in with_mood) / len(with_mood)


def abandoned_sessions(sessions, now: datetime) -> int:
    """Started more than a day ago and never completed, among the 10 newest."""
    cutoff = now - timedelta(hours=FATIGUE_ABANDONED_AFTER_HOURS)
    latest = newest_first(sessions, completed_only=False)[:FATIGUE_ABANDONED_LOOKBACK]
    return sum(1 for s in latest if s.completed_at is None and s.started_at < cutoff)


def volume_dropped(sessions, now: datetime) -> bool:
    """Average sets per session in the last 14 days vs the 14 days before."""
    window = timedelta(days=DELOAD_RECENT_DAYS)
    recent = _completed_between(sessions, now - window)
    older = _completed_between(sessions, now - 2 * window, now - window)
    if len(recent) < FATIGUE_VOLUME_MIN_SESSIONS or len(older) < FATIGUE_VOLUME_MIN_SESSIONS:
        return False
    avg_recent = sum(s.set_count for s in recent) / len(recent)
    avg_older = sum(s.set_count for s in older) / len(older)
    return avg_recent < avg_older * FATIGUE_VOLUME_DROP


def fatigue_signals(sessions, analyses: dict, now: datetime) -> list[str]:
    signals = []

    _, declining = performance_trend(analyses)
    if len(declining) >= FATIGUE_DECLINING_EXERCISES:
        signals.append(f"Declining performance in {len(declining)} exercises")

    mood = average_mood(sessions)
    if mood is not None and mood < FATIGUE_LOW_MOOD:
        signals.append("Low workout enjoyment")

    if abandoned_sessions(sessions, now) >= FATIGUE_ABANDONED_SESSIONS:
        signals.append("Multiple abandoned workouts")

    if volume_dropped(sessions, now):
        signals.append("Reduced workout volume")

    return signals


# ═══════════════════════════════════════════════════════════════════════
# 2. DETECTION
# ═══════════════════════════════════════════════════════════════════════

def _evaluate_trigger(trigger, ctx: DeloadContext, analyses: dict) -> str | None:
    """Reason string when `trigger` fires, else None."""
    if trigger.type == "plateau_detected":
        names = plateau_exercises(analyses)
        if len(names) >= trigger.threshold:
            more = "..." if len(names) > 3 else ""
            return f"{len(names)} exercises on plateau: {', '.join(names[:3])}{more}"

    elif trigger.type == "performance_decline":
        avg_trend, _ = performance_trend(analyses)
        if avg_trend < -trigger.threshold:
            return f"Performance declining {abs(avg_trend):.1f}% on average"

    elif trigger.type == "mood_decline":
        mood = average_mood(ctx.sessions)
        if mood is not None and mood < trigger.threshold:
            return f"Low workout enjoyment ({mood:.1f}/5 average)"

    elif trigger.type == "max_weeks_reached":
        if ctx.weeks_since_last_deload >= trigger.threshold:
            return f"{ctx.weeks_since_last_deload} weeks since last recovery week"

    elif trigger.type == "fatigue_accumulation":
        signals = fatigue_signals(ctx.sessions, analyses, ctx.now)
        if len(signals) >= trigger.threshold:
            return f"Multiple fatigue signals: {', '.join(signals)}"

    else:
        raise ValueError(f"unknown deload trigger {trigger.type!r}")
    return None


def urgency_for(trigger_count: int, weeks_since_last_deload: int, strategy: DeloadStrategy) -> str | None:
    if trigger_count >= 3 or weeks_since_last_deload >= strategy.max_weeks_without_deload:
        return "immediate"
    if trigger_count == 2:
        return "soon"
    if trigger_count == 1:
        return "optional"
    return None


def detect_deload_need(ctx: DeloadContext, strategy: DeloadStrategy = DEFAULT_STRATEGY) -> DeloadRecommendation:
    """
    Whole-program deload recommendation.

    Never recommends while already in a deload phase, or with fewer than 3
    completed sessions in the last 14 days.
    """
    if ctx.current_phase_is_deload:
        return NO_DELOAD

    recent = _completed_between(ctx.sessions, ctx.now - timedelta(days=DELOAD_RECENT_DAYS))
    if len(recent) < DELOAD_MIN_RECENT_SESSIONS:
        logger.debug("deload check skipped: %d recent sessions", len(recent))
        return NO_DELOAD

    analyses = analyze_all(
        ctx.sessions, ctx.custom_exercises, enable_plateau_detection=True, now=ctx.now,
    )

    triggered, reasons = [], []
    for trigger in strategy.triggers:
        reason = _evaluate_trigger(trigger, ctx, analyses)
        if reason is not None:
            triggered.append(trigger.type)
            reasons.append(reason)

    urgency = urgency_for(len(triggered), ctx.weeks_since_last_deload, strategy)
    if urgency is None:
        return DeloadRecommendation(should_deload=False, urgency=None, reasons=tuple(reasons))

    logger.debug("deload recommended (%s): %s", urgency, ", ".join(triggered))
    return DeloadRecommendation(
        should_deload=True,
        urgency=urgency,
        reasons=tuple(reasons),
        triggered_by=frozenset(triggered),
        suggested_action=SUGGESTED_ACTIONS[urgency],
    )


# ═══════════════════════════════════════════════════════════════════════
# 3. WEEKS SINCE LAST DELOAD
# ═══════════════════════════════════════════════════════════════════════

def weeks_since_deload(sessions, cycle: CycleState | None = None) -> int:
    """
    Cycle-aware when phase state is known: weeks of every phase after the
    last deload phase up to the current one, plus the current week in phase
    (0 while in a deload). Otherwise estimated from the date spread of the
    most recent 21 completed sessions.
    """
    if cycle is not None and cycle.phases:
        idx = cycle.current_phase_index
        last_deload = next(
            (i for i in range(idx, -1, -1) if cycle.phases[i].type == "deload"), -1
        )
        if last_deload == idx:
            return 0
        weeks = sum(p.duration_weeks for p in cycle.phases[last_deload + 1:idx])
        return weeks + cycle.current_week_in_phase

    completed = sorted(
        (s for s in sessions if s.completed_at is not None),
        key=lambda s: (s.completed_at, s.id),
        reverse=True,
    )
    if len(completed) < 2:
        return 0
    newest = completed[0].completed_at
    oldest = completed[min(len(completed) - 1, WEEKS_SINCE_DELOAD_SESSION_SPAN)].completed_at
    return int(days_between(newest, oldest) // 7)


def deload_context(snapshot: TrainingSnapshot) -> DeloadContext:
    """Build the detector input from a snapshot and its cycle state, if any."""
    cycle = snapshot.cycle
    in_deload = bool(cycle and cycle.phases) and cycle.current_phase.type == "deload"
    return DeloadContext(
        sessions=snapshot.sessions,
        weeks_since_last_deload=weeks_since_deload(snapshot.sessions, snapshot.cycle),
        now=snapshot.as_of,
        custom_exercises=snapshot.custom_exercises,
        current_phase_is_deload=in_deload,
    )


def deload_for_snapshot(snapshot: TrainingSnapshot, strategy: DeloadStrategy = DEFAULT_STRATEGY) -> DeloadRecommendation:
    return detect_deload_need(deload_context(snapshot), strategy)
