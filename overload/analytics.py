"""
Overload Analytics — Exercise history analysis

Per-exercise weekly performance series, strength trend and progress
classification (improving / plateau / declining / insufficient_data).
All exercise matching uses exercise_id, never display names.
"""
import logging
from datetime import datetime, timedelta

import numpy as np
import pandas as pd

from overload.config import (
    DECLINE_TREND_PCT,
    FAILED_REP_BUFFER,
    FAILED_REP_MIN_SESSIONS,
    FAILED_REP_SESSIONS,
    LOOKBACK_WEEKS,
    MIN_WEEKS_FOR_TREND,
    PLATEAU_HISTORY_MIN_SESSIONS,
    PLATEAU_HISTORY_MIN_WEEKS,
    PLATEAU_MIN_WEEKS,
    PLATEAU_SIGNAL_MIN_MATCHES,
    PLATEAU_SIGNAL_SESSIONS,
    PLATEAU_TREND_PCT,
    RECENT_SESSIONS_SHOWN,
    SAME_WEIGHT_TOLERANCE,
    STALLED_1RM_TOLERANCE,
    get_exercise_name,
)
from overload.history import sessions_to_dataframe, strength_exercise_ids, utcnow
from overload.models import ExerciseAnalysis, PlateauSignals, RecentSessionSummary, WeeklyPerformance
from overload.outliers import filter_outliers

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# 1. CORE MATH
# ═══════════════════════════════════════════════════════════════════════

def epley_1rm(weight: float, reps: int) -> float:
    """Estimated one-rep max, Epley: weight × (1 + reps/30). A single is itself."""
    if reps <= 0 or weight <= 0:
        return 0.0
    if reps == 1:
        return float(weight)
    return weight * (1 + reps / 30)


def _round_half_up(x: float) -> int:
    return int(np.floor(x + 0.5))


def linear_fit(values) -> tuple[float, float, float]:
    """
    Ordinary least squares of `values` against their index (0, 1, 2, ...).

    Returns (slope, intercept, r_squared). R² is 0 when the series has no
    variance. Fewer than 2 points cannot be fitted and return a zero slope.
    """
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n < 2:
        return 0.0, float(y[0]) if n else 0.0, 0.0

    x = np.arange(n, dtype=float)
    slope, intercept = np.polyfit(x, y, 1)
    predicted = intercept + slope * x
    ss_total = float(((y - y.mean()) ** 2).sum())
    ss_residual = float(((y - predicted) ** 2).sum())
    r_squared = 1 - ss_residual / ss_total if ss_total > 0 else 0.0
    return float(slope), float(intercept), r_squared


def trend_percent(values) -> float:
    """Fitted per-step slope as a percentage of the series mean."""
    if len(values) < 2:
        return 0.0
    slope, _, _ = linear_fit(values)
    mean = float(np.mean(values))
    return slope / mean * 100 if mean > 0 else 0.0


# ═══════════════════════════════════════════════════════════════════════
# 2. WEEKLY SERIES
# ═══════════════════════════════════════════════════════════════════════

def _exercise_sets(df: pd.DataFrame, exercise_id: str, now: datetime) -> pd.DataFrame:
    """Completed-session sets for one exercise inside the lookback window."""
    if df.empty:
        return df
    cutoff = now - timedelta(weeks=LOOKBACK_WEEKS)
    ex = df[
        (df["exercise_id"] == exercise_id)
        & df["completed"]
        & (df["started_at"] >= pd.Timestamp(cutoff))
        & (df["started_at"] <= pd.Timestamp(now))
    ].copy()
    if ex.empty:
        return ex
    ex["week_ago"] = (pd.Timestamp(now) - ex["started_at"]).dt.days // 7
    return ex[ex["week_ago"] <= LOOKBACK_WEEKS]


def weekly_performance(ex_df: pd.DataFrame) -> list[WeeklyPerformance]:
    """
    One WeeklyPerformance per week bucket with data, newest first.
    Stats are computed after dropping weight outliers within the week.
    """
    if ex_df.empty:
        return []

    weeks = []
    for week_ago, grp in ex_df.groupby("week_ago", sort=True):
        sets = filter_outliers(
            list(zip(grp["weight"], grp["reps"], grp["session_id"])),
            key=lambda s: s[0],
        )
        weights = [w for w, _, _ in sets]
        reps = [r for _, r, _ in sets]
        max_weight = max(weights)
        avg_reps = sum(reps) / len(reps)
        weeks.append(WeeklyPerformance(
            week_ago=int(week_ago),
            max_weight=float(max_weight),
            sessions=grp["session_id"].nunique(),
            avg_weight=sum(weights) / len(weights),
            avg_reps=avg_reps,
            total_sets=len(sets),
            estimated_1rm=epley_1rm(max_weight, _round_half_up(avg_reps)),
        ))
    return weeks


def _trailing_consecutive_weeks(weekly: list[WeeklyPerformance]) -> int:
    """Length of the run of back-to-back weeks starting at the newest bucket."""
    if not weekly:
        return 0
    run = 1
    for newer, older in zip(weekly, weekly[1:]):
        if older.week_ago != newer.week_ago + 1:
            break
        run += 1
    return run


def session_summary(ex_df: pd.DataFrame) -> pd.DataFrame:
    """Max weight and average reps per session, newest session first."""
    if ex_df.empty:
        return pd.DataFrame(columns=["started_at", "session_id", "max_weight", "avg_reps"])
    return (
        ex_df.groupby(["started_at", "session_id"])
        .agg(max_weight=("weight", "max"), avg_reps=("reps", "mean"))
        .reset_index()
        .sort_values(["started_at", "session_id"], ascending=False)
        .reset_index(drop=True)
    )


def _recent_sessions(per_session: pd.DataFrame) -> list[RecentSessionSummary]:
    per_session = per_session.head(RECENT_SESSIONS_SHOWN)
    return [
        RecentSessionSummary(
            date=row.started_at.to_pydatetime(),
            max_weight=float(row.max_weight),
            avg_reps=float(row.avg_reps),
            estimated_1rm=epley_1rm(row.max_weight, _round_half_up(row.avg_reps)),
        )
        for row in per_session.itertuples()
    ]


def _pct_change(newest: float, oldest: float) -> float:
    return (newest - oldest) / oldest * 100 if oldest > 0 else 0.0


def _matches_newest(values, tolerance: float) -> int:
    """How many values sit within ±tolerance (a fraction) of the first one."""
    first = values[0]
    return sum(1 for v in values if abs(v - first) <= first * tolerance)


def plateau_signals(per_session: pd.DataFrame, target_reps: int | None = None) -> PlateauSignals:
    """
    Session-level stall indicators over the newest sessions.

    - same_weight: of the last 6 sessions, at least 4 hit a max weight
      within 2.5% of the newest session's.
    - failed_rep_targets: of the last 4 sessions, at least 2 averaged more
      than one rep short of `target_reps`. Needs a target.
    - stalled_1rm: of the last 6 sessions, at least 4 have an estimated
      1RM within 3% of the newest session's.

    `per_session` is the newest-first frame from `session_summary`.
    """
    n = len(per_session)

    same_weight = stalled_1rm = False
    if n >= PLATEAU_SIGNAL_MIN_MATCHES:
        window = per_session.head(PLATEAU_SIGNAL_SESSIONS)
        max_weights = [float(w) for w in window["max_weight"]]
        e1rms = [
            epley_1rm(w, _round_half_up(r))
            for w, r in zip(window["max_weight"], window["avg_reps"])
        ]
        same_weight = _matches_newest(max_weights, SAME_WEIGHT_TOLERANCE) >= PLATEAU_SIGNAL_MIN_MATCHES
        stalled_1rm = _matches_newest(e1rms, STALLED_1RM_TOLERANCE) >= PLATEAU_SIGNAL_MIN_MATCHES

    failed_rep_targets = False
    if target_reps and n >= FAILED_REP_MIN_SESSIONS:
        avg_reps = per_session.head(FAILED_REP_SESSIONS)["avg_reps"]
        misses = int((avg_reps < target_reps - FAILED_REP_BUFFER).sum())
        failed_rep_targets = misses >= FAILED_REP_MIN_SESSIONS

    return PlateauSignals(
        same_weight=same_weight,
        failed_rep_targets=failed_rep_targets,
        stalled_1rm=stalled_1rm,
    )


# ═══════════════════════════════════════════════════════════════════════
# 3. CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════

def classify_progress(
    weekly: list[WeeklyPerformance],
    trend: float,
    enable_plateau_detection: bool = True,
) -> str:
    if len(weekly) < MIN_WEEKS_FOR_TREND:
        return "insufficient_data"
    if (
        enable_plateau_detection
        and abs(trend) < PLATEAU_TREND_PCT
        and _trailing_consecutive_weeks(weekly) >= PLATEAU_MIN_WEEKS
    ):
        return "plateau"
    if trend < DECLINE_TREND_PCT:
        return "declining"
    return "improving"


def analyze_exercise(
    exercise_id: str,
    sessions,
    custom_exercises=(),
    target_reps: int | None = None,
    enable_plateau_detection: bool = True,
    now: datetime | None = None,
) -> ExerciseAnalysis:
    """
    Analyze up to 10 weeks of history for one exercise.

    `progress_status` comes from the weekly max-weight trend. The
    session-level `plateau_signals` are reported next to it and stay all
    False when plateau detection is disabled; `target_reps` only feeds the
    failed-rep-target signal.
    """
    now = now or utcnow()
    name = get_exercise_name(exercise_id, custom_exercises)
    ex_df = _exercise_sets(sessions_to_dataframe(sessions), exercise_id, now)

    weekly = weekly_performance(ex_df)
    per_session = session_summary(ex_df)
    recent = _recent_sessions(per_session)
    signals = plateau_signals(per_session, target_reps) if enable_plateau_detection else PlateauSignals()

    # Regression runs oldest → newest
    series = [w.max_weight for w in reversed(weekly)]
    trend = trend_percent(series)
    status = classify_progress(weekly, trend, enable_plateau_detection)

    weight_trend = reps_trend = 0.0
    if len(weekly) >= 2:
        newest, oldest = weekly[0], weekly[-1]
        weight_trend = _pct_change(newest.avg_weight, oldest.avg_weight)
        reps_trend = _pct_change(newest.avg_reps, oldest.avg_reps)

    if status == "insufficient_data":
        logger.debug("%s: %d week(s) of data, not enough for a trend", exercise_id, len(weekly))

    return ExerciseAnalysis(
        exercise_id=exercise_id,
        exercise_name=name,
        weekly_performance=tuple(weekly),
        estimated_1rm_trend=trend,
        progress_status=status,
        weight_trend=weight_trend,
        reps_trend=reps_trend,
        recent_sessions=tuple(recent),
        plateau_signals=signals,
    )


def analyze_all(
    sessions,
    custom_exercises=(),
    enable_plateau_detection: bool = True,
    now: datetime | None = None,
    target_reps: dict[str, int] | None = None,
) -> dict[str, ExerciseAnalysis]:
    """
    Analysis for every strength exercise that appears in `sessions`.
    `target_reps` maps exercise_id → rep target for the failed-rep signal.
    """
    now = now or utcnow()
    target_reps = target_reps or {}
    return {
        ex_id: analyze_exercise(
            ex_id, sessions, custom_exercises,
            target_reps=target_reps.get(ex_id),
            enable_plateau_detection=enable_plateau_detection, now=now,
        )
        for ex_id in strength_exercise_ids(sessions)
    }


def has_enough_history_for_plateau_detection(sessions, now: datetime | None = None) -> bool:
    """
    Plateau calls need a long history: at least 10 completed sessions in the
    last 10 weeks, spread over at least 8 distinct weeks.
    """
    now = now or utcnow()
    cutoff = now - timedelta(weeks=LOOKBACK_WEEKS)
    recent = [s for s in sessions if s.is_completed and s.started_at >= cutoff]
    if len(recent) < PLATEAU_HISTORY_MIN_SESSIONS:
        return False

    weeks = {
        int((now - s.started_at).total_seconds() // (7 * 86400))
        for s in recent
    }
    weeks = {w for w in weeks if 0 <= w <= LOOKBACK_WEEKS}
    return len(weeks) >= PLATEAU_HISTORY_MIN_WEEKS


def progress_table(analyses: dict[str, ExerciseAnalysis]) -> pd.DataFrame:
    """
    One row per analyzed exercise, most negative trend first.
    """
    rows = []
    for a in analyses.values():
        last_max = a.weekly_performance[0].max_weight if a.weekly_performance else 0.0
        rows.append({
            "exercise_id": a.exercise_id,
            "exercise": a.exercise_name,
            "weeks_tracked": len(a.weekly_performance),
            "last_max": round(last_max, 1),
            "trend_pct": round(a.estimated_1rm_trend, 2),
            "status": a.progress_status,
            "plateau_signals": a.plateau_signals.count,
        })

    result = pd.DataFrame(rows)
    if not result.empty:
        result = result.sort_values(["trend_pct", "exercise_id"]).reset_index(drop=True)
    return result
