"""
Overload Analytics — Session history ingestion

Turns the caller's raw history (JSON-like dicts from workout storage) into
immutable Session records, and Session records into a flat pandas
DataFrame for aggregation. No storage access happens here.
"""
import json
import logging
from datetime import datetime, timezone

import pandas as pd

from overload.config import (
    DEFAULT_EXPERIENCE,
    DEFAULT_GOAL,
    DEFAULT_WEEKLY_GOAL,
    DEFAULT_WEIGHT_UNIT,
    EXPERIENCE_LEVELS,
    WEIGHT_UNITS,
    WORKOUT_GOALS,
)
from overload.models import (
    CardioExercise,
    CycleState,
    ExerciseInfo,
    PhaseConfig,
    Session,
    StrengthExercise,
    StrengthSet,
    TrainingSnapshot,
    UserContext,
    WeightEntry,
)

logger = logging.getLogger(__name__)

SET_COLUMNS = [
    "session_id", "started_at", "completed_at", "completed", "mood",
    "exercise_id", "set_index", "weight", "reps",
]


def parse_time(value) -> datetime | None:
    """ISO string or datetime → naive UTC datetime. None passes through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_between(later: datetime, earlier: datetime) -> float:
    """Fractional days from `earlier` to `later`."""
    return (later - earlier).total_seconds() / 86400


# ═════════════════════════════════════════════════════════════════════
# 1. RAW DICTS → RECORDS
# ═════════════════════════════════════════════════════════════════════

def _exercise_from_dict(raw: dict):
    kind = raw.get("type", "strength")
    exercise_id = raw.get("exercise_id")
    if not exercise_id:
        raise ValueError(f"exercise entry without exercise_id: {raw!r}")
    if kind == "strength":
        sets = tuple(
            StrengthSet(weight=s.get("weight", 0) or 0, reps=int(s.get("reps", 0) or 0))
            for s in raw.get("sets", [])
            if s.get("type", "strength") == "strength"
        )
        return StrengthExercise(exercise_id=exercise_id, sets=sets)
    if kind == "cardio":
        return CardioExercise(
            exercise_id=exercise_id,
            duration_seconds=float(raw.get("duration_seconds", 0) or 0),
            distance=raw.get("distance"),
        )
    raise ValueError(f"unknown exercise type {kind!r} for {exercise_id}")


def session_from_dict(raw: dict) -> Session:
    if not raw.get("id") or not raw.get("started_at"):
        raise ValueError(f"session needs id and started_at: {raw!r}")
    return Session(
        id=str(raw["id"]),
        started_at=parse_time(raw["started_at"]),
        completed_at=parse_time(raw.get("completed_at")),
        template_id=raw.get("template_id"),
        mood=raw.get("mood"),
        exercises=tuple(_exercise_from_dict(ex) for ex in raw.get("exercises", [])),
    )


def sessions_from_dicts(raw_sessions: list[dict]) -> list[Session]:
    return [session_from_dict(r) for r in raw_sessions]


def _exercise_info_from_dict(raw: dict) -> ExerciseInfo:
    return ExerciseInfo(
        id=raw["id"],
        name=raw.get("name", raw["id"]),
        type=raw.get("type", "strength"),
        muscle_groups=tuple(raw.get("muscle_groups", ())),
        equipment=raw.get("equipment"),
    )


def _cycle_from_dict(raw: dict | None) -> CycleState | None:
    if not raw:
        return None
    phases = tuple(
        PhaseConfig(
            type=p["type"],
            duration_weeks=int(p.get("duration_weeks", 1)),
            rep_range_min=p.get("rep_range_min"),
            rep_range_max=p.get("rep_range_max"),
        )
        for p in raw.get("phases", [])
    )
    return CycleState(
        phases=phases,
        current_phase_index=int(raw.get("current_phase_index", 0)),
        current_week_in_phase=int(raw.get("current_week_in_phase", 1)),
        cycle_start_date=parse_time(raw.get("cycle_start_date")),
    )


def snapshot_from_dict(data: dict) -> TrainingSnapshot:
    """
    Build a TrainingSnapshot from its JSON form.

    Missing user preferences fall back to the OVERLOAD_* environment
    defaults in config. A missing `as_of` means "now".
    """
    user_raw = data.get("user", {})
    user = UserContext(
        experience_level=user_raw.get("experience_level", DEFAULT_EXPERIENCE),
        weight_unit=user_raw.get("weight_unit", DEFAULT_WEIGHT_UNIT),
        workout_goal=user_raw.get("workout_goal", DEFAULT_GOAL),
        weekly_workout_goal=user_raw.get("weekly_workout_goal", DEFAULT_WEEKLY_GOAL),
    )
    if user.weight_unit not in WEIGHT_UNITS:
        raise ValueError(f"unknown weight unit {user.weight_unit!r}")
    if user.experience_level not in EXPERIENCE_LEVELS:
        raise ValueError(f"unknown experience level {user.experience_level!r}")
    if user.workout_goal not in WORKOUT_GOALS:
        raise ValueError(f"unknown workout goal {user.workout_goal!r}")
    as_of = parse_time(data.get("as_of")) or utcnow()
    weight_entries = tuple(
        WeightEntry(
            date=parse_time(e["date"]),
            weight=float(e["weight"]),
            unit=e.get("unit", user.weight_unit),
        )
        for e in data.get("weight_entries", [])
    )
    snapshot = TrainingSnapshot(
        sessions=tuple(sessions_from_dicts(data.get("sessions", []))),
        as_of=as_of,
        user=user,
        weight_entries=weight_entries,
        custom_exercises=tuple(_exercise_info_from_dict(e) for e in data.get("custom_exercises", [])),
        cycle=_cycle_from_dict(data.get("cycle")),
        target_reps={k: int(v) for k, v in data.get("target_reps", {}).items()},
    )
    logger.debug(
        "snapshot loaded: %d sessions, %d weight entries, as_of=%s",
        len(snapshot.sessions), len(snapshot.weight_entries), as_of.isoformat(),
    )
    return snapshot


def load_snapshot(path: str) -> TrainingSnapshot:
    with open(path, encoding="utf-8") as f:
        return snapshot_from_dict(json.load(f))


# ═════════════════════════════════════════════════════════════════════
# 2. RECORDS → DATAFRAME / SELECTIONS
# ═════════════════════════════════════════════════════════════════════

def sessions_to_dataframe(sessions) -> pd.DataFrame:
    """
    Flatten sessions into a set-level DataFrame.
    One row per strength set; cardio entries are skipped.
    """
    rows = []
    for s in sessions:
        for ex in s.exercises:
            if not isinstance(ex, StrengthExercise):
                continue
            for i, st in enumerate(ex.sets):
                rows.append({
                    "session_id": s.id,
                    "started_at": pd.Timestamp(s.started_at),
                    "completed_at": pd.Timestamp(s.completed_at) if s.completed_at else pd.NaT,
                    "completed": s.is_completed,
                    "mood": s.mood,
                    "exercise_id": ex.exercise_id,
                    "set_index": i,
                    "weight": float(st.weight),
                    "reps": int(st.reps),
                })

    df = pd.DataFrame(rows, columns=SET_COLUMNS)
    if not df.empty:
        df = df.sort_values(["started_at", "session_id", "set_index"]).reset_index(drop=True)
    return df


def newest_first(sessions, completed_only: bool = True) -> list[Session]:
    """Sessions ordered by start time, most recent first (id breaks ties)."""
    pool = [s for s in sessions if s.is_completed] if completed_only else list(sessions)
    return sorted(pool, key=lambda s: (s.started_at, s.id), reverse=True)


def strength_exercise_ids(sessions) -> list[str]:
    """Distinct strength exercise ids in first-seen order."""
    seen = {}
    for s in sessions:
        for ex in s.exercises:
            if isinstance(ex, StrengthExercise):
                seen.setdefault(ex.exercise_id, None)
    return list(seen)


def recent_session_sets(sessions, exercise_id: str, limit: int = 10) -> list[tuple[StrengthSet, ...]]:
    """
    Per-session strength sets for one exercise, newest session first.

    Only the `limit` most recent completed sessions are scanned; sessions
    that did not include the exercise contribute nothing.
    """
    result = []
    for s in newest_first(sessions)[:limit]:
        sets = s.strength_sets(exercise_id)
        if sets:
            result.append(tuple(sets))
    return result
