"""
Overload Analytics — Local next-session suggestions

Rule-based weight/rep targets for the exercises of a template, computed
from recent history alone:
  - working weight = median max weight of the last 5 sessions
  - improving  → + increment (advanced lifters add a rep instead)
  - plateau    → −10% weight, +2 reps
  - declining  → −12.5% weight
  - cycle phase modifiers applied last, then rounding to the plate step
"""
import logging

import numpy as np

from overload.analytics import analyze_exercise, has_enough_history_for_plateau_detection
from overload.config import (
    ADVANCED_MAX_EXTRA_REPS,
    BASELINE_SESSIONS,
    DECLINE_WEIGHT_FACTOR,
    DEFAULT_TARGET_REPS,
    DELOAD_MIN_REPS,
    PHASE_WEIGHT_FACTORS,
    PLATEAU_EXTRA_REPS,
    PLATEAU_WEIGHT_FACTOR,
    ROUNDING_STEP,
    get_exercise,
    get_exercise_name,
)
from overload.history import recent_session_sets
from overload.models import ExerciseSuggestion, PhaseConfig, TrainingSnapshot
from overload.outliers import filter_outliers
from overload.progression import default_increment

logger = logging.getLogger(__name__)


def round_weight(weight: float, unit: str) -> float:
    """Nearest 2.5 lbs / 1.25 kg, halves rounding up."""
    step = ROUNDING_STEP.get(unit, ROUNDING_STEP["lbs"])
    return float(np.floor(weight / step + 0.5) * step)


def _working_stats(recent_sets) -> tuple[float, float]:
    """Median of per-session max weight and mean reps over the last 5 sessions."""
    maxima, reps = [], []
    for sets in list(recent_sets)[:BASELINE_SESSIONS]:
        filtered = filter_outliers(sets, key=lambda s: s.weight)
        if not filtered:
            continue
        top = max(s.weight for s in filtered)
        avg = sum(s.reps for s in filtered) / len(filtered)
        if top > 0:
            maxima.append(top)
        if avg > 0:
            reps.append(avg)
    weight = float(np.median(maxima)) if maxima else 0.0
    avg_reps = float(np.median(reps)) if reps else 0.0
    return weight, avg_reps


def _apply_phase(weight: float, reps: int, target_reps: int, phase: PhaseConfig, name: str, reasoning: str):
    has_range = phase.rep_range_min is not None and phase.rep_range_max is not None

    if phase.type == "deload":
        weight *= PHASE_WEIGHT_FACTORS["deload"]
        reps = max(target_reps, DELOAD_MIN_REPS)
        reasoning = f"Deload phase — reducing weight ~30% for {name}"
    elif phase.type == "accumulation":
        reps = max(reps, target_reps)
        if has_range:
            reps = min(reps, phase.rep_range_max)
    elif phase.type in ("intensification", "realization"):
        weight *= PHASE_WEIGHT_FACTORS[phase.type]
        if has_range:
            reps = max(phase.rep_range_min, min(reps, phase.rep_range_max))
        else:
            reps = max(3, reps - 2)
    return weight, reps, reasoning


def local_suggestion(
    exercise_id: str,
    analysis,
    user,
    target_reps: int,
    recent_sets,
    phase: PhaseConfig | None = None,
    custom_exercises=(),
) -> ExerciseSuggestion:
    """Next-session weight and reps for one exercise."""
    name = get_exercise_name(exercise_id, custom_exercises)
    weight, avg_reps = _working_stats(recent_sets)

    if weight == 0:
        return ExerciseSuggestion(
            exercise_id=exercise_id,
            suggested_weight=0.0,
            suggested_reps=target_reps,
            reasoning=f"Start light and establish your working weight for {name}",
            confidence="low",
            progress_status="new",
        )

    reps = int(np.floor(avg_reps + 0.5)) or target_reps
    increment = default_increment(user.weight_unit, user.experience_level)
    status = analysis.progress_status

    if status == "improving":
        if user.experience_level == "advanced":
            reps = min(reps + 1, target_reps + ADVANCED_MAX_EXTRA_REPS)
            reasoning = f"Progressing well — adding 1 rep for {name}"
        else:
            weight += increment
            reasoning = f"Progressing well — adding {increment:g} {user.weight_unit} for {name}"
    elif status == "plateau":
        weight *= PLATEAU_WEIGHT_FACTOR
        reps += PLATEAU_EXTRA_REPS
        reasoning = f"Plateau detected — reducing weight 10% and increasing reps for {name}"
    elif status == "declining":
        weight *= DECLINE_WEIGHT_FACTOR
        reasoning = f"Performance declining — reducing weight 12.5% for recovery on {name}"
    else:
        reasoning = f"Continue with your current weight for {name}"

    if phase is not None:
        weight, reps, reasoning = _apply_phase(weight, reps, target_reps, phase, name, reasoning)

    weight = max(0.0, round_weight(weight, user.weight_unit))
    reps = max(1, reps)

    insufficient = status == "insufficient_data"
    return ExerciseSuggestion(
        exercise_id=exercise_id,
        suggested_weight=weight,
        suggested_reps=reps,
        reasoning=reasoning,
        confidence="low" if insufficient else "medium",
        progress_status="new" if insufficient else status,
    )


def _template_entry(entry) -> tuple[str, int]:
    if isinstance(entry, str):
        return entry, DEFAULT_TARGET_REPS
    return entry["exercise_id"], int(entry.get("target_reps") or DEFAULT_TARGET_REPS)


def local_suggestions(snapshot: TrainingSnapshot, template_exercises) -> list[ExerciseSuggestion]:
    """
    Suggestions for every strength exercise of a template.

    `template_exercises` holds exercise ids or dicts with `exercise_id` and
    an optional `target_reps`. Cardio entries are skipped. Plateau calls
    are only made once the history is long enough to support them.
    """
    entries = []
    for raw in template_exercises:
        if isinstance(raw, dict) and raw.get("type", "strength") != "strength":
            continue
        exercise_id, target_reps = _template_entry(raw)
        info = get_exercise(exercise_id, snapshot.custom_exercises)
        if info is not None and info.type != "strength":
            continue
        entries.append((exercise_id, target_reps))

    if not entries:
        return []

    plateau_ok = has_enough_history_for_plateau_detection(snapshot.sessions, snapshot.as_of)
    logger.debug("local suggestions for %d exercises (plateau detection: %s)", len(entries), plateau_ok)
    cycle = snapshot.cycle
    phase = cycle.current_phase if cycle is not None and cycle.phases else None

    suggestions = []
    for exercise_id, target_reps in entries:
        analysis = analyze_exercise(
            exercise_id, snapshot.sessions, snapshot.custom_exercises,
            target_reps=target_reps, enable_plateau_detection=plateau_ok, now=snapshot.as_of,
        )
        suggestions.append(local_suggestion(
            exercise_id,
            analysis,
            snapshot.user,
            target_reps,
            recent_session_sets(snapshot.sessions, exercise_id),
            phase=phase,
            custom_exercises=snapshot.custom_exercises,
        ))
    return suggestions
