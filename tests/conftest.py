"""Test configuration — ensure overload modules are importable, plus shared builders."""
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path so `from overload.xxx import` works
sys.path.insert(0, str(Path(__file__).parent.parent))

NOW = datetime(2026, 3, 2, 12, 0, 0)


def make_session(session_id, days_ago, exercises, mood=None, completed=True, duration_hours=1):
    """
    Session `days_ago` days before NOW.
    `exercises` maps exercise_id → list of (weight, reps).
    """
    from overload.models import Session, StrengthExercise, StrengthSet

    started = NOW - timedelta(days=days_ago)
    return Session(
        id=session_id,
        started_at=started,
        completed_at=started + timedelta(hours=duration_hours) if completed else None,
        mood=mood,
        exercises=tuple(
            StrengthExercise(ex_id, tuple(StrengthSet(w, r) for w, r in sets))
            for ex_id, sets in exercises.items()
        ),
    )


def weekly_sessions(exercise_id, weights, reps=5, sets=3, start_days_ago=None, mood=None):
    """
    One session per week for `exercise_id`, oldest weight first.
    The newest session lands 1 day before NOW.
    """
    n = len(weights)
    start = start_days_ago if start_days_ago is not None else 1 + 7 * (n - 1)
    return [
        make_session(
            f"{exercise_id}-{i}", start - 7 * i,
            {exercise_id: [(w, reps)] * sets}, mood=mood,
        )
        for i, w in enumerate(weights)
    ]
