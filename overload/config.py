"""
Overload Analytics — Configuration

ALL exercise matching uses the catalog exercise id.
Names are only used for display, never for lookup.
Thresholds live here, never inline.
"""
import os


def env_positive_int(name: str) -> int | None:
    """Positive integer from the environment; unset, blank, zero or garbage is None."""
    try:
        value = int(os.environ.get(name, "").strip())
    except ValueError:
        return None
    return value if value > 0 else None


# ── CLI defaults (user context when the snapshot carries none) ───────
DEFAULT_WEIGHT_UNIT = os.environ.get("OVERLOAD_WEIGHT_UNIT", "lbs")
DEFAULT_EXPERIENCE = os.environ.get("OVERLOAD_EXPERIENCE", "intermediate")
DEFAULT_GOAL = os.environ.get("OVERLOAD_GOAL", "build")
DEFAULT_WEEKLY_GOAL = env_positive_int("OVERLOAD_WEEKLY_GOAL")

WEIGHT_UNITS = ("lbs", "kg")
EXPERIENCE_LEVELS = ("beginner", "intermediate", "advanced")
WORKOUT_GOALS = ("build", "lose", "maintain")
KG_TO_LB = 2.20462

# ═════════════════════════════════════════════════════════════════════
# HISTORY ANALYSIS
# ═════════════════════════════════════════════════════════════════════

LOOKBACK_WEEKS = 10
MIN_WEEKS_FOR_TREND = 2
PLATEAU_TREND_PCT = 1.0       # |trend| below this is "flat"
PLATEAU_MIN_WEEKS = 3         # consecutive flat weeks to call a plateau
DECLINE_TREND_PCT = -2.0
OUTLIER_STDDEV = 2.0

# Plateau detection is only trusted with a long enough history
PLATEAU_HISTORY_MIN_SESSIONS = 10
PLATEAU_HISTORY_MIN_WEEKS = 8

# Session-level plateau signals, newest session first
PLATEAU_SIGNAL_SESSIONS = 6         # sessions inspected for same weight / stalled 1RM
PLATEAU_SIGNAL_MIN_MATCHES = 4      # sessions that must match the newest one
SAME_WEIGHT_TOLERANCE = 0.025       # ±2.5% of the newest session's max weight
STALLED_1RM_TOLERANCE = 0.03        # ±3% of the newest session's estimated 1RM
FAILED_REP_SESSIONS = 4
FAILED_REP_MIN_SESSIONS = 2
FAILED_REP_BUFFER = 1               # average reps below target − buffer is a miss

RECENT_SESSIONS_SHOWN = 5

# ═════════════════════════════════════════════════════════════════════
# PROGRESSION
# ═════════════════════════════════════════════════════════════════════

BASELINE_SESSIONS = 5
BASELINE_DECAY = 0.2          # weight_i = e^(-0.2 * i), i = 0 most recent

MIN_REGRESSION_POINTS = 3
MIN_R_SQUARED = 0.30
MAX_INCREMENT_FACTOR = 2.0    # adaptive step never exceeds 2x default
MIN_INCREMENT_FACTOR = 0.25   # below 25% of default is noise

# {unit: (beginner, everyone else)}
DEFAULT_INCREMENTS = {
    "kg": (2.5, 1.25),
    "lbs": (5.0, 2.5),
}

# Plate rounding for suggested weights
ROUNDING_STEP = {"lbs": 2.5, "kg": 1.25}

COMPOSITE_MIN = 0.5
COMPOSITE_MAX = 1.5

# Confidence → share of the adaptive increment in the blend
CONFIDENCE_BLEND = {"high": 1.0, "medium": 0.7, "low": 0.0}
HIGH_CONFIDENCE_POINTS = 5
MEDIUM_CONFIDENCE_POINTS = 3

# ── Factor tiers: (lower bound, multiplier), first match wins ────────
WORKING_SET_PCT = 0.9
SUCCESS_WINDOW_SESSIONS = 5
SUCCESS_TIERS = [(0.90, 1.20), (0.75, 1.00), (0.50, 0.70)]
SUCCESS_FLOOR = 0.50

CONSISTENCY_WINDOW_DAYS = 14
CONSISTENCY_TIERS = [(1.00, 1.05), (0.75, 1.00), (0.50, 0.90)]
CONSISTENCY_FLOOR = 0.80

RECOVERY_TIERS = [(5.0, 1.05), (3.0, 1.00), (2.0, 0.95)]
RECOVERY_FLOOR = 0.90

BODY_WEIGHT_WINDOW_DAYS = 60
BODY_WEIGHT_STABLE_PCT = 1.0
# {goal: {trend: multiplier}}, missing trend → 1.0
BODY_WEIGHT_MULTIPLIERS = {
    "build": {"gaining": 1.05, "losing": 0.90},
    "lose": {"losing": 1.00, "gaining": 0.95},
    "maintain": {"gaining": 0.95, "losing": 0.95},
}

MOOD_WINDOW_SESSIONS = 5
MOOD_TIERS = [(4.0, 1.10), (3.0, 1.00), (2.0, 0.85)]
MOOD_FLOOR = 0.70

# ═════════════════════════════════════════════════════════════════════
# DELOAD DETECTION
# ═════════════════════════════════════════════════════════════════════

DELOAD_MIN_RECENT_SESSIONS = 3
DELOAD_RECENT_DAYS = 14
DELOAD_MOOD_SESSIONS = 10
DELOAD_MOOD_MIN_SESSIONS = 3

# fatigue_accumulation sub-signals
FATIGUE_DECLINING_EXERCISES = 2
FATIGUE_LOW_MOOD = 3.0
FATIGUE_ABANDONED_SESSIONS = 2
FATIGUE_ABANDONED_AFTER_HOURS = 24
FATIGUE_ABANDONED_LOOKBACK = 10
FATIGUE_VOLUME_DROP = 0.8     # recent avg sets < 80% of prior avg
FATIGUE_VOLUME_MIN_SESSIONS = 2

WEEKS_SINCE_DELOAD_SESSION_SPAN = 20

DEFAULT_DELOAD_STRATEGY = {
    "type": "hybrid",
    "triggers": [
        {"type": "plateau_detected", "threshold": 3,
         "description": "Multiple exercises showing no progress"},
        {"type": "performance_decline", "threshold": 5,
         "description": "Strength declining across exercises"},
        {"type": "mood_decline", "threshold": 2.5,
         "description": "Consistently low workout enjoyment"},
        {"type": "max_weeks_reached", "threshold": 6,
         "description": "Extended training without recovery week"},
        {"type": "fatigue_accumulation", "threshold": 3,
         "description": "Multiple signs of accumulated fatigue"},
    ],
    "max_weeks_without_deload": 8,
}

SUGGESTED_ACTIONS = {
    "immediate": "Consider taking a deload week now. Reduce weights by 40-50% and focus on recovery.",
    "soon": "Plan a deload week within the next 1-2 weeks to prevent overtraining.",
    "optional": "A deload week could help. Consider it if you continue to feel fatigued.",
}

# ═════════════════════════════════════════════════════════════════════
# LOCAL SUGGESTIONS
# ═════════════════════════════════════════════════════════════════════

DEFAULT_TARGET_REPS = 10
PLATEAU_WEIGHT_FACTOR = 0.9
PLATEAU_EXTRA_REPS = 2
DECLINE_WEIGHT_FACTOR = 0.875
ADVANCED_MAX_EXTRA_REPS = 3

# {phase type: weight factor}
PHASE_WEIGHT_FACTORS = {
    "deload": 0.7,
    "intensification": 1.05,
    "realization": 1.05,
}
DELOAD_MIN_REPS = 10

# ═════════════════════════════════════════════════════════════════════
# EXERCISE DATABASE — keyed by exercise id
#
# Built-in catalog. Custom exercises supplied by the caller take
# precedence over these entries.
# ═════════════════════════════════════════════════════════════════════

EXERCISE_DB = {
    # ── Chest ───────────────────────────────────────────────────────
    "bench-press": {
        "name": "Barbell Bench Press", "type": "strength",
        "muscle_groups": ["chest", "triceps", "shoulders"], "equipment": "barbell",
    },
    "incline-bench-press": {
        "name": "Incline Barbell Bench Press", "type": "strength",
        "muscle_groups": ["chest", "shoulders", "triceps"], "equipment": "barbell",
    },
    "dumbbell-bench-press": {
        "name": "Dumbbell Bench Press", "type": "strength",
        "muscle_groups": ["chest", "triceps", "shoulders"], "equipment": "dumbbell",
    },
    "dumbbell-fly": {
        "name": "Dumbbell Fly", "type": "strength",
        "muscle_groups": ["chest"], "equipment": "dumbbell",
    },
    "chest-dip": {
        "name": "Chest Dip", "type": "strength",
        "muscle_groups": ["chest", "triceps", "shoulders"], "equipment": "bodyweight",
    },
    # ── Back ────────────────────────────────────────────────────────
    "deadlift": {
        "name": "Deadlift", "type": "strength",
        "muscle_groups": ["back", "hamstrings", "glutes"], "equipment": "barbell",
    },
    "barbell-row": {
        "name": "Barbell Row", "type": "strength",
        "muscle_groups": ["back", "lats", "biceps"], "equipment": "barbell",
    },
    "pull-up": {
        "name": "Pull-Up", "type": "strength",
        "muscle_groups": ["lats", "back", "biceps"], "equipment": "bodyweight",
    },
    "lat-pulldown": {
        "name": "Lat Pulldown", "type": "strength",
        "muscle_groups": ["lats", "biceps"], "equipment": "cable",
    },
    "seated-cable-row": {
        "name": "Seated Cable Row", "type": "strength",
        "muscle_groups": ["back", "lats", "biceps"], "equipment": "cable",
    },
    "shrug": {
        "name": "Barbell Shrug", "type": "strength",
        "muscle_groups": ["traps"], "equipment": "barbell",
    },
    # ── Shoulders ───────────────────────────────────────────────────
    "overhead-press": {
        "name": "Overhead Press", "type": "strength",
        "muscle_groups": ["shoulders", "triceps"], "equipment": "barbell",
    },
    "lateral-raise": {
        "name": "Dumbbell Lateral Raise", "type": "strength",
        "muscle_groups": ["shoulders"], "equipment": "dumbbell",
    },
    "face-pull": {
        "name": "Face Pull", "type": "strength",
        "muscle_groups": ["shoulders", "traps"], "equipment": "cable",
    },
    # ── Arms ────────────────────────────────────────────────────────
    "barbell-curl": {
        "name": "Barbell Curl", "type": "strength",
        "muscle_groups": ["biceps", "forearms"], "equipment": "barbell",
    },
    "hammer-curl": {
        "name": "Hammer Curl", "type": "strength",
        "muscle_groups": ["biceps", "forearms"], "equipment": "dumbbell",
    },
    "tricep-pushdown": {
        "name": "Tricep Pushdown", "type": "strength",
        "muscle_groups": ["triceps"], "equipment": "cable",
    },
    "skull-crusher": {
        "name": "Skull Crusher", "type": "strength",
        "muscle_groups": ["triceps"], "equipment": "ez-bar",
    },
    # ── Legs ────────────────────────────────────────────────────────
    "squat": {
        "name": "Barbell Back Squat", "type": "strength",
        "muscle_groups": ["quadriceps", "glutes", "hamstrings"], "equipment": "barbell",
    },
    "front-squat": {
        "name": "Front Squat", "type": "strength",
        "muscle_groups": ["quadriceps", "glutes", "core"], "equipment": "barbell",
    },
    "leg-press": {
        "name": "Leg Press", "type": "strength",
        "muscle_groups": ["quadriceps", "glutes"], "equipment": "machine",
    },
    "romanian-deadlift": {
        "name": "Romanian Deadlift", "type": "strength",
        "muscle_groups": ["hamstrings", "glutes", "back"], "equipment": "barbell",
    },
    "leg-curl": {
        "name": "Lying Leg Curl", "type": "strength",
        "muscle_groups": ["hamstrings"], "equipment": "machine",
    },
    "calf-raise": {
        "name": "Standing Calf Raise", "type": "strength",
        "muscle_groups": ["calves"], "equipment": "machine",
    },
    # ── Core ────────────────────────────────────────────────────────
    "cable-crunch": {
        "name": "Cable Crunch", "type": "strength",
        "muscle_groups": ["core"], "equipment": "cable",
    },
    # ── Cardio ──────────────────────────────────────────────────────
    "running": {"name": "Running", "type": "cardio", "cardio_type": "running"},
    "cycling": {"name": "Cycling", "type": "cardio", "cardio_type": "cycling"},
    "rowing": {"name": "Rowing", "type": "cardio", "cardio_type": "rowing"},
}


# ═════════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS — derive lookups from EXERCISE_DB
# ═════════════════════════════════════════════════════════════════════

def get_exercise(exercise_id: str, custom_exercises=()):
    """
    Resolve an exercise id to an ExerciseInfo.

    Custom exercises are checked first so users can override built-ins.
    Returns None for unknown ids.
    """
    from overload.models import ExerciseInfo

    for custom in custom_exercises:
        if custom.id == exercise_id:
            return custom
    entry = EXERCISE_DB.get(exercise_id)
    if entry is None:
        return None
    return ExerciseInfo(
        id=exercise_id,
        name=entry["name"],
        type=entry["type"],
        muscle_groups=tuple(entry.get("muscle_groups", ())),
        equipment=entry.get("equipment"),
    )


def get_exercise_name(exercise_id: str, custom_exercises=()) -> str:
    info = get_exercise(exercise_id, custom_exercises)
    return info.name if info else exercise_id


def get_muscle_groups(exercise_id: str, custom_exercises=()) -> set:
    """Muscle groups of a strength exercise; empty for cardio or unknown ids."""
    info = get_exercise(exercise_id, custom_exercises)
    if info is None or info.type != "strength":
        return set()
    return set(info.muscle_groups)
