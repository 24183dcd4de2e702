"""
Overload Analytics — Data models.

Raw history records (sessions, sets, weight log) and the derived records
the engine returns. Everything is frozen and sequence fields are stored as
tuples, so a record never changes after construction.

Malformed numbers are a caller bug, not a data-quality issue: constructors
assert instead of coercing.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Union, get_args

WeightUnit = Literal["lbs", "kg"]
ExperienceLevel = Literal["beginner", "intermediate", "advanced"]
WorkoutGoal = Literal["build", "lose", "maintain"]
ProgressStatus = Literal["improving", "plateau", "declining", "insufficient_data"]
Confidence = Literal["high", "medium", "low"]
DeloadUrgency = Literal["immediate", "soon", "optional"]
DeloadStrategyType = Literal["scheduled", "reactive", "hybrid"]
DeloadTriggerType = Literal[
    "plateau_detected",
    "performance_decline",
    "mood_decline",
    "max_weeks_reached",
    "fatigue_accumulation",
]


def _freeze(obj, name: str) -> None:
    object.__setattr__(obj, name, tuple(getattr(obj, name)))


# ═════════════════════════════════════════════════════════════════════
# 1. RAW HISTORY
# ═════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StrengthSet:
    weight: float
    reps: int

    def __post_init__(self) -> None:
        assert isinstance(self.weight, (int, float)) and self.weight >= 0, \
            f"set weight must be a non-negative number, got {self.weight!r}"
        assert isinstance(self.reps, int) and self.reps >= 0, \
            f"set reps must be a non-negative integer, got {self.reps!r}"


@dataclass(frozen=True)
class StrengthExercise:
    exercise_id: str
    sets: tuple[StrengthSet, ...] = ()
    kind: Literal["strength"] = field(default="strength", init=False)

    def __post_init__(self) -> None:
        _freeze(self, "sets")


@dataclass(frozen=True)
class CardioExercise:
    """Logged for completeness; every calculation skips it."""
    exercise_id: str
    duration_seconds: float = 0.0
    distance: float | None = None
    kind: Literal["cardio"] = field(default="cardio", init=False)


PerformedExercise = Union[StrengthExercise, CardioExercise]


@dataclass(frozen=True)
class Session:
    """One workout occurrence. Completed iff ``completed_at`` is set."""
    id: str
    started_at: datetime
    completed_at: datetime | None = None
    template_id: str | None = None
    mood: int | None = None
    exercises: tuple[PerformedExercise, ...] = ()

    def __post_init__(self) -> None:
        assert self.mood is None or 1 <= self.mood <= 5, \
            f"mood must be between 1 and 5, got {self.mood!r}"
        _freeze(self, "exercises")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def strength_sets(self, exercise_id: str) -> list[StrengthSet]:
        """All strength sets logged for ``exercise_id`` in this session."""
        return [
            s
            for ex in self.exercises
            if isinstance(ex, StrengthExercise) and ex.exercise_id == exercise_id
            for s in ex.sets
        ]

    @property
    def set_count(self) -> int:
        return sum(len(ex.sets) for ex in self.exercises if isinstance(ex, StrengthExercise))


@dataclass(frozen=True)
class WeightEntry:
    date: datetime
    weight: float
    unit: WeightUnit = "lbs"

    def __post_init__(self) -> None:
        assert self.weight > 0, f"body weight must be positive, got {self.weight!r}"


@dataclass(frozen=True)
class ExerciseInfo:
    id: str
    name: str
    type: Literal["strength", "cardio"] = "strength"
    muscle_groups: tuple[str, ...] = ()
    equipment: str | None = None

    def __post_init__(self) -> None:
        _freeze(self, "muscle_groups")


@dataclass(frozen=True)
class UserContext:
    experience_level: ExperienceLevel = "intermediate"
    weight_unit: WeightUnit = "lbs"
    workout_goal: WorkoutGoal = "build"
    weekly_workout_goal: int | None = None


@dataclass(frozen=True)
class PhaseConfig:
    """A training-cycle phase (accumulation, intensification, deload, ...)."""
    type: str
    duration_weeks: int = 1
    rep_range_min: int | None = None
    rep_range_max: int | None = None


@dataclass(frozen=True)
class CycleState:
    phases: tuple[PhaseConfig, ...]
    current_phase_index: int
    current_week_in_phase: int
    cycle_start_date: datetime | None = None

    def __post_init__(self) -> None:
        _freeze(self, "phases")

    @property
    def current_phase(self) -> PhaseConfig:
        return self.phases[self.current_phase_index]


@dataclass(frozen=True)
class TrainingSnapshot:
    """
    Everything the engine needs, assembled once by the caller.

    ``target_reps`` accepts a mapping or (exercise_id, reps) pairs and is
    stored as a sorted tuple of pairs; read it with ``target_reps_for``.
    """
    sessions: tuple[Session, ...]
    as_of: datetime
    user: UserContext = UserContext()
    weight_entries: tuple[WeightEntry, ...] = ()
    custom_exercises: tuple[ExerciseInfo, ...] = ()
    cycle: CycleState | None = None
    target_reps: tuple[tuple[str, int], ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "sessions")
        _freeze(self, "weight_entries")
        _freeze(self, "custom_exercises")
        pairs = self.target_reps.items() if isinstance(self.target_reps, dict) else self.target_reps
        object.__setattr__(self, "target_reps", tuple(sorted((str(k), int(v)) for k, v in pairs)))

    def target_reps_for(self, exercise_id: str, default: int) -> int:
        return dict(self.target_reps).get(exercise_id, default)


# ═════════════════════════════════════════════════════════════════════
# 2. DERIVED RECORDS
# ═════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WeeklyPerformance:
    week_ago: int  # 0 = this week, 1 = last week, ...
    max_weight: float
    sessions: int = 1
    avg_weight: float = 0.0
    avg_reps: float = 0.0
    total_sets: int = 0
    estimated_1rm: float = 0.0


@dataclass(frozen=True)
class RecentSessionSummary:
    date: datetime
    max_weight: float
    avg_reps: float
    estimated_1rm: float


@dataclass(frozen=True)
class PlateauSignals:
    """Session-level stall indicators, reported alongside the trend status."""
    same_weight: bool = False
    failed_rep_targets: bool = False
    stalled_1rm: bool = False

    @property
    def count(self) -> int:
        return sum((self.same_weight, self.failed_rep_targets, self.stalled_1rm))


@dataclass(frozen=True)
class ExerciseAnalysis:
    exercise_id: str
    exercise_name: str
    weekly_performance: tuple[WeeklyPerformance, ...]
    estimated_1rm_trend: float  # % of mean weekly max, per week
    progress_status: ProgressStatus
    weight_trend: float = 0.0
    reps_trend: float = 0.0
    recent_sessions: tuple[RecentSessionSummary, ...] = ()
    plateau_signals: PlateauSignals = PlateauSignals()

    def __post_init__(self) -> None:
        _freeze(self, "weekly_performance")
        _freeze(self, "recent_sessions")


@dataclass(frozen=True)
class FactorResult:
    multiplier: float
    statistic: float | str | None = None


@dataclass(frozen=True)
class PersonalizationFactor:
    name: str
    value: float
    reasoning: str


@dataclass(frozen=True)
class PersonalizedProgressionConfig:
    baseline: float
    increment: float
    composite_multiplier: float
    factors: tuple[PersonalizationFactor, ...]
    confidence: Confidence

    def __post_init__(self) -> None:
        _freeze(self, "factors")


@dataclass(frozen=True)
class ProgressionContext:
    exercise_id: str
    analysis: ExerciseAnalysis
    recent_session_sets: tuple[tuple[StrengthSet, ...], ...]
    target_reps: int
    user: UserContext
    sessions: tuple[Session, ...]
    now: datetime
    weight_entries: tuple[WeightEntry, ...] = ()
    custom_exercises: tuple[ExerciseInfo, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "recent_session_sets", tuple(tuple(s) for s in self.recent_session_sets)
        )
        _freeze(self, "sessions")
        _freeze(self, "weight_entries")
        _freeze(self, "custom_exercises")


@dataclass(frozen=True)
class DeloadTrigger:
    type: DeloadTriggerType
    threshold: float
    description: str = ""


@dataclass(frozen=True)
class DeloadStrategy:
    type: DeloadStrategyType
    triggers: tuple[DeloadTrigger, ...]
    max_weeks_without_deload: int = 8

    def __post_init__(self) -> None:
        _freeze(self, "triggers")

    @classmethod
    def from_dict(cls, data: dict) -> "DeloadStrategy":
        if data.get("type") not in get_args(DeloadStrategyType):
            raise ValueError(f"unknown deload strategy type {data.get('type')!r}")
        return cls(
            type=data["type"],
            triggers=tuple(DeloadTrigger(**t) for t in data["triggers"]),
            max_weeks_without_deload=data.get("max_weeks_without_deload", 8),
        )


@dataclass(frozen=True)
class DeloadContext:
    sessions: tuple[Session, ...]
    weeks_since_last_deload: int
    now: datetime
    custom_exercises: tuple[ExerciseInfo, ...] = ()
    current_phase_is_deload: bool = False

    def __post_init__(self) -> None:
        _freeze(self, "sessions")
        _freeze(self, "custom_exercises")


@dataclass(frozen=True)
class DeloadRecommendation:
    should_deload: bool
    urgency: DeloadUrgency | None
    reasons: tuple[str, ...] = ()
    triggered_by: frozenset = frozenset()
    suggested_action: str | None = None

    def __post_init__(self) -> None:
        _freeze(self, "reasons")
        object.__setattr__(self, "triggered_by", frozenset(self.triggered_by))


@dataclass(frozen=True)
class ExerciseSuggestion:
    exercise_id: str
    suggested_weight: float
    suggested_reps: int
    reasoning: str
    confidence: Confidence
    progress_status: str
