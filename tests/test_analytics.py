"""
Tests for history ingestion, outlier filtering and exercise analysis.
Run: pytest tests/ -v
"""
from datetime import datetime

import pytest

from conftest import NOW, make_session, weekly_sessions


# ═══════════════════════════════════════════════════════════════════════
# OUTLIER FILTER
# ═══════════════════════════════════════════════════════════════════════

class TestFilterOutliers:
    """Mean ± 2σ rule over a keyed value."""

    def test_drops_mis_keyed_weight(self):
        from overload.outliers import filter_outliers
        values = [100] * 9 + [300]
        assert filter_outliers(values, key=lambda v: v) == [100] * 9

    def test_fewer_than_three_items_unchanged(self):
        from overload.outliers import filter_outliers
        assert filter_outliers([10, 500], key=lambda v: v) == [10, 500]

    def test_zero_variance_unchanged(self):
        from overload.outliers import filter_outliers
        assert filter_outliers([50, 50, 50, 50], key=lambda v: v) == [50, 50, 50, 50]

    def test_keeps_order_and_objects(self):
        from overload.outliers import filter_outliers
        from overload.models import StrengthSet
        sets = [StrengthSet(100, 5)] * 9 + [StrengthSet(1000, 5)]
        kept = filter_outliers(sets, key=lambda s: s.weight)
        assert len(kept) == 9
        assert all(s.weight == 100 for s in kept)


# ═══════════════════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════════════════

class TestRecords:
    """Malformed numbers fail fast at construction."""

    def test_negative_weight_rejected(self):
        from overload.models import StrengthSet
        with pytest.raises(AssertionError):
            StrengthSet(-5, 5)

    def test_mood_out_of_range_rejected(self):
        from overload.models import Session
        with pytest.raises(AssertionError):
            Session(id="s", started_at=NOW, mood=6)

    def test_sequences_frozen_to_tuples(self):
        from overload.models import StrengthExercise, StrengthSet
        ex = StrengthExercise("squat", [StrengthSet(100, 5)])
        assert isinstance(ex.sets, tuple)
        assert ex.kind == "strength"


# ═══════════════════════════════════════════════════════════════════════
# HISTORY INGESTION
# ═══════════════════════════════════════════════════════════════════════

class TestParseTime:

    def test_zulu_suffix_to_naive_utc(self):
        from overload.history import parse_time
        assert parse_time("2026-03-01T10:00:00Z") == datetime(2026, 3, 1, 10, 0, 0)

    def test_offset_converted_to_utc(self):
        from overload.history import parse_time
        assert parse_time("2026-03-01T12:00:00+02:00") == datetime(2026, 3, 1, 10, 0, 0)

    def test_none_and_empty(self):
        from overload.history import parse_time
        assert parse_time(None) is None
        assert parse_time("") is None


class TestSnapshotFromDict:

    def _raw(self):
        return {
            "as_of": "2026-03-02T12:00:00Z",
            "user": {"experience_level": "beginner", "weight_unit": "kg", "weekly_workout_goal": 3},
            "sessions": [
                {
                    "id": "a",
                    "started_at": "2026-03-01T10:00:00Z",
                    "completed_at": "2026-03-01T11:00:00Z",
                    "mood": 4,
                    "exercises": [
                        {"exercise_id": "squat", "sets": [{"weight": 100, "reps": 5}, {"weight": 100, "reps": 5}]},
                        {"exercise_id": "running", "type": "cardio", "duration_seconds": 600},
                    ],
                },
            ],
            "weight_entries": [{"date": "2026-02-20", "weight": 80}],
            "cycle": {"phases": [{"type": "accumulation", "duration_weeks": 3}], "current_week_in_phase": 2},
            "target_reps": {"squat": 5},
        }

    def test_builds_typed_snapshot(self):
        from overload.history import snapshot_from_dict
        from overload.models import CardioExercise, StrengthExercise
        snap = snapshot_from_dict(self._raw())
        assert snap.as_of == datetime(2026, 3, 2, 12, 0, 0)
        assert snap.user.weight_unit == "kg"
        assert snap.user.weekly_workout_goal == 3
        session = snap.sessions[0]
        assert session.is_completed
        assert isinstance(session.exercises[0], StrengthExercise)
        assert isinstance(session.exercises[1], CardioExercise)
        assert snap.weight_entries[0].unit == "kg"
        assert snap.cycle.current_phase.type == "accumulation"
        assert snap.target_reps == (("squat", 5),)
        assert snap.target_reps_for("squat", 10) == 5

    def test_session_without_start_raises(self):
        from overload.history import session_from_dict
        with pytest.raises(ValueError):
            session_from_dict({"id": "x"})

    def test_unknown_exercise_kind_raises(self):
        from overload.history import session_from_dict
        with pytest.raises(ValueError):
            session_from_dict({
                "id": "x", "started_at": "2026-03-01T10:00:00Z",
                "exercises": [{"exercise_id": "yoga-flow", "type": "yoga"}],
            })

    def test_unknown_weight_unit_raises(self):
        from overload.history import snapshot_from_dict
        raw = self._raw()
        raw["user"]["weight_unit"] = "stone"
        with pytest.raises(ValueError):
            snapshot_from_dict(raw)


class TestEnvDefaults:
    """OVERLOAD_* environment defaults never break import."""

    @pytest.mark.parametrize("raw, expected", [
        ("4", 4), (" 3 ", 3), ("0", None), ("", None), ("three", None), ("-2", None), ("2.5", None),
    ])
    def test_weekly_goal_parsing(self, monkeypatch, raw, expected):
        from overload.config import env_positive_int
        monkeypatch.setenv("OVERLOAD_WEEKLY_GOAL", raw)
        assert env_positive_int("OVERLOAD_WEEKLY_GOAL") == expected

    def test_unset_is_none(self, monkeypatch):
        from overload.config import env_positive_int
        monkeypatch.delenv("OVERLOAD_WEEKLY_GOAL", raising=False)
        assert env_positive_int("OVERLOAD_WEEKLY_GOAL") is None

    def test_garbage_value_falls_back_on_import(self, monkeypatch):
        import importlib
        import overload.config as config
        monkeypatch.setenv("OVERLOAD_WEEKLY_GOAL", "three")
        try:
            assert importlib.reload(config).DEFAULT_WEEKLY_GOAL is None
        finally:
            monkeypatch.delenv("OVERLOAD_WEEKLY_GOAL")
            importlib.reload(config)


class TestSessionsToDataframe:

    def test_one_row_per_strength_set(self):
        from overload.history import sessions_to_dataframe, SET_COLUMNS
        sessions = [
            make_session("b", 1, {"squat": [(100, 5)] * 3}),
            make_session("a", 8, {"squat": [(95, 5)] * 2, "bench-press": [(60, 8)]}),
        ]
        df = sessions_to_dataframe(sessions)
        assert list(df.columns) == SET_COLUMNS
        assert len(df) == 6
        # Oldest session first
        assert df.iloc[0]["session_id"] == "a"

    def test_empty_history(self):
        from overload.history import sessions_to_dataframe
        assert sessions_to_dataframe([]).empty


class TestRecentSessionSets:

    def test_newest_first_and_skips_other_exercises(self):
        from overload.history import recent_session_sets
        sessions = [
            make_session("old", 10, {"squat": [(90, 5)]}),
            make_session("new", 2, {"squat": [(100, 5)]}),
            make_session("bench", 1, {"bench-press": [(60, 8)]}),
            make_session("open", 0.5, {"squat": [(200, 5)]}, completed=False),
        ]
        recent = recent_session_sets(sessions, "squat")
        assert [sets[0].weight for sets in recent] == [100, 90]


# ═══════════════════════════════════════════════════════════════════════
# CORE MATH
# ═══════════════════════════════════════════════════════════════════════

class TestCoreMath:

    def test_epley_single_is_weight(self):
        from overload.analytics import epley_1rm
        assert epley_1rm(100, 1) == 100

    def test_epley_formula(self):
        from overload.analytics import epley_1rm
        assert epley_1rm(100, 10) == pytest.approx(133.333, rel=1e-4)

    def test_linear_fit_perfect_line(self):
        from overload.analytics import linear_fit
        slope, intercept, r2 = linear_fit([1, 2, 3, 4])
        assert slope == pytest.approx(1.0)
        assert intercept == pytest.approx(1.0)
        assert r2 == pytest.approx(1.0)

    def test_linear_fit_flat_series_has_zero_r2(self):
        from overload.analytics import linear_fit
        assert linear_fit([5, 5, 5])[2] == 0.0

    def test_trend_percent_of_mean(self):
        from overload.analytics import trend_percent
        assert trend_percent([100, 102, 104, 106, 108]) == pytest.approx(2 / 104 * 100)


# ═══════════════════════════════════════════════════════════════════════
# EXERCISE ANALYSIS
# ═══════════════════════════════════════════════════════════════════════

class TestAnalyzeExercise:
    """Weekly series and progress classification."""

    def test_linear_gain_is_improving(self):
        from overload.analytics import analyze_exercise
        sessions = weekly_sessions("squat", [100, 102, 104, 106, 108])
        a = analyze_exercise("squat", sessions, now=NOW)
        assert a.progress_status == "improving"
        assert a.exercise_name == "Barbell Back Squat"
        assert [w.week_ago for w in a.weekly_performance] == [0, 1, 2, 3, 4]
        assert a.weekly_performance[0].max_weight == 108
        assert a.estimated_1rm_trend == pytest.approx(1.923, abs=1e-3)

    def test_flat_series_is_plateau(self):
        from overload.analytics import analyze_exercise
        sessions = weekly_sessions("squat", [100, 100, 101, 100, 100])
        assert analyze_exercise("squat", sessions, now=NOW).progress_status == "plateau"

    def test_plateau_detection_can_be_disabled(self):
        from overload.analytics import analyze_exercise
        sessions = weekly_sessions("squat", [100, 100, 101, 100, 100])
        a = analyze_exercise("squat", sessions, enable_plateau_detection=False, now=NOW)
        assert a.progress_status == "improving"

    def test_flat_but_gapped_weeks_not_plateau(self):
        from overload.analytics import analyze_exercise
        sessions = [
            make_session(f"s{d}", d, {"squat": [(100, 5)] * 3})
            for d in (1, 15, 29)
        ]
        a = analyze_exercise("squat", sessions, now=NOW)
        assert [w.week_ago for w in a.weekly_performance] == [0, 2, 4]
        assert a.progress_status == "improving"

    def test_falling_weights_are_declining(self):
        from overload.analytics import analyze_exercise
        sessions = weekly_sessions("squat", [120, 115, 110, 105, 100])
        a = analyze_exercise("squat", sessions, now=NOW)
        assert a.progress_status == "declining"
        assert a.weight_trend < 0

    def test_single_week_is_insufficient(self):
        from overload.analytics import analyze_exercise
        sessions = [make_session("s", 1, {"squat": [(100, 5)] * 3})]
        a = analyze_exercise("squat", sessions, now=NOW)
        assert a.progress_status == "insufficient_data"
        assert a.estimated_1rm_trend == 0.0

    def test_unknown_exercise_with_no_history(self):
        from overload.analytics import analyze_exercise
        a = analyze_exercise("brand-new-lift", [], now=NOW)
        assert a.progress_status == "insufficient_data"
        assert a.weekly_performance == ()
        assert a.exercise_name == "brand-new-lift"

    def test_outlier_set_ignored_in_weekly_max(self):
        from overload.analytics import analyze_exercise
        sessions = [
            make_session("a", 1, {"squat": [(100, 5)] * 9 + [(1000, 5)]}),
            make_session("b", 8, {"squat": [(100, 5)] * 3}),
        ]
        a = analyze_exercise("squat", sessions, now=NOW)
        assert a.weekly_performance[0].max_weight == 100

    def test_incomplete_and_old_sessions_ignored(self):
        from overload.analytics import analyze_exercise
        sessions = [
            make_session("open", 1, {"squat": [(200, 5)]}, completed=False),
            make_session("ancient", 90, {"squat": [(50, 5)]}),
            make_session("ok", 8, {"squat": [(100, 5)]}),
        ]
        a = analyze_exercise("squat", sessions, now=NOW)
        assert [w.max_weight for w in a.weekly_performance] == [100]

    def test_matches_by_id_not_name(self):
        from overload.analytics import analyze_exercise
        sessions = weekly_sessions("front-squat", [100, 102, 104])
        assert analyze_exercise("squat", sessions, now=NOW).weekly_performance == ()

    def test_recent_sessions_summary(self):
        from overload.analytics import analyze_exercise
        sessions = weekly_sessions("squat", [100, 102, 104, 106, 108, 110, 112])
        a = analyze_exercise("squat", sessions, now=NOW)
        assert len(a.recent_sessions) == 5
        assert a.recent_sessions[0].max_weight == 112


class TestPlateauSignals:
    """Session-level stall indicators, newest session first."""

    def _analyze(self, lifts, target_reps=None, **kwargs):
        from overload.analytics import analyze_exercise
        sessions = [
            make_session(f"s{d}", d, {"bench-press": [(w, r)] * 3})
            for d, (w, r) in zip((1, 4, 7, 10, 13, 16), lifts)
        ]
        return analyze_exercise("bench-press", sessions, target_reps=target_reps, now=NOW, **kwargs)

    def test_same_weight_four_sessions(self):
        a = self._analyze([(135, 10)] * 4, target_reps=10)
        assert a.plateau_signals.same_weight
        assert a.plateau_signals.stalled_1rm
        assert not a.plateau_signals.failed_rep_targets
        assert a.plateau_signals.count == 2

    def test_varying_weights_no_same_weight(self):
        a = self._analyze([(145, 10), (140, 10), (135, 10)], target_reps=10)
        assert not a.plateau_signals.same_weight
        assert not a.plateau_signals.stalled_1rm

    def test_failed_rep_targets(self):
        a = self._analyze([(145, 7), (145, 6), (145, 8)], target_reps=10)
        assert a.plateau_signals.failed_rep_targets

    def test_one_rep_short_is_not_a_miss(self):
        a = self._analyze([(135, 9), (135, 11), (135, 10)], target_reps=10)
        assert not a.plateau_signals.failed_rep_targets

    def test_failed_reps_needs_a_target(self):
        a = self._analyze([(145, 3), (145, 3), (145, 3)])
        assert not a.plateau_signals.failed_rep_targets

    def test_stalled_1rm_with_shifting_weight(self):
        # Heavier for fewer reps keeps the Epley estimate within 3%
        a = self._analyze([(100, 10), (105, 8), (110, 6), (100, 10)])
        assert a.plateau_signals.stalled_1rm
        assert not a.plateau_signals.same_weight

    def test_disabled_detection_reports_nothing(self):
        a = self._analyze([(135, 5)] * 6, target_reps=10, enable_plateau_detection=False)
        assert a.plateau_signals.count == 0

    def test_signals_do_not_change_trend_status(self):
        from overload.analytics import analyze_exercise
        sessions = weekly_sessions("squat", [100, 102, 104, 106, 108])
        a = analyze_exercise("squat", sessions, target_reps=10, now=NOW)
        assert a.progress_status == "improving"
        assert a.plateau_signals.failed_rep_targets

    def test_progress_table_counts_signals(self):
        from overload.analytics import analyze_all, progress_table
        table = progress_table(analyze_all(weekly_sessions("squat", [100] * 6), now=NOW))
        assert table.iloc[0]["plateau_signals"] == 2

    def test_analyze_all_uses_per_exercise_targets(self):
        from overload.analytics import analyze_all
        sessions = weekly_sessions("squat", [100, 102, 104]) + weekly_sessions("bench-press", [60, 62, 64])
        result = analyze_all(sessions, now=NOW, target_reps={"squat": 10})
        assert result["squat"].plateau_signals.failed_rep_targets
        assert not result["bench-press"].plateau_signals.failed_rep_targets


class TestAnalyzeAll:

    def test_every_strength_exercise_analyzed(self):
        from overload.analytics import analyze_all
        sessions = weekly_sessions("squat", [100, 102, 104]) + weekly_sessions("bench-press", [60, 60, 60])
        result = analyze_all(sessions, now=NOW)
        assert set(result) == {"squat", "bench-press"}
        assert result["bench-press"].progress_status == "plateau"

    def test_progress_table_most_negative_first(self):
        from overload.analytics import analyze_all, progress_table
        sessions = weekly_sessions("squat", [100, 102, 104]) + weekly_sessions("deadlift", [140, 130, 120])
        table = progress_table(analyze_all(sessions, now=NOW))
        assert list(table["exercise_id"]) == ["deadlift", "squat"]
        assert table.iloc[0]["status"] == "declining"


class TestPlateauHistoryGate:

    def test_ten_weekly_sessions_enough(self):
        from overload.analytics import has_enough_history_for_plateau_detection
        sessions = weekly_sessions("squat", [100] * 10)
        assert has_enough_history_for_plateau_detection(sessions, NOW)

    def test_many_sessions_in_few_weeks_not_enough(self):
        from overload.analytics import has_enough_history_for_plateau_detection
        sessions = [make_session(f"s{i}", 1 + i, {"squat": [(100, 5)]}) for i in range(12)]
        assert not has_enough_history_for_plateau_detection(sessions, NOW)

    def test_short_history_not_enough(self):
        from overload.analytics import has_enough_history_for_plateau_detection
        assert not has_enough_history_for_plateau_detection(weekly_sessions("squat", [100] * 5), NOW)
