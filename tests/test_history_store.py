"""
Tests for the JSONL stimulus store and the JSON serializers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from liftplan.core.models import (
    DifficultyRating,
    ExperienceLevel,
    FitnessGoal,
    FlexibilityPreferences,
    MuscleGroup,
    StimulusRecord,
    UserProfile,
    WorkoutPlan,
    WorkoutSessionFeedback,
)
from liftplan.core.recovery import RecoveryEstimator
from liftplan.io.history_store import StimulusHistoryFile
from liftplan.io.serializers import (
    ValidationError,
    dict_to_user_profile,
    json_line_to_stimulus,
    parse_sets_string,
    stimulus_to_json_line,
    validate_datetime,
    workout_plan_to_dict,
)

BASE = datetime(2026, 3, 1, 18, 0)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def store(tmp_path) -> StimulusHistoryFile:
    return StimulusHistoryFile(tmp_path / "stimulus_history.jsonl")


def _stim(days: int, intensity: float = 0.5) -> StimulusRecord:
    return StimulusRecord(
        date=BASE + timedelta(days=days),
        intensity=intensity,
        volume=900.0,
        exercise_ids=["barbell_bench_press"],
    )


# ===========================================================================
# Stimulus history
# ===========================================================================

class TestStimulusHistoryFile:
    """JSONL persistence for stimulus records."""

    def test_missing_file_is_empty(self, store):
        assert not store.exists()
        assert store.load_all() == []
        assert store.load(MuscleGroup.CHEST) == []

    def test_append_creates_file(self, store):
        store.append(MuscleGroup.CHEST, _stim(0))
        assert store.exists()
        loaded = store.load(MuscleGroup.CHEST)
        assert len(loaded) == 1
        assert loaded[0].date == BASE
        assert loaded[0].intensity == 0.5
        assert loaded[0].exercise_ids == ["barbell_bench_press"]

    def test_load_filters_by_muscle_and_sorts_by_date(self, store):
        store.append(MuscleGroup.CHEST, _stim(2))
        store.append(MuscleGroup.BACK, _stim(1))
        store.append(MuscleGroup.CHEST, _stim(0))

        chest = store.load(MuscleGroup.CHEST)
        assert [r.date for r in chest] == [BASE, BASE + timedelta(days=2)]
        assert [m for m, _ in store.load_all()] == [MuscleGroup.CHEST, MuscleGroup.BACK, MuscleGroup.CHEST]

    def test_prune_only_touches_one_muscle(self, store):
        for d in range(6):
            store.append(MuscleGroup.CHEST, _stim(d))
            store.append(MuscleGroup.BACK, _stim(d))

        store.prune(MuscleGroup.CHEST, since=BASE + timedelta(days=1), max_records=3)

        assert [r.date.day for r in store.load(MuscleGroup.CHEST)] == [4, 5, 6]
        assert len(store.load(MuscleGroup.BACK)) == 6

    def test_clear(self, store):
        store.append(MuscleGroup.CHEST, _stim(0))
        store.clear()
        assert store.exists()
        assert store.load_all() == []

    def test_bad_line_reports_line_number(self, store):
        store.append(MuscleGroup.CHEST, _stim(0))
        with open(store.history_path, "a") as f:
            f.write("{not json}\n")
        with pytest.raises(ValidationError, match="line 2"):
            store.load_all()

    def test_works_as_recovery_store(self, store):
        """Chest 0.5 intensity -> 24 h window; 12 h later -> 50%."""
        store.append(MuscleGroup.CHEST, _stim(0))
        estimator = RecoveryEstimator(store, clock=lambda: BASE + timedelta(hours=12))
        assert estimator.recovery_percentage(MuscleGroup.CHEST) == pytest.approx(50.0)


# ===========================================================================
# Profile & feedback
# ===========================================================================

class TestProfileAndFeedback:
    """Sibling files next to the history file."""

    def test_profile_round_trip(self, store):
        profile = UserProfile(
            equipment=["barbell", "dumbbell"],
            avoided_exercise_ids=["barbell_deadlift"],
            experience=ExperienceLevel.ADVANCED,
            goal=FitnessGoal.POWERLIFTING,
            bodyweight_kg=82.5,
            warmup_sets_enabled=True,
            preferences=FlexibilityPreferences(warmup_enabled=True, cooldown_enabled=False),
        )
        store.save_profile(profile)
        assert store.profile_path.name == "profile.json"
        assert store.load_profile() == profile

    def test_missing_or_corrupt_profile_is_none(self, store):
        assert store.load_profile() is None
        store.profile_path.parent.mkdir(parents=True, exist_ok=True)
        store.profile_path.write_text("{broken")
        assert store.load_profile() is None

    def test_profile_defaults(self):
        profile = dict_to_user_profile({})
        assert profile.equipment == ["body weight"]
        assert profile.goal == FitnessGoal.GENERAL
        assert profile.preferences.warmup_enabled

    def test_profile_rejects_bad_enum(self):
        with pytest.raises(ValidationError, match="goal"):
            dict_to_user_profile({"goal": "bulking"})

    def test_feedback_log(self, store):
        store.append_feedback(WorkoutSessionFeedback("w1", 7.5, 0.9, DifficultyRating.CHALLENGING, BASE))
        store.append_feedback(WorkoutSessionFeedback("w2", 8.0))
        loaded = store.load_feedback()
        assert [f.workout_id for f in loaded] == ["w1", "w2"]
        assert loaded[0].difficulty == DifficultyRating.CHALLENGING
        assert loaded[0].date == BASE
        assert loaded[1].date is None


# ===========================================================================
# Serializers
# ===========================================================================

class TestSerializers:
    """Line format and set notation."""

    def test_stimulus_line_format(self):
        line = stimulus_to_json_line(MuscleGroup.LOWER_BACK, _stim(0))
        assert '"muscle":"lower_back"' in line
        assert '"date":"2026-03-01T18:00:00"' in line
        muscle, record = json_line_to_stimulus(line)
        assert muscle == MuscleGroup.LOWER_BACK
        assert record.volume == 900.0

    @pytest.mark.parametrize("line", [
        '{"date": "2026-03-01T18:00:00"}',
        '{"muscle": "wings", "date": "2026-03-01T18:00:00"}',
        '{"muscle": "chest", "date": "yesterday"}',
        '{"muscle": "chest", "date": "2026-03-01T18:00:00", "intensity": 2}',
        '[1, 2]',
    ])
    def test_invalid_stimulus_lines(self, line):
        with pytest.raises(ValidationError):
            json_line_to_stimulus(line)

    def test_aware_timestamp_becomes_naive_local_time(self):
        parsed = validate_datetime("2026-03-02T10:00:00+00:00")
        assert parsed.tzinfo is None
        assert parsed == datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert validate_datetime("2026-03-02T10:00:00") == datetime(2026, 3, 2, 10, 0)

    def test_parse_weighted_sets(self):
        sets = parse_sets_string("8x60, 8x60, 6@65.5")
        assert [(s.reps, s.weight_kg) for s in sets] == [(8, 60.0), (8, 60.0), (6, 65.5)]

    def test_parse_bodyweight_sets(self):
        sets = parse_sets_string("12,12,10")
        assert [s.reps for s in sets] == [12, 12, 10]
        assert all(s.weight_kg == 0.0 for s in sets)

    @pytest.mark.parametrize("text", ["", "abc", "8x", "8xx60", " , "])
    def test_parse_rejects_garbage(self, text):
        with pytest.raises(ValidationError):
            parse_sets_string(text)

    def test_empty_plan_dict(self):
        d = workout_plan_to_dict(WorkoutPlan.empty())
        assert d["exercises"] == []
        assert d["time_breakdown"]["total_minutes"] == 0
        assert d["target_exercise_count"] == 0
