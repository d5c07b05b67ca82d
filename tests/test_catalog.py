"""
Tests for the exercise catalog and its classification helpers.
"""

import pytest

from liftplan.core.catalog import (
    ExerciseCatalog,
    can_perform,
    classify_movement,
    equipment_archetype,
    is_compound_exercise,
    load_catalog,
    muscle_groups_for_exercise,
    primary_muscles,
    tracking_type_for,
)
from liftplan.core.models import (
    EquipmentArchetype,
    ExerciseRecord,
    MovementType,
    MuscleGroup,
    TrackingType,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def catalog() -> ExerciseCatalog:
    return load_catalog(include_user=False)


def _write(path, text: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


# ===========================================================================
# Muscle mapping
# ===========================================================================

class TestMuscleMapping:
    """Target first, then synergists, then the body-part fallback."""

    def test_bench_press(self, catalog):
        bench = catalog.lookup("barbell_bench_press")
        assert muscle_groups_for_exercise(bench) == [
            MuscleGroup.CHEST, MuscleGroup.SHOULDERS, MuscleGroup.TRICEPS,
        ]
        assert primary_muscles(bench) == [MuscleGroup.CHEST]

    def test_deadlift_targets_lower_back(self, catalog):
        deadlift = catalog.lookup("barbell_deadlift")
        assert muscle_groups_for_exercise(deadlift) == [
            MuscleGroup.LOWER_BACK, MuscleGroup.HAMSTRINGS, MuscleGroup.GLUTES, MuscleGroup.TRAPEZIUS,
        ]

    def test_body_part_fallback(self):
        curl = ExerciseRecord("mystery_curl", "Mystery Curl", body_part="upper arms")
        assert muscle_groups_for_exercise(curl) == [MuscleGroup.BICEPS]
        hips = ExerciseRecord("hip_adduction", "Hip Adduction", body_part="hips")
        assert muscle_groups_for_exercise(hips) == [MuscleGroup.ADDUCTORS]

    def test_unmapped_exercise_falls_back_to_abs(self):
        assert muscle_groups_for_exercise(ExerciseRecord("thing", "Thing")) == [MuscleGroup.ABS]

    def test_candidates_follow_catalog_order(self, catalog):
        chest = [r.exercise_id for r in catalog.candidates_for(MuscleGroup.CHEST)]
        assert chest[0] == "barbell_bench_press"
        assert "push_up" in chest
        assert "barbell_deadlift" in [r.exercise_id for r in catalog.candidates_for(MuscleGroup.LOWER_BACK)]
        assert catalog.candidates_for(MuscleGroup.NECK) == []


# ===========================================================================
# Movement, equipment & tracking
# ===========================================================================

class TestClassification:
    """Derived attributes used by timing and set schemes."""

    @pytest.mark.parametrize("exercise_id, movement", [
        ("barbell_bench_press", MovementType.COMPOUND),
        ("cable_fly", MovementType.ISOLATION),
        ("kettlebell_swing", MovementType.COMPOUND),  # timing keyword
        ("plank", MovementType.CORE),
        ("rowing_machine", MovementType.CARDIO),
    ])
    def test_classify_movement(self, catalog, exercise_id, movement):
        assert classify_movement(catalog.lookup(exercise_id)) == movement

    def test_inferred_movement(self):
        assert classify_movement(ExerciseRecord("sprint", "Sprint", body_part="cardio")) == MovementType.CARDIO
        assert classify_movement(ExerciseRecord("crunch", "Crunch", body_part="waist")) == MovementType.CORE

    def test_swing_is_not_compound_for_set_schemes(self, catalog):
        assert not is_compound_exercise(catalog.lookup("kettlebell_swing"))
        assert is_compound_exercise(catalog.lookup("barbell_back_squat"))

    @pytest.mark.parametrize("text, archetype", [
        ("barbell", EquipmentArchetype.BARBELL),
        ("Olympic Barbell", EquipmentArchetype.BARBELL),
        ("dumbbell", EquipmentArchetype.DUMBBELL),
        ("cable", EquipmentArchetype.CABLE),
        ("kettlebell", EquipmentArchetype.KETTLEBELL),
        ("resistance band", EquipmentArchetype.BAND),
        ("medicine ball", EquipmentArchetype.SPECIALTY),
        ("body weight", EquipmentArchetype.BODYWEIGHT),
        ("something else", EquipmentArchetype.BODYWEIGHT),
    ])
    def test_equipment_archetype(self, text, archetype):
        assert equipment_archetype(text) == archetype

    def test_tracking_type(self, catalog):
        assert tracking_type_for(catalog.lookup("barbell_bench_press")) == TrackingType.REPS_WEIGHT
        assert tracking_type_for(catalog.lookup("push_up")) == TrackingType.REPS_ONLY
        assert tracking_type_for(catalog.lookup("plank")) == TrackingType.HOLD_TIME
        assert tracking_type_for(ExerciseRecord("air_squat", "Air Squat")) == TrackingType.REPS_ONLY

    def test_can_perform(self, catalog):
        bench = catalog.lookup("barbell_bench_press")
        assert can_perform(catalog.lookup("push_up"), [])
        assert not can_perform(bench, ["dumbbell"])
        assert can_perform(bench, ["Olympic Barbell"])


# ===========================================================================
# Loading
# ===========================================================================

class TestLoadCatalog:
    """YAML catalog loading and user overrides."""

    def test_lookup_unknown_raises(self, catalog):
        assert "barbell_bench_press" in catalog
        with pytest.raises(KeyError, match="no_such_lift"):
            catalog.lookup("no_such_lift")

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            ExerciseCatalog([ExerciseRecord("a", "A"), ExerciseRecord("a", "A again")])

    def test_custom_file(self, tmp_path):
        path = _write(tmp_path / "mine.yaml", (
            "exercises:\n"
            "  - {id: goblet_squat, name: Goblet Squat, body_part: thighs, target: quads,"
            " equipment: kettlebell, type: strength}\n"
        ))
        custom = load_catalog(path)
        assert len(custom) == 1
        record = custom.lookup("goblet_squat")
        assert record.equipment == "kettlebell"
        assert record.movement_type is None
        assert classify_movement(record) == MovementType.COMPOUND

    def test_missing_fields(self, tmp_path):
        path = _write(tmp_path / "bad.yaml", "exercises:\n  - {id: nameless}\n")
        with pytest.raises(ValueError, match="missing fields"):
            load_catalog(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_catalog(tmp_path / "absent.yaml")

    def test_user_catalog_merges_by_id(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        _write(tmp_path / ".liftplan" / "exercises.yaml", (
            "exercises:\n"
            "  - {id: push_up, name: Push-Up, equipment: weighted vest}\n"
            "  - {id: sandbag_carry, name: Sandbag Carry, body_part: waist, target: abs}\n"
        ))
        merged = load_catalog()
        assert merged.lookup("push_up").equipment == "weighted vest"
        assert merged.lookup("push_up").target == "pectorals"
        assert "sandbag_carry" in merged
        assert len(merged) == len(load_catalog(include_user=False)) + 1

    def test_broken_user_catalog_is_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        _write(tmp_path / ".liftplan" / "exercises.yaml", "exercises: {not: a list}\n")
        assert len(load_catalog()) == len(load_catalog(include_user=False))
