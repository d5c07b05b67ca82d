"""
Tests for the dynamic rep-range pipeline and the two-tier cache.

A fake monotonic clock drives expiry so TTL behaviour is deterministic.
"""

import threading

import pytest

from liftplan.core.cache import (
    CachePerformanceMetrics,
    ConversionCacheKey,
    RepRangeCache,
    RepRangeCacheKey,
    TTLCache,
    feedback_hash,
    stable_hash,
)
from liftplan.core.models import (
    DifficultyRating,
    ExerciseRecord,
    FitnessGoal,
    MovementType,
    RecoveryStatus,
    RepRange,
    SessionPhase,
    WorkoutSessionFeedback,
)
from liftplan.core.rep_range import calculate_rep_range, calculate_set_count

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


SQUAT = ExerciseRecord(exercise_id="barbell_back_squat", name="Barbell Back Squat", body_part="thighs", equipment="barbell")
CURL = ExerciseRecord(exercise_id="dumbbell_curl", name="Dumbbell Curl", body_part="upper arms", equipment="dumbbell")
PLANK = ExerciseRecord(
    exercise_id="plank", name="Front Plank", body_part="waist", movement_type=MovementType.CORE
)


def _feedback(difficulty: DifficultyRating = DifficultyRating.TOO_HARD) -> WorkoutSessionFeedback:
    return WorkoutSessionFeedback(workout_id="w1", overall_rpe=9.0, difficulty=difficulty)


# ===========================================================================
# Rep-range pipeline
# ===========================================================================

class TestRepRangePipeline:
    """Pure pipeline: goal -> phase -> movement -> recovery -> feedback."""

    def test_general_volume_compound(self):
        """(8,15) -> volume (10,15) -> compound (9,13) -> moderate unchanged."""
        r = calculate_rep_range(
            FitnessGoal.GENERAL, SessionPhase.VOLUME, MovementType.COMPOUND, RecoveryStatus.MODERATE
        )
        assert r == RepRange(9, 13)

    def test_strength_fresh_compound(self):
        """(3,6) -> strength (3,4) -> compound (2,3) -> fresh (1,3)."""
        r = calculate_rep_range(
            FitnessGoal.STRENGTH, SessionPhase.STRENGTH, MovementType.COMPOUND, RecoveryStatus.FRESH
        )
        assert r == RepRange(1, 3)

    def test_circuit_fatigued_isolation_too_hard(self):
        """(15,25) -> conditioning (20,30) -> isolation (21,32) -> fatigued (23,35) -> too hard (25,38)."""
        r = calculate_rep_range(
            FitnessGoal.CIRCUIT_TRAINING,
            SessionPhase.CONDITIONING,
            MovementType.ISOLATION,
            RecoveryStatus.FATIGUED,
            DifficultyRating.TOO_HARD,
        )
        assert r == RepRange(25, 38)

    def test_hypertrophy_core_too_easy(self):
        """(6,15) -> volume (9,15) -> core (12,20) -> too easy (10,18)."""
        r = calculate_rep_range(
            FitnessGoal.HYPERTROPHY,
            SessionPhase.VOLUME,
            MovementType.CORE,
            RecoveryStatus.MODERATE,
            DifficultyRating.TOO_EASY,
        )
        assert r == RepRange(10, 18)

    def test_aliased_goal_uses_normalized_base(self):
        args = (SessionPhase.CONDITIONING, MovementType.CARDIO, RecoveryStatus.MODERATE)
        assert calculate_rep_range(FitnessGoal.ENDURANCE, *args) == \
            calculate_rep_range(FitnessGoal.CIRCUIT_TRAINING, *args)

    @pytest.mark.parametrize("goal, phase, expected", [
        (FitnessGoal.STRENGTH, SessionPhase.STRENGTH, 4),
        (FitnessGoal.STRENGTH, SessionPhase.VOLUME, 3),
        (FitnessGoal.POWER, SessionPhase.STRENGTH, 4),
        (FitnessGoal.POWERLIFTING, SessionPhase.CONDITIONING, 3),
        (FitnessGoal.HYPERTROPHY, SessionPhase.VOLUME, 4),
        (FitnessGoal.HYPERTROPHY, SessionPhase.STRENGTH, 3),
        (FitnessGoal.GENERAL, SessionPhase.VOLUME, 3),
    ])
    def test_set_count(self, goal, phase, expected):
        assert calculate_set_count(goal, phase) == expected


# ===========================================================================
# TTL store
# ===========================================================================

class TestTTLCache:
    """Size-bounded, expiring store."""

    def test_expired_entry_is_never_returned(self):
        clock = FakeClock()
        store = TTLCache(max_entries=10, ttl_seconds=60, clock=clock)
        store.put("a", 1)
        clock.advance(30)
        assert store.get("a").value == 1
        clock.advance(30)
        assert store.get("a") is None
        assert len(store) == 0

    def test_least_recently_used_is_evicted(self):
        store = TTLCache(max_entries=2, ttl_seconds=60, clock=FakeClock())
        store.put("a", 1)
        store.put("b", 2)
        store.get("a")
        store.put("c", 3)
        assert store.get("b") is None
        assert store.get("a").value == 1
        assert store.get("c").value == 3

    def test_shrinking_capacity_evicts(self):
        store = TTLCache(max_entries=4, ttl_seconds=60, clock=FakeClock())
        for k in "abcd":
            store.put(k, k)
        store.max_entries = 2
        assert len(store) == 2
        assert store.get("d") is not None

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            TTLCache(max_entries=0, ttl_seconds=60)


# ===========================================================================
# Rep range cache
# ===========================================================================

class TestRepRangeCache:
    """Hot tier, conversion tier and maintenance operations."""

    def test_hit_equals_fresh_computation(self):
        cache = RepRangeCache(clock=FakeClock())
        key = RepRangeCacheKey.build(SQUAT, FitnessGoal.STRENGTH, SessionPhase.STRENGTH, RecoveryStatus.FRESH)
        first = cache.get_or_compute(key)
        second = cache.get_or_compute(key)
        assert first == second == cache.compute(key)

    def test_feedback_changes_the_key_and_the_result(self):
        cache = RepRangeCache(clock=FakeClock())
        plain = cache.get_rep_range(CURL, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        hard = cache.get_rep_range(CURL, FitnessGoal.GENERAL, SessionPhase.VOLUME, feedback=_feedback())
        assert plain.rep_range != hard.rep_range
        assert len(cache.hot) == 2

    def test_key_captures_movement_type(self):
        key = RepRangeCacheKey.build(PLANK, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        assert key.movement_type == MovementType.CORE
        assert key.feedback_hash == "none"
        assert key.difficulty is None

    def test_expired_hot_entry_is_recomputed(self):
        clock = FakeClock()
        cache = RepRangeCache(clock=clock)
        cache.get_rep_range(SQUAT, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        cache.get_rep_range(SQUAT, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        assert cache.recompute_count == 1

        clock.advance(301)  # hot TTL is 300 s
        cache.get_rep_range(SQUAT, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        assert cache.recompute_count == 2

    def test_clear_all_forces_recomputation(self):
        cache = RepRangeCache(clock=FakeClock())
        cache.get_rep_range(SQUAT, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        cache.clear_all()
        assert cache.metrics.total_requests == 0
        assert len(cache.hot) == 0

        cache.get_rep_range(SQUAT, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        assert cache.recompute_count == 2
        assert cache.metrics.total_requests == 1
        assert cache.metrics.hit_rate == 0.0

    def test_invalidate_for_feedback_clears_both_tiers(self):
        cache = RepRangeCache(clock=FakeClock())
        cache.get_rep_range(SQUAT, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        cache.get_prescription("squat", ("p",), FitnessGoal.GENERAL, lambda: "built")
        cache.invalidate_for_feedback(_feedback())
        assert len(cache.hot) == 0
        assert len(cache.conversion) == 0

    def test_memory_pressure_halves_hot_capacity(self):
        cache = RepRangeCache(clock=FakeClock())
        cache.get_prescription("squat", ("p",), FitnessGoal.GENERAL, lambda: "built")
        cache.handle_memory_pressure()
        assert cache.hot.max_entries == 50
        assert len(cache.conversion) == 0

    def test_metrics(self):
        """Two hot entries, no conversions: 2 * 200 + 500 = 900 bytes; 1 hit of 3 requests."""
        cache = RepRangeCache(clock=FakeClock())
        cache.get_rep_range(SQUAT, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        cache.get_rep_range(CURL, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        cache.get_rep_range(CURL, FitnessGoal.GENERAL, SessionPhase.VOLUME)
        metrics = cache.metrics
        assert metrics.total_requests == 3
        assert metrics.hit_rate == pytest.approx(1 / 3)
        assert metrics.hot_cache_size == 2
        assert metrics.memory_estimate == 900
        assert not metrics.is_performing_well

    def test_performing_well_thresholds(self):
        assert CachePerformanceMetrics(0.9, 100, 1024, 10).is_performing_well
        assert not CachePerformanceMetrics(0.85, 100, 1024, 10).is_performing_well
        assert not CachePerformanceMetrics(0.99, 100, 60 * 1024 * 1024, 10).is_performing_well

    def test_prefetch_warms_current_and_next_phase(self):
        """3 exercises x 2 phases x 3 recovery buckets = 18 keys."""
        cache = RepRangeCache(clock=FakeClock())
        warmed = cache.prefetch_common_ranges([SQUAT, CURL, PLANK], SessionPhase.VOLUME, FitnessGoal.GENERAL)
        assert warmed == 18
        assert len(cache.hot) == 18
        assert cache.metrics.total_requests == 0

        cache.get_rep_range(CURL, FitnessGoal.GENERAL, SessionPhase.CONDITIONING, RecoveryStatus.FATIGUED)
        assert cache.metrics.hit_rate == 1.0

    def test_prefetch_of_nothing(self):
        cache = RepRangeCache(clock=FakeClock())
        assert cache.prefetch_common_ranges([], SessionPhase.VOLUME, FitnessGoal.GENERAL) == 0

    def test_concurrent_lookups_agree(self):
        cache = RepRangeCache()
        goals = [FitnessGoal.GENERAL, FitnessGoal.STRENGTH, FitnessGoal.HYPERTROPHY]
        keys = [
            RepRangeCacheKey.build(ex, goal, SessionPhase.aligned_with(goal))
            for ex in (SQUAT, CURL, PLANK)
            for goal in goals
        ]
        expected = {k: cache.compute(k) for k in keys}
        errors: list[str] = []

        def worker():
            for _ in range(20):
                for k in keys:
                    if cache.get_or_compute(k) != expected[k]:
                        errors.append(k.exercise_id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert cache.metrics.total_requests == 8 * 20 * len(keys)
        assert len(cache.hot) == len(keys)


class TestConversionTier:
    """Prescription memoization."""

    def test_second_lookup_skips_compute(self):
        cache = RepRangeCache(clock=FakeClock())
        calls = []

        def build():
            calls.append(1)
            return {"sets": 3}

        first = cache.get_prescription("bench", ("chest", 1), FitnessGoal.GENERAL, build)
        second = cache.get_prescription("bench", ("chest", 1), FitnessGoal.GENERAL, build)
        assert first == second == {"sets": 3}
        assert len(calls) == 1

    def test_different_parameters_miss(self):
        cache = RepRangeCache(clock=FakeClock())
        cache.get_prescription("bench", ("chest", 1), FitnessGoal.GENERAL, lambda: 1)
        value = cache.get_prescription("bench", ("chest", 2), FitnessGoal.GENERAL, lambda: 2)
        assert value == 2
        value = cache.get_prescription("bench", ("chest", 1), FitnessGoal.STRENGTH, lambda: 3)
        assert value == 3

    def test_conversion_entries_expire_after_thirty_minutes(self):
        clock = FakeClock()
        cache = RepRangeCache(clock=clock)
        cache.get_prescription("bench", "p", FitnessGoal.GENERAL, lambda: "old")
        clock.advance(1801)
        assert cache.get_prescription("bench", "p", FitnessGoal.GENERAL, lambda: "new") == "new"

    def test_unhashable_parameters_still_return_value(self):
        class BadRepr:
            def __repr__(self):
                raise ValueError("no repr")

        cache = RepRangeCache(clock=FakeClock())
        assert cache.get_prescription("bench", BadRepr(), FitnessGoal.GENERAL, lambda: "fresh") == "fresh"
        assert len(cache.conversion) == 0

    def test_key_shape(self):
        key = ConversionCacheKey("bench", stable_hash(("chest",)), stable_hash("general"))
        assert len(key.parameters_hash) == 16
        assert stable_hash(("chest",)) == stable_hash(("chest",))


class TestFeedbackHash:
    def test_none_and_value(self):
        assert feedback_hash(None) == "none"
        assert feedback_hash(_feedback()) == feedback_hash(_feedback())
        assert feedback_hash(_feedback()) != feedback_hash(_feedback(DifficultyRating.TOO_EASY))
