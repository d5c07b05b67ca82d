"""
Unit tests for per-muscle exercise allocation.

Covers the recovery weight step function, the largest-remainder split
(exact sum, input order, tie-breaks), both low-recovery policies, and the
backfill / fallback passes.  Expected counts are hand-computed in comments.
"""

import math

import pytest

from liftplan.core.allocation import ExerciseAllocationPlanner, recovery_weight
from liftplan.core.models import MuscleGroup

CHEST = MuscleGroup.CHEST
BACK = MuscleGroup.BACK
BICEPS = MuscleGroup.BICEPS
TRICEPS = MuscleGroup.TRICEPS
SHOULDERS = MuscleGroup.SHOULDERS
QUADS = MuscleGroup.QUADRICEPS

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _counts(allocations) -> list[int]:
    return [a.count for a in allocations]


def _taker(capacity: dict[MuscleGroup, int]):
    """take() stand-in: succeeds while the muscle still has capacity."""
    remaining = dict(capacity)
    calls: list[MuscleGroup] = []

    def take(muscle: MuscleGroup) -> bool:
        calls.append(muscle)
        if remaining.get(muscle, 0) <= 0:
            return False
        remaining[muscle] -= 1
        return True

    take.calls = calls
    return take


# ===========================================================================
# Recovery weight
# ===========================================================================

class TestRecoveryWeight:
    """Step function from recovery percentage to allocation weight."""

    @pytest.mark.parametrize("pct, expected", [
        (100.0, 1.0),
        (90.0, 1.0),
        (89.9, 0.9),
        (85.0, 0.9),
        (84.9, 0.6),
        (70.0, 0.6),
        (69.9, 0.4),
        (60.0, 0.4),
        (59.9, 0.2),
        (40.0, 0.2),
        (39.9, 0.1),
        (30.0, 0.1),
    ])
    def test_steps(self, pct, expected):
        assert recovery_weight(pct) == pytest.approx(expected)

    def test_below_30_skip_is_zero(self):
        assert recovery_weight(29.9, "skip") == 0.0
        assert recovery_weight(0.0, "skip") == 0.0

    def test_below_30_floor_is_small_positive(self):
        assert recovery_weight(29.9, "floor") == pytest.approx(0.1)
        assert recovery_weight(0.0, "floor") == pytest.approx(0.1)

    def test_nan_has_no_weight(self):
        assert recovery_weight(math.nan) == 0.0
        assert recovery_weight(math.nan, "floor") == 0.0

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            ExerciseAllocationPlanner(low_recovery_policy="ignore")


# ===========================================================================
# Largest-remainder split
# ===========================================================================

class TestAllocate:
    """Hamilton apportionment of the exercise budget."""

    def test_equal_recovery_splits_evenly(self):
        """Chest@100, Back@100, total 10 -> 5 / 5."""
        result = ExerciseAllocationPlanner().allocate([(CHEST, 100.0), (BACK, 100.0)], 10)
        assert _counts(result) == [5, 5]

    def test_partial_recovery_gets_smaller_share(self):
        """
        Chest@100, Back@40, total 10.

        weights [1.0, 0.2] -> raw [8.33, 1.67] -> floor [8, 1], one left over;
        Back has the larger fraction (0.67) so it gets it -> [8, 2].
        """
        result = ExerciseAllocationPlanner().allocate([(CHEST, 100.0), (BACK, 40.0)], 10)
        assert _counts(result) == [8, 2]

    @pytest.mark.parametrize("total", [0, 1, 2, 3, 5, 7, 10, 13, 20])
    def test_counts_sum_to_total(self, total):
        muscles = [(CHEST, 95.0), (BACK, 72.0), (BICEPS, 45.0), (TRICEPS, 33.0), (QUADS, 10.0)]
        result = ExerciseAllocationPlanner().allocate(muscles, total)
        assert sum(_counts(result)) == total

    def test_preserves_input_order(self):
        muscles = [(TRICEPS, 20.0), (CHEST, 100.0), (BACK, 65.0)]
        result = ExerciseAllocationPlanner().allocate(muscles, 6)
        assert [a.muscle for a in result] == [TRICEPS, CHEST, BACK]
        assert [a.recovery_percentage for a in result] == [20.0, 100.0, 65.0]

    def test_empty_input(self):
        assert ExerciseAllocationPlanner().allocate([], 5) == []

    def test_zero_total_gives_zero_counts(self):
        result = ExerciseAllocationPlanner().allocate([(CHEST, 100.0), (BACK, 90.0)], 0)
        assert _counts(result) == [0, 0]

    def test_negative_total_rejected(self):
        with pytest.raises(ValueError):
            ExerciseAllocationPlanner().allocate([(CHEST, 100.0)], -1)

    def test_equal_fraction_tie_goes_to_higher_recovery(self):
        """Chest@86, Back@88: both weight 0.9 -> raw 1.5 / 1.5; Back is more recovered -> [1, 2]."""
        result = ExerciseAllocationPlanner().allocate([(CHEST, 86.0), (BACK, 88.0)], 3)
        assert _counts(result) == [1, 2]

    def test_full_tie_goes_to_earlier_entry(self):
        """Same fraction and recovery: earlier input index wins -> [2, 1]."""
        result = ExerciseAllocationPlanner().allocate([(CHEST, 100.0), (BACK, 100.0)], 3)
        assert _counts(result) == [2, 1]

    def test_single_muscle_takes_everything(self):
        result = ExerciseAllocationPlanner().allocate([(SHOULDERS, 35.0)], 4)
        assert _counts(result) == [4]

    def test_nan_recovery_gets_nothing_when_others_have_weight(self):
        result = ExerciseAllocationPlanner().allocate([(CHEST, math.nan), (BACK, 100.0)], 4)
        assert _counts(result) == [0, 4]


# ===========================================================================
# Low-recovery policy
# ===========================================================================

class TestLowRecoveryPolicy:
    """Behaviour of muscles under 30% recovery."""

    def test_skip_all_low_falls_back_to_even_split(self):
        """All weights 0 under skip: 5 over 3 muscles -> [2, 2, 1]."""
        muscles = [(CHEST, 10.0), (BACK, 20.0), (BICEPS, 5.0)]
        result = ExerciseAllocationPlanner("skip").allocate(muscles, 5)
        assert _counts(result) == [2, 2, 1]

    def test_skip_gives_low_muscle_nothing(self):
        """Chest@100 (1.0), Back@10 (0.0), total 11 -> [11, 0]."""
        result = ExerciseAllocationPlanner("skip").allocate([(CHEST, 100.0), (BACK, 10.0)], 11)
        assert _counts(result) == [11, 0]

    def test_floor_keeps_low_muscle_in_play(self):
        """Chest@100 (1.0), Back@10 (0.1), total 11 -> raw [10, 1] -> [10, 1]."""
        result = ExerciseAllocationPlanner("floor").allocate([(CHEST, 100.0), (BACK, 10.0)], 11)
        assert _counts(result) == [10, 1]


# ===========================================================================
# Backfill & fallback
# ===========================================================================

class TestBackfill:
    """Closing a shortfall from the requested muscles."""

    def test_highest_recovery_first_until_exhausted(self):
        """
        Back@90 (capacity 1), Chest@50 (capacity 5), Biceps@20 (ineligible).

        Shortfall 3: Back +1, Back exhausted, Chest +2.
        """
        take = _taker({BACK: 1, CHEST: 5, BICEPS: 5})
        added = ExerciseAllocationPlanner().backfill(
            [(CHEST, 50.0), (BACK, 90.0), (BICEPS, 20.0)], 3, take
        )
        assert added == {BACK: 1, CHEST: 2}
        assert BICEPS not in take.calls

    def test_stops_when_everyone_is_exhausted(self):
        take = _taker({CHEST: 1})
        added = ExerciseAllocationPlanner().backfill([(CHEST, 95.0), (BACK, 95.0)], 4, take)
        assert added == {CHEST: 1}

    def test_zero_shortfall_is_noop(self):
        take = _taker({CHEST: 3})
        assert ExerciseAllocationPlanner().backfill([(CHEST, 95.0)], 0, take) == {}
        assert take.calls == []


class TestFallback:
    """Closing a remaining shortfall from non-requested muscles."""

    def test_only_unrequested_muscles_at_70_or_more(self):
        everyone = [(CHEST, 100.0), (BACK, 95.0), (BICEPS, 69.9), (TRICEPS, 80.0), (QUADS, 100.0)]
        take = _taker({m: 5 for m in MuscleGroup})
        added = ExerciseAllocationPlanner().fallback(everyone, [CHEST], 3, take)

        assert CHEST not in take.calls
        assert BICEPS not in take.calls
        # Quads (100) is tried first and has capacity for all three
        assert added == {QUADS: 3}

    def test_moves_on_in_recovery_order(self):
        everyone = [(TRICEPS, 80.0), (QUADS, 100.0), (BACK, 95.0)]
        take = _taker({QUADS: 1, BACK: 1, TRICEPS: 1})
        added = ExerciseAllocationPlanner().fallback(everyone, [], 3, take)
        assert list(added) == [QUADS, BACK, TRICEPS]
