"""
Per-muscle exercise-count allocation.

Splits a total exercise budget across the requested muscles in proportion
to a recovery-derived weight, using the largest-remainder (Hamilton)
method so that the counts always sum to the budget exactly.  The backfill
and fallback passes close a shortfall when the assembler cannot place
every allocated exercise.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Sequence
from typing import Literal

from .config import (
    ALLOCATION_WEIGHT_EPSILON,
    FALLBACK_MIN_RECOVERY,
    LOW_RECOVERY_FLOOR_WEIGHT,
    LOW_RECOVERY_THRESHOLD,
    RECOVERY_WEIGHT_STEPS,
)
from .models import MuscleAllocation, MuscleGroup

logger = logging.getLogger(__name__)

LowRecoveryPolicy = Literal["skip", "floor"]

# (muscle, recovery percentage)
MuscleRecovery = tuple[MuscleGroup, float]

# Tries to place one more exercise for a muscle; True on success
TakeFn = Callable[[MuscleGroup], bool]


def recovery_weight(percentage: float, policy: LowRecoveryPolicy = "skip") -> float:
    """
    Step function from recovery percentage to allocation weight.

    >=90 -> 1.0, [85,90) -> 0.9, [70,85) -> 0.6, [60,70) -> 0.4,
    [40,60) -> 0.2, [30,40) -> 0.1.  Below 30% the weight is 0 under the
    "skip" policy and LOW_RECOVERY_FLOOR_WEIGHT under "floor".
    """
    if math.isnan(percentage):
        return 0.0
    for threshold, weight in RECOVERY_WEIGHT_STEPS:
        if percentage >= threshold:
            return weight
    return 0.0 if policy == "skip" else LOW_RECOVERY_FLOOR_WEIGHT


def _sort_key_recovery(pct: float) -> float:
    return -1.0 if math.isnan(pct) else pct


class ExerciseAllocationPlanner:
    """
    Largest-remainder allocator.

    Args:
        low_recovery_policy: "skip" gives muscles under 30% recovery a zero
            weight (they only receive exercises when no muscle has any
            weight); "floor" keeps them at a small non-zero weight.
    """

    def __init__(self, low_recovery_policy: LowRecoveryPolicy = "skip"):
        if low_recovery_policy not in ("skip", "floor"):
            raise ValueError(f"Unknown low_recovery_policy: {low_recovery_policy!r}")
        self.low_recovery_policy: LowRecoveryPolicy = low_recovery_policy

    def weight(self, percentage: float) -> float:
        return recovery_weight(percentage, self.low_recovery_policy)

    def allocate(self, muscles: Sequence[MuscleRecovery], total_exercises: int) -> list[MuscleAllocation]:
        """
        Apportion total_exercises across muscles.

        Args:
            muscles: Ordered (muscle, recovery %) pairs
            total_exercises: Budget, >= 0

        Returns:
            One MuscleAllocation per input entry, in input order, whose counts
            sum to total_exercises (empty list for empty input)

        Raises:
            ValueError: If total_exercises is negative
        """
        if total_exercises < 0:
            raise ValueError("total_exercises must be non-negative")
        n = len(muscles)
        if n == 0:
            return []

        recoveries = [pct for _, pct in muscles]
        weights = [self.weight(pct) for pct in recoveries]
        total_weight = sum(weights)

        if total_weight > ALLOCATION_WEIGHT_EPSILON:
            raw = [total_exercises * w / total_weight for w in weights]
            counts = [math.floor(r) for r in raw]
            remainder = total_exercises - sum(counts)
            order = sorted(
                range(n),
                key=lambda i: (
                    -round(raw[i] - counts[i], 9),
                    -_sort_key_recovery(recoveries[i]),
                    i,
                ),
            )
            for k in range(remainder):
                counts[order[k % n]] += 1
        else:
            # No recovery signal: even split, extra units to the earliest entries
            base, extra = divmod(total_exercises, n)
            counts = [base + (1 if i < extra else 0) for i in range(n)]

        allocations = [
            MuscleAllocation(muscle=m, count=c, recovery_percentage=pct)
            for (m, pct), c in zip(muscles, counts)
        ]
        logger.debug(
            "Allocated %d exercises: %s",
            total_exercises,
            ", ".join(f"{a.muscle.value}={a.count}" for a in allocations),
        )
        return allocations

    def backfill(self, muscles: Sequence[MuscleRecovery], shortfall: int, take: TakeFn) -> dict[MuscleGroup, int]:
        """
        Close a shortfall from the requested muscles.

        Muscles below 30% recovery are skipped; the rest are tried highest
        recovery first, one exercise at a time, moving on to the next muscle
        only when take() reports the current one has nothing left.

        Returns:
            Exercises added per muscle
        """
        eligible = [(m, pct) for m, pct in muscles if not math.isnan(pct) and pct >= LOW_RECOVERY_THRESHOLD]
        return self._greedy_fill(eligible, shortfall, take)

    def fallback(
        self,
        all_muscles: Iterable[MuscleRecovery],
        requested: Iterable[MuscleGroup],
        shortfall: int,
        take: TakeFn,
    ) -> dict[MuscleGroup, int]:
        """
        Close a remaining shortfall from muscles that were not requested.

        Only muscles at >= 70% recovery are considered, highest first.

        Returns:
            Exercises added per muscle
        """
        requested_set = set(requested)
        eligible = [
            (m, pct)
            for m, pct in all_muscles
            if m not in requested_set and not math.isnan(pct) and pct >= FALLBACK_MIN_RECOVERY
        ]
        return self._greedy_fill(eligible, shortfall, take)

    def _greedy_fill(self, muscles: list[MuscleRecovery], shortfall: int, take: TakeFn) -> dict[MuscleGroup, int]:
        added: dict[MuscleGroup, int] = {}
        if shortfall <= 0:
            return added

        # Stable sort keeps input order among equal recoveries
        ranked: list[MuscleGroup] = []
        for m, _ in sorted(muscles, key=lambda mp: -mp[1]):
            if m not in ranked:
                ranked.append(m)

        remaining = shortfall
        while remaining > 0 and ranked:
            muscle = ranked[0]
            if take(muscle):
                added[muscle] = added.get(muscle, 0) + 1
                remaining -= 1
            else:
                ranked.pop(0)

        if added:
            logger.info(
                "Filled %d of %d missing exercises: %s",
                shortfall - remaining,
                shortfall,
                ", ".join(f"{m.value}+{c}" for m, c in added.items()),
            )
        return added
