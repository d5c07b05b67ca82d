"""
Dynamic rep-range pipeline.

    base range by goal
      -> session-phase adjustment
      -> movement-type adjustment
      -> recovery adjustment
      -> feedback adjustment

Every stage is a pure function of its inputs, which is what lets
RepRangeCache memoize the result.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import (
    DifficultyRating,
    FitnessGoal,
    MovementType,
    RecoveryStatus,
    RepRange,
    SessionPhase,
)

_BASE_RANGES: dict[FitnessGoal, RepRange] = {
    FitnessGoal.STRENGTH: RepRange(3, 6),
    FitnessGoal.POWERLIFTING: RepRange(1, 5),
    FitnessGoal.HYPERTROPHY: RepRange(6, 15),
    FitnessGoal.CIRCUIT_TRAINING: RepRange(15, 25),
    FitnessGoal.GENERAL: RepRange(8, 15),
    FitnessGoal.OLYMPIC_WEIGHTLIFTING: RepRange(1, 5),
}
_DEFAULT_BASE_RANGE = RepRange(8, 12)


@dataclass(frozen=True)
class RepRangeResult:
    rep_range: RepRange
    set_count: int


def base_rep_range_for_goal(goal: FitnessGoal) -> RepRange:
    return _BASE_RANGES.get(goal, _DEFAULT_BASE_RANGE)


def adjust_for_session_phase(r: RepRange, phase: SessionPhase) -> RepRange:
    """
    Strength focus keeps the lower half, volume focus drops the bottom third,
    conditioning focus keeps the upper half and extends it by five reps.
    """
    span = r.high - r.low
    if phase == SessionPhase.STRENGTH:
        return RepRange(r.low, max(r.low + 1, r.low + span // 2))
    if phase == SessionPhase.VOLUME:
        return RepRange(r.low + span // 3, r.high)
    return RepRange(r.low + span // 2, r.high + 5)


def adjust_for_movement_type(r: RepRange, movement: MovementType) -> RepRange:
    if movement == MovementType.COMPOUND:
        return RepRange(max(1, r.low - 1), max(r.low, r.high - 2))
    if movement == MovementType.ISOLATION:
        return RepRange(r.low + 1, r.high + 2)
    if movement == MovementType.CORE:
        low = max(10, r.low + 3)
        return RepRange(low, max(low, r.high + 5))
    low = max(12, r.low + 5)
    return RepRange(low, max(low, r.high + 8))


def adjust_for_recovery(r: RepRange, status: RecoveryStatus) -> RepRange:
    """Fresh muscles can go a rep heavier; fatigued ones shift to lighter, higher-rep work."""
    if status == RecoveryStatus.FRESH:
        return RepRange(max(1, r.low - 1), r.high)
    if status == RecoveryStatus.FATIGUED:
        return RepRange(r.low + 2, r.high + 3)
    return r


def adjust_for_feedback(r: RepRange, difficulty: DifficultyRating | None) -> RepRange:
    if difficulty is None or difficulty == DifficultyRating.JUST_RIGHT:
        return r
    if difficulty == DifficultyRating.TOO_EASY:
        low = max(1, r.low - 2)
        return RepRange(low, max(low, r.high - 2))
    if difficulty == DifficultyRating.CHALLENGING:
        return RepRange(r.low, r.high + 1)
    return RepRange(r.low + 2, r.high + 3)


def calculate_rep_range(
    goal: FitnessGoal,
    phase: SessionPhase,
    movement: MovementType,
    recovery: RecoveryStatus,
    difficulty: DifficultyRating | None = None,
) -> RepRange:
    r = base_rep_range_for_goal(goal.normalized)
    r = adjust_for_session_phase(r, phase)
    r = adjust_for_movement_type(r, movement)
    r = adjust_for_recovery(r, recovery)
    return adjust_for_feedback(r, difficulty)


def calculate_set_count(goal: FitnessGoal, phase: SessionPhase) -> int:
    normalized = goal.normalized
    if normalized in (FitnessGoal.STRENGTH, FitnessGoal.POWERLIFTING):
        return 4 if phase == SessionPhase.STRENGTH else 3
    if normalized == FitnessGoal.HYPERTROPHY:
        return 4 if phase == SessionPhase.VOLUME else 3
    return 3
