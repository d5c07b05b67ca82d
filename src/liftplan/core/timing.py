"""
Session time budget and per-exercise time estimates.

A session of D minutes is split into warm-up, cool-down, a safety buffer
and the available work time.  Exercises are admitted against the work time
plus a small overrun allowance (5% or 45 s, whichever is larger):

    available = max(0, D*60 - warmup - cooldown - buffer)
    max_work  = available + max(45, int(available * 0.05))

Per-exercise cost for rep-based tracking:

    work  = sets * reps * tempo(movement, rep bucket) / max(0.5, tempo_factor)
    rest  = (sets - 1) * rest_interval(goal, movement) * rest_mult * rest_factor
    setup = setup(equipment archetype) * setup_mult
    total = ceil((work + rest + setup + warmup_sets + transition) * time_multiplier)

Time-tracked exercises (holds, intervals, distance, rounds) replace the
work term with the sum of their per-set durations.  All tables come from
data/time_cost_model.yaml merged over config.DEFAULT_TIME_COST_MODEL.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .catalog import equipment_archetype
from .config import (
    BODYWEIGHT_TIME_FACTOR,
    DEFAULT_TIME_COST_MODEL,
    MIN_EXERCISE_SECONDS,
    MIN_REST_FACTOR,
    MIN_TEMPO_FACTOR,
    OVERRUN_FRACTION,
    OVERRUN_MIN_SECONDS,
    TIME_TRACKED_ROUND_SECONDS,
    TIME_TRACKED_SET_SECONDS,
)
from .engine.config_loader import load_data_config
from .models import (
    EquipmentArchetype,
    ExercisePrescription,
    ExperienceLevel,
    FitnessGoal,
    FlexibilityPreferences,
    MovementType,
    TrackingType,
    TrainingFormat,
    WorkoutDuration,
)

logger = logging.getLogger(__name__)

TIME_COST_MODEL_FILENAME = "time_cost_model.yaml"

_STRENGTH_FORMAT_GOALS = (
    FitnessGoal.STRENGTH,
    FitnessGoal.POWERLIFTING,
    FitnessGoal.OLYMPIC_WEIGHTLIFTING,
)

_DEFAULT_OVERHEAD: dict[str, tuple[int, int]] = {
    k: (v["warmup"], v["cooldown"]) for k, v in DEFAULT_TIME_COST_MODEL["session_overhead"].items()
}


def rep_bucket(reps: int) -> str:
    """Rep-range bucket used to look up tempo: 1-5, 6-8, 8-12 or 12-20."""
    if reps <= 5:
        return "1-5"
    if reps <= 8:
        return "6-8"
    if reps <= 12:
        return "8-12"
    return "12-20"


def _rounded_minutes(seconds: int) -> int:
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 60)


# =============================================================================
# MODEL
# =============================================================================


@dataclass(frozen=True)
class ExperienceAdjustment:
    rest_multiplier: float = 1.0
    setup_multiplier: float = 1.0
    tempo_factor: float = 1.0


@dataclass(frozen=True)
class FormatParameters:
    time_multiplier: float = 1.0
    rest_factor: float = 1.0


@dataclass(frozen=True)
class TimeCostModel:
    """Typed view of the time-cost tables."""

    session_overhead: dict[str, tuple[int, int]]
    buffer_seconds: dict[str, int]
    exercise_caps: dict[str, int]
    minimum_exercises: dict[str, int]
    rep_tempos: dict[str, dict[str, float]]
    fallback_tempo: dict[str, float]
    rest_intervals: dict[str, dict[str, int]]
    fallback_rest: dict[str, int]
    setup_seconds: dict[str, float]
    transition_seconds: int
    warmup_set_seconds: int
    density_formats: dict[str, tuple[float, float]]  # (time_multiplier, rest_compression)
    experience_adjustments: dict[str, ExperienceAdjustment] = field(default_factory=dict)
    compound_share: dict[str, float] = field(default_factory=dict)
    default_sets: dict[str, int] = field(default_factory=dict)
    default_reps: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TimeCostModel:
        """
        Build the model from a merged config mapping.

        Raises:
            ValueError: If a section has the wrong shape
        """
        try:
            return cls(
                session_overhead={
                    k: (int(v["warmup"]), int(v["cooldown"])) for k, v in d["session_overhead"].items()
                },
                buffer_seconds={k: int(v) for k, v in d["buffer_seconds"].items()},
                exercise_caps={k: int(v) for k, v in d["exercise_caps"].items()},
                minimum_exercises={k: int(v) for k, v in d["minimum_exercises"].items()},
                rep_tempos={
                    mv: {str(b): float(t) for b, t in table.items()} for mv, table in d["rep_tempos"].items()
                },
                fallback_tempo={k: float(v) for k, v in d["fallback_tempo"].items()},
                rest_intervals={
                    g: {"compound": int(v["compound"]), "isolation": int(v["isolation"])}
                    for g, v in d["rest_intervals"].items()
                },
                fallback_rest={k: int(v) for k, v in d["fallback_rest"].items()},
                setup_seconds={k: float(v) for k, v in d["setup_seconds"].items()},
                transition_seconds=int(d["transition_seconds"]),
                warmup_set_seconds=int(d["warmup_set_seconds"]),
                density_formats={
                    k: (float(v["time_multiplier"]), float(v["rest_compression"]))
                    for k, v in d["density_formats"].items()
                },
                experience_adjustments={
                    k: ExperienceAdjustment(
                        rest_multiplier=float(v["rest_multiplier"]),
                        setup_multiplier=float(v["setup_multiplier"]),
                        tempo_factor=float(v["tempo_factor"]),
                    )
                    for k, v in d.get("experience_adjustments", {}).items()
                },
                compound_share={k: float(v) for k, v in d.get("compound_share", {}).items()},
                default_sets={k: int(v) for k, v in d.get("default_sets", {}).items()},
                default_reps={k: int(v) for k, v in d.get("default_reps", {}).items()},
            )
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise ValueError(f"Malformed time-cost model: {e}") from e


def load_time_cost_model(include_user: bool = True) -> TimeCostModel:
    """Load data/time_cost_model.yaml (plus ~/.liftplan override) over the Python defaults."""
    return TimeCostModel.from_dict(
        load_data_config(TIME_COST_MODEL_FILENAME, DEFAULT_TIME_COST_MODEL, include_user)
    )


# =============================================================================
# SESSION BUDGET
# =============================================================================


@dataclass
class SessionTimeBudget:
    """
    Work-time envelope for one plan-generation call.

    consumed_work_seconds only grows through try_consume(), which refuses any
    amount that would push it past max_work_seconds.
    """

    duration: WorkoutDuration
    goal: FitnessGoal
    experience: ExperienceLevel
    format: TrainingFormat
    warmup_seconds: int
    cooldown_seconds: int
    buffer_seconds: int
    available_work_seconds: int
    max_work_seconds: int
    consumed_work_seconds: int = 0

    def __post_init__(self) -> None:
        if self.available_work_seconds < 0 or self.max_work_seconds < self.available_work_seconds:
            raise ValueError("invalid work-time envelope")
        if not (0 <= self.consumed_work_seconds <= self.max_work_seconds):
            raise ValueError("consumed_work_seconds outside [0, max_work_seconds]")

    def try_consume(self, seconds: int) -> bool:
        """
        Admit an exercise costing `seconds` if it fits under max_work_seconds.

        Returns:
            True if admitted (or seconds <= 0); False leaves the budget unchanged
        """
        if seconds <= 0:
            return True
        updated = self.consumed_work_seconds + seconds
        if updated > self.max_work_seconds:
            return False
        self.consumed_work_seconds = updated
        return True

    def sync_actual_exercise_seconds(self, seconds: int) -> None:
        """Replace the consumed total with a recomputed one, capped at max_work_seconds."""
        self.consumed_work_seconds = max(0, min(seconds, self.max_work_seconds))

    @property
    def remaining_work_seconds(self) -> int:
        return max(0, self.available_work_seconds - self.consumed_work_seconds)

    @property
    def is_depleted(self) -> bool:
        return self.consumed_work_seconds >= self.available_work_seconds

    @property
    def is_out_of_time(self) -> bool:
        return self.consumed_work_seconds >= self.max_work_seconds

    @property
    def warmup_minutes(self) -> int:
        return _rounded_minutes(self.warmup_seconds)

    @property
    def cooldown_minutes(self) -> int:
        return _rounded_minutes(self.cooldown_seconds)

    @property
    def exercise_minutes(self) -> int:
        return _rounded_minutes(self.consumed_work_seconds)

    @property
    def total_minutes(self) -> int:
        return _rounded_minutes(
            self.warmup_seconds + self.cooldown_seconds + self.buffer_seconds + self.consumed_work_seconds
        )


# =============================================================================
# ESTIMATOR
# =============================================================================


class ExerciseTimeEstimator:
    """Wall-clock cost model for sessions and single exercises."""

    def __init__(self, model: TimeCostModel | None = None):
        self.model = model if model is not None else load_time_cost_model()

    # ------------------------------------------------------------------
    # Session level
    # ------------------------------------------------------------------

    def session_overhead(
        self,
        duration: WorkoutDuration,
        preferences: FlexibilityPreferences | None = None,
    ) -> tuple[int, int]:
        """(warmup_minutes, cooldown_minutes); zeroed when disabled in preferences."""
        warmup, cooldown = self.model.session_overhead.get(
            duration.value, _DEFAULT_OVERHEAD[duration.value]
        )
        if preferences is not None:
            if not preferences.warmup_enabled:
                warmup = 0
            if not preferences.cooldown_enabled:
                cooldown = 0
        return warmup, cooldown

    def buffer_seconds(self, duration: WorkoutDuration) -> int:
        return self.model.buffer_seconds.get(
            duration.value, DEFAULT_TIME_COST_MODEL["buffer_seconds"][duration.value]
        )

    def exercise_cap(self, duration: WorkoutDuration) -> int:
        return self.model.exercise_caps.get(
            duration.value, DEFAULT_TIME_COST_MODEL["exercise_caps"][duration.value]
        )

    def minimum_exercises(self, duration: WorkoutDuration, muscle_count: int) -> int:
        base = self.model.minimum_exercises.get(
            duration.value, DEFAULT_TIME_COST_MODEL["minimum_exercises"][duration.value]
        )
        return min(base, max(1, muscle_count))

    def preferred_format(self, duration: WorkoutDuration, goal: FitnessGoal) -> TrainingFormat:
        """Default exercise chaining for a duration and goal."""
        normalized = goal.normalized
        if normalized == FitnessGoal.CIRCUIT_TRAINING:
            return TrainingFormat.CIRCUIT_3
        if duration == WorkoutDuration.MINUTES_15:
            return TrainingFormat.CIRCUIT_3
        if duration == WorkoutDuration.MINUTES_30:
            return TrainingFormat.SUPERSET if normalized == FitnessGoal.HYPERTROPHY else TrainingFormat.CIRCUIT_3
        if duration == WorkoutDuration.MINUTES_45:
            return TrainingFormat.SUPERSET
        if duration == WorkoutDuration.HOUR_1:
            return TrainingFormat.STRAIGHT_SETS if normalized in _STRENGTH_FORMAT_GOALS else TrainingFormat.SUPERSET
        return TrainingFormat.STRAIGHT_SETS

    def format_parameters(self, fmt: TrainingFormat) -> FormatParameters:
        entry = self.model.density_formats.get(fmt.value)
        if entry is None:
            return FormatParameters()
        time_multiplier, rest_compression = entry
        return FormatParameters(
            time_multiplier=time_multiplier,
            rest_factor=max(MIN_REST_FACTOR, 1.0 - rest_compression),
        )

    def experience_adjustment(self, experience: ExperienceLevel) -> ExperienceAdjustment:
        return self.model.experience_adjustments.get(experience.value, ExperienceAdjustment())

    def make_session_budget(
        self,
        duration: WorkoutDuration,
        goal: FitnessGoal,
        experience: ExperienceLevel,
        preferences: FlexibilityPreferences | None = None,
    ) -> SessionTimeBudget:
        warmup_min, cooldown_min = self.session_overhead(duration, preferences)
        warmup = warmup_min * 60
        cooldown = cooldown_min * 60
        buffer = self.buffer_seconds(duration)
        available = max(0, duration.total_seconds - warmup - cooldown - buffer)
        overrun = max(OVERRUN_MIN_SECONDS, int(available * OVERRUN_FRACTION))
        budget = SessionTimeBudget(
            duration=duration,
            goal=goal,
            experience=experience,
            format=self.preferred_format(duration, goal),
            warmup_seconds=warmup,
            cooldown_seconds=cooldown,
            buffer_seconds=buffer,
            available_work_seconds=available,
            max_work_seconds=available + overrun,
        )
        logger.debug(
            "Budget %s: available=%ds max=%ds format=%s",
            duration.value,
            budget.available_work_seconds,
            budget.max_work_seconds,
            budget.format.value,
        )
        return budget

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def rep_tempo(self, movement: str, reps: int) -> float:
        tempo = self.model.rep_tempos.get(movement, {}).get(rep_bucket(reps))
        if tempo is not None:
            return tempo
        return self.model.fallback_tempo.get(movement, 3.0 if movement == "compound" else 2.8)

    def rest_interval(self, goal: FitnessGoal, movement: str) -> int:
        entry = self.model.rest_intervals.get(goal.normalized.value)
        if entry is None:
            entry = self.model.rest_intervals.get(FitnessGoal.GENERAL.value)
        if entry is not None:
            return entry[movement]
        return self.model.fallback_rest.get(movement, 90 if movement == "compound" else 60)

    def setup_seconds(self, archetype: EquipmentArchetype) -> float:
        if archetype.value in self.model.setup_seconds:
            return self.model.setup_seconds[archetype.value]
        return self.model.setup_seconds.get("default", 15.0)

    def _warmup_seconds(self, count: int, compound: bool) -> float:
        if count <= 0 or not compound:
            return 0.0
        return float(count * self.model.warmup_set_seconds)

    # ------------------------------------------------------------------
    # Exercise level
    # ------------------------------------------------------------------

    def estimate_exercise_seconds(
        self,
        prescription: ExercisePrescription,
        goal: FitnessGoal,
        experience: ExperienceLevel,
        fmt: TrainingFormat,
    ) -> int:
        """Estimated wall-clock seconds for one prescription (0 when it has no sets)."""
        if prescription.sets <= 0:
            return 0
        adjustment = self.experience_adjustment(experience)
        params = self.format_parameters(fmt)
        if prescription.tracking_type.is_time_tracked:
            return self._estimate_time_tracked(prescription, goal, adjustment, params)
        return self._estimate_repetitions(prescription, goal, adjustment, params)

    def _estimate_repetitions(
        self,
        p: ExercisePrescription,
        goal: FitnessGoal,
        adjustment: ExperienceAdjustment,
        params: FormatParameters,
    ) -> int:
        movement = "compound" if p.movement_type == MovementType.COMPOUND else "isolation"
        sets = max(1, p.sets)
        reps = max(1, p.reps)
        tempo = self.rep_tempo(movement, reps) / max(MIN_TEMPO_FACTOR, adjustment.tempo_factor)
        working = sets * reps * tempo
        rest = (sets - 1) * self.rest_interval(goal, movement) * adjustment.rest_multiplier * params.rest_factor
        setup = self.setup_seconds(equipment_archetype(p.exercise.equipment)) * adjustment.setup_multiplier
        warmup = self._warmup_seconds(p.warmup_sets, movement == "compound")
        total = (working + rest + setup + warmup + self.model.transition_seconds) * params.time_multiplier
        return math.ceil(total)

    def _estimate_time_tracked(
        self,
        p: ExercisePrescription,
        goal: FitnessGoal,
        adjustment: ExperienceAdjustment,
        params: FormatParameters,
    ) -> int:
        working = time_tracked_working_seconds(p)
        sets = max(1, len(p.flexible_sets) or p.sets)
        rest_per_set = p.rest_seconds if p.rest_seconds > 0 else self.rest_interval(goal, "isolation")
        rest = (sets - 1) * rest_per_set * adjustment.rest_multiplier * params.rest_factor
        setup = self.setup_seconds(equipment_archetype(p.exercise.equipment)) * adjustment.setup_multiplier
        total = (working + rest + setup + self.model.transition_seconds) * params.time_multiplier
        return math.ceil(total)

    def total_seconds(
        self,
        prescriptions: Iterable[ExercisePrescription],
        goal: FitnessGoal,
        experience: ExperienceLevel,
        fmt: TrainingFormat,
    ) -> int:
        return sum(self.estimate_exercise_seconds(p, goal, experience, fmt) for p in prescriptions)

    # ------------------------------------------------------------------
    # Predictive sizing
    # ------------------------------------------------------------------

    def _per_movement_estimate(
        self,
        goal: FitnessGoal,
        movement: str,
        sets: int,
        reps: int,
        adjustment: ExperienceAdjustment,
        params: FormatParameters,
    ) -> float:
        tempo = self.rep_tempo(movement, reps) / max(MIN_TEMPO_FACTOR, adjustment.tempo_factor)
        working = sets * reps * tempo
        rest = max(0, sets - 1) * self.rest_interval(goal, movement) * adjustment.rest_multiplier * params.rest_factor
        archetype = EquipmentArchetype.BARBELL if movement == "compound" else EquipmentArchetype.DUMBBELL
        setup = self.setup_seconds(archetype) * adjustment.setup_multiplier
        warmup = float(self.model.warmup_set_seconds) if movement == "compound" else 0.0
        return (working + rest + setup + warmup + self.model.transition_seconds) * params.time_multiplier

    def average_exercise_seconds(
        self,
        goal: FitnessGoal,
        experience: ExperienceLevel,
        fmt: TrainingFormat | None = None,
    ) -> float:
        """
        Typical cost of one exercise for a goal.

        Blends a compound estimate (goal-default sets/reps) with an isolation
        estimate (at least 3 sets of at least 8 reps) by the goal's compound share.
        """
        normalized = goal.normalized
        sets = self.model.default_sets.get(normalized.value, 4)
        reps = self.model.default_reps.get(normalized.value, 10)
        share = self.model.compound_share.get(normalized.value, 0.6)
        adjustment = self.experience_adjustment(experience)
        params = self.format_parameters(fmt or self.preferred_format(WorkoutDuration.HOUR_1, normalized))

        compound = self._per_movement_estimate(normalized, "compound", sets, reps, adjustment, params)
        isolation = self._per_movement_estimate(
            normalized, "isolation", max(3, sets - 1), max(8, reps + 2), adjustment, params
        )
        return share * compound + (1 - share) * isolation

    def optimal_exercise_count(
        self,
        duration: WorkoutDuration,
        goal: FitnessGoal,
        muscle_count: int,
        experience: ExperienceLevel,
        equipment: Iterable[str] = (),
        preferences: FlexibilityPreferences | None = None,
    ) -> int:
        """
        Predict how many exercises fit in a session.

        available_work_seconds // average_exercise_seconds, faster for
        bodyweight-only equipment, clamped to [minimum_exercises, exercise_cap].
        """
        budget = self.make_session_budget(duration, goal, experience, preferences)
        average = max(
            float(MIN_EXERCISE_SECONDS),
            self.average_exercise_seconds(goal, experience, budget.format),
        )
        owned = list(equipment)
        if all(equipment_archetype(e) == EquipmentArchetype.BODYWEIGHT for e in owned):
            average *= BODYWEIGHT_TIME_FACTOR

        minimum = self.minimum_exercises(duration, muscle_count)
        cap = self.exercise_cap(duration)
        count = int(budget.available_work_seconds // average)
        if count <= 0:
            count = minimum
        count = max(minimum, min(cap, count))
        logger.debug(
            "Optimal count for %s/%s: avg=%.0fs -> %d exercises",
            duration.value,
            goal.value,
            average,
            count,
        )
        return count


def time_tracked_working_seconds(p: ExercisePrescription) -> int:
    """Sum of per-set durations (times rounds), never below MIN_EXERCISE_SECONDS."""
    if not p.flexible_sets:
        per_set = TIME_TRACKED_ROUND_SECONDS if p.tracking_type == TrackingType.ROUNDS else TIME_TRACKED_SET_SECONDS
        return max(1, p.sets) * per_set
    total = 0
    for s in p.flexible_sets:
        total += s.duration_seconds * (s.rounds or 1)
    return max(total, MIN_EXERCISE_SECONDS)

