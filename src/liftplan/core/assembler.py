"""
Workout plan assembly.

Single pass per call:

    recovery per muscle -> allocation -> per-muscle candidates
      -> prescription + time estimate (cache assisted)
      -> budget admission -> backfill -> fallback -> time breakdown

Nothing here is stored between calls: the SessionTimeBudget, allocations and
candidate pools are local to one assemble() invocation.  The only shared
state is the injected RepRangeCache.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from .allocation import ExerciseAllocationPlanner, MuscleRecovery
from .cache import RepRangeCache
from .catalog import ExerciseCatalog, can_perform, classify_movement, tracking_type_for
from .config import TIME_TRACKED_DEFAULTS, TIME_TRACKED_ENDURANCE_SECONDS
from .gateways import UserProfileGateway
from .models import (
    ExercisePrescription,
    ExerciseRecord,
    ExperienceLevel,
    FitnessGoal,
    FlexibilityPreferences,
    FlexibleSet,
    MovementType,
    MuscleAllocation,
    MuscleGroup,
    MuscleRole,
    PerformanceMetrics,
    RecoveryStatus,
    SessionPhase,
    TimeBreakdown,
    TrackingType,
    TrainingFormat,
    UserProfile,
    WorkoutDuration,
    WorkoutPlan,
    WorkoutSessionFeedback,
)
from .recovery import RecoveryEstimator
from .set_scheme import SetSchemePlanner, fatigue_multiplier, round_half_up
from .timing import ExerciseTimeEstimator, SessionTimeBudget

logger = logging.getLogger(__name__)

_COMPOUND_FIRST_FAMILY = "strength"
_WARMUP_SETS_COMPOUND = 2


@dataclass(frozen=True)
class PrescriptionParameters:
    """Every input a prescription depends on besides exercise and goal (conversion cache key)."""

    muscle: MuscleGroup
    role: MuscleRole
    experience: ExperienceLevel
    phase: SessionPhase
    recovery_status: RecoveryStatus
    metrics: PerformanceMetrics
    format: TrainingFormat
    warmup_sets_enabled: bool
    last_feedback: WorkoutSessionFeedback | None = None


class WorkoutPlanAssembler:
    """
    Orchestrates the planning components for one session.

    Args:
        recovery: Recovery scores per muscle
        catalog: Candidate exercise source
        allocator: Exercise-count allocator; "skip" policy by default
        estimator: Time-cost model
        set_schemes: Set/rep/rest planner (carries the fatigue signal)
        cache: Rep-range and prescription cache; a private one when None
        rng: When given, shuffles each muscle's candidates so plans vary
            but stay reproducible; compound-first ordering still applies
    """

    def __init__(
        self,
        recovery: RecoveryEstimator,
        catalog: ExerciseCatalog,
        allocator: ExerciseAllocationPlanner | None = None,
        estimator: ExerciseTimeEstimator | None = None,
        set_schemes: SetSchemePlanner | None = None,
        cache: RepRangeCache | None = None,
        rng: random.Random | None = None,
    ):
        self.recovery = recovery
        self.catalog = catalog
        self.allocator = allocator or ExerciseAllocationPlanner()
        self.estimator = estimator or ExerciseTimeEstimator()
        self.set_schemes = set_schemes or SetSchemePlanner()
        self.cache = cache or RepRangeCache()
        self.rng = rng

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def assemble_for_user(
        self,
        profiles: UserProfileGateway,
        muscles: Sequence[MuscleGroup],
        duration: WorkoutDuration,
        total_exercises: int | None = None,
        phase: SessionPhase | None = None,
        last_feedback: WorkoutSessionFeedback | None = None,
    ) -> WorkoutPlan:
        """Plan against the current snapshot of a profile gateway."""
        return self.assemble_for_profile(
            profiles.profile(), muscles, duration, total_exercises, phase, last_feedback
        )

    def assemble_for_profile(
        self,
        profile: UserProfile,
        muscles: Sequence[MuscleGroup],
        duration: WorkoutDuration,
        total_exercises: int | None = None,
        phase: SessionPhase | None = None,
        last_feedback: WorkoutSessionFeedback | None = None,
    ) -> WorkoutPlan:
        return self.assemble(
            muscles,
            total_exercises=total_exercises,
            duration=duration,
            goal=profile.goal,
            experience=profile.experience,
            equipment=profile.equipment,
            preferences=profile.preferences,
            phase=phase,
            avoided_exercise_ids=profile.avoided_exercise_ids,
            warmup_sets_enabled=profile.warmup_sets_enabled,
            last_feedback=last_feedback,
        )

    def assemble(
        self,
        muscles: Sequence[MuscleGroup],
        total_exercises: int | None = None,
        duration: WorkoutDuration = WorkoutDuration.HOUR_1,
        goal: FitnessGoal = FitnessGoal.GENERAL,
        experience: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        equipment: Iterable[str] = ("body weight",),
        preferences: FlexibilityPreferences | None = None,
        phase: SessionPhase | None = None,
        avoided_exercise_ids: Iterable[str] = (),
        warmup_sets_enabled: bool = False,
        last_feedback: WorkoutSessionFeedback | None = None,
    ) -> WorkoutPlan:
        """
        Build a time-boxed plan for the requested muscles.

        Args:
            muscles: Requested muscles, in display order (duplicates ignored)
            total_exercises: Exercise budget; sized from the duration when None
            duration: Session length bucket
            goal: Fitness goal
            experience: Training experience
            equipment: Owned equipment names
            preferences: Warm-up / cool-down switches
            phase: Session emphasis; aligned with the goal when None
            avoided_exercise_ids: Exercises never to place
            warmup_sets_enabled: Add warm-up sets to compound lifts
            last_feedback: Most recent session feedback; shifts rep windows

        Returns:
            WorkoutPlan; WorkoutPlan.empty() for no muscles or a zero budget
        """
        requested = list(dict.fromkeys(muscles))
        if not requested:
            return WorkoutPlan.empty()

        owned = list(equipment)
        if total_exercises is None:
            total_exercises = self.estimator.optimal_exercise_count(
                duration, goal, len(requested), experience, owned, preferences
            )
        if total_exercises <= 0:
            return WorkoutPlan.empty()

        run = _AssemblyRun(
            assembler=self,
            budget=self.estimator.make_session_budget(duration, goal, experience, preferences),
            goal=goal,
            experience=experience,
            equipment=owned,
            avoided=set(avoided_exercise_ids),
            phase=phase or SessionPhase.aligned_with(goal),
            metrics=self.set_schemes.current_metrics(),
            warmup_sets_enabled=warmup_sets_enabled,
            last_feedback=last_feedback,
        )

        recoveries: list[MuscleRecovery] = [(m, run.recovery_of(m)) for m in requested]
        allocations = self.allocator.allocate(recoveries, total_exercises)

        for allocation in allocations:
            for _ in range(allocation.count):
                if not run.take(allocation.muscle):
                    break

        shortfall = total_exercises - len(run.placed)
        if shortfall > 0 and not run.budget.is_depleted:
            self.allocator.backfill(recoveries, shortfall, run.take)
            shortfall = total_exercises - len(run.placed)
        if shortfall > 0 and not run.budget.is_depleted:
            everyone = [(d.muscle, d.recovery_percentage) for d in self.recovery.all_recovery()]
            self.allocator.fallback(everyone, requested, shortfall, run.take)
            shortfall = total_exercises - len(run.placed)
        if shortfall > 0:
            logger.info("Plan is %d exercise(s) short of %d", shortfall, total_exercises)

        return run.finish(allocations, total_exercises)

    # ------------------------------------------------------------------
    # Candidates & prescriptions
    # ------------------------------------------------------------------

    def candidate_pool(
        self,
        muscle: MuscleGroup,
        goal: FitnessGoal,
        equipment: list[str],
        avoided: set[str],
    ) -> list[ExerciseRecord]:
        """Performable, non-avoided candidates for a muscle; compound lifts first for strength goals."""
        pool = [
            r
            for r in self.catalog.candidates_for(muscle)
            if r.exercise_id not in avoided and can_perform(r, equipment)
        ]
        if self.rng is not None:
            self.rng.shuffle(pool)
        if goal.family == _COMPOUND_FIRST_FAMILY:
            pool.sort(key=lambda r: classify_movement(r) != MovementType.COMPOUND)
        return pool

    def build_prescription(
        self,
        exercise: ExerciseRecord,
        goal: FitnessGoal,
        params: PrescriptionParameters,
    ) -> ExercisePrescription:
        """Sets/reps/rest plus time estimate for one exercise, without caching."""
        movement = classify_movement(exercise)
        tracking = tracking_type_for(exercise)
        rep_result = self.cache.get_rep_range(
            exercise, goal, params.phase, params.recovery_status, params.last_feedback
        )

        if tracking.is_time_tracked:
            prescription = self._time_tracked_prescription(exercise, goal, params, tracking, movement)
        else:
            scheme = self.set_schemes.scheme(
                exercise, goal, params.experience, params.role, metrics=params.metrics, dynamic=rep_result
            )
            warmups = _WARMUP_SETS_COMPOUND if params.warmup_sets_enabled and movement == MovementType.COMPOUND else 0
            prescription = ExercisePrescription(
                exercise=exercise,
                muscle=params.muscle,
                sets=scheme.sets,
                reps=scheme.target_reps,
                rest_seconds=scheme.rest_seconds,
                tracking_type=tracking,
                movement_type=movement,
                scheme=scheme,
                warmup_sets=warmups,
            )
        prescription.dynamic_rep_range = rep_result.rep_range
        if prescription.sets > 0:
            prescription.estimated_seconds = self.estimator.estimate_exercise_seconds(
                prescription, goal, params.experience, params.format
            )
        return prescription

    def _time_tracked_prescription(
        self,
        exercise: ExerciseRecord,
        goal: FitnessGoal,
        params: PrescriptionParameters,
        tracking: TrackingType,
        movement: MovementType,
    ) -> ExercisePrescription:
        default_sets, seconds, rest = TIME_TRACKED_DEFAULTS[tracking.value]
        if goal.normalized == FitnessGoal.CIRCUIT_TRAINING:
            seconds = TIME_TRACKED_ENDURANCE_SECONDS.get(tracking.value, seconds)
        sets = round_half_up(default_sets * fatigue_multiplier(params.metrics))
        if tracking == TrackingType.ROUNDS:
            flexible = [FlexibleSet(duration_seconds=seconds, rounds=sets)]
        else:
            flexible = [FlexibleSet(duration_seconds=seconds) for _ in range(sets)]
        return ExercisePrescription(
            exercise=exercise,
            muscle=params.muscle,
            sets=sets,
            reps=0,
            rest_seconds=rest,
            tracking_type=tracking,
            movement_type=movement,
            flexible_sets=flexible,
        )


class _AssemblyRun:
    """Mutable state of one assemble() call."""

    def __init__(
        self,
        assembler: WorkoutPlanAssembler,
        budget: SessionTimeBudget,
        goal: FitnessGoal,
        experience: ExperienceLevel,
        equipment: list[str],
        avoided: set[str],
        phase: SessionPhase,
        metrics: PerformanceMetrics,
        warmup_sets_enabled: bool,
        last_feedback: WorkoutSessionFeedback | None = None,
    ):
        self.assembler = assembler
        self.budget = budget
        self.goal = goal
        self.experience = experience
        self.equipment = equipment
        self.avoided = avoided
        self.phase = phase
        self.metrics = metrics
        self.warmup_sets_enabled = warmup_sets_enabled
        self.last_feedback = last_feedback
        self.placed: list[ExercisePrescription] = []
        self.used: set[str] = set()
        self.per_muscle: dict[MuscleGroup, int] = {}
        self._pools: dict[MuscleGroup, list[ExerciseRecord]] = {}
        self._recovery: dict[MuscleGroup, float] = {}

    def recovery_of(self, muscle: MuscleGroup) -> float:
        if muscle not in self._recovery:
            self._recovery[muscle] = self.assembler.recovery.recovery_percentage(muscle)
        return self._recovery[muscle]

    def _pool(self, muscle: MuscleGroup) -> list[ExerciseRecord]:
        if muscle not in self._pools:
            self._pools[muscle] = self.assembler.candidate_pool(muscle, self.goal, self.equipment, self.avoided)
        return self._pools[muscle]

    def take(self, muscle: MuscleGroup) -> bool:
        """
        Place one more exercise for a muscle.

        Walks the muscle's remaining candidates until one both has a non-zero
        set count and fits the time budget.  Candidates that do not fit are
        discarded for this run.
        """
        if self.budget.is_out_of_time:
            return False
        pool = self._pool(muscle)
        role = MuscleRole.PRIMARY if self.per_muscle.get(muscle, 0) == 0 else MuscleRole.ACCESSORY
        params = PrescriptionParameters(
            muscle=muscle,
            role=role,
            experience=self.experience,
            phase=self.phase,
            recovery_status=RecoveryStatus.from_percentage(self.recovery_of(muscle)),
            metrics=self.metrics,
            format=self.budget.format,
            warmup_sets_enabled=self.warmup_sets_enabled,
            last_feedback=self.last_feedback,
        )
        while pool:
            exercise = pool.pop(0)
            if exercise.exercise_id in self.used:
                continue
            prescription = self.assembler.cache.get_prescription(
                exercise.exercise_id,
                params,
                self.goal,
                lambda: self.assembler.build_prescription(exercise, self.goal, params),
            )
            if prescription.sets <= 0:
                logger.debug("Dropping %s: volume suppressed to zero sets", exercise.exercise_id)
                continue
            if not self.budget.try_consume(prescription.estimated_seconds):
                logger.debug(
                    "%s (%ds) does not fit: %d/%ds used",
                    exercise.exercise_id,
                    prescription.estimated_seconds,
                    self.budget.consumed_work_seconds,
                    self.budget.max_work_seconds,
                )
                continue
            self.used.add(exercise.exercise_id)
            self.per_muscle[muscle] = self.per_muscle.get(muscle, 0) + 1
            self.placed.append(replace(prescription, flexible_sets=list(prescription.flexible_sets)))
            return True
        return False

    def finish(self, allocations: list[MuscleAllocation], target: int) -> WorkoutPlan:
        self.budget.sync_actual_exercise_seconds(sum(p.estimated_seconds for p in self.placed))
        breakdown = TimeBreakdown(
            warmup_minutes=self.budget.warmup_minutes,
            exercise_minutes=self.budget.exercise_minutes,
            cooldown_minutes=self.budget.cooldown_minutes,
            total_minutes=self.budget.total_minutes,
        )
        logger.info(
            "Assembled %d/%d exercises, %d min (%ds of %ds work time)",
            len(self.placed),
            target,
            breakdown.total_minutes,
            self.budget.consumed_work_seconds,
            self.budget.available_work_seconds,
        )
        return WorkoutPlan(
            exercises=list(self.placed),
            actual_duration_minutes=breakdown.total_minutes,
            total_time_breakdown=breakdown,
            allocations=list(allocations),
            target_exercise_count=target,
        )
