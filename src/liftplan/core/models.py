"""
Data models for liftplan.

Enumerations describing muscles, goals and session context, plus the
dataclasses that flow through the planning pipeline.  Static per-muscle
attributes (recovery window, planning priority) live next to the enum so
that the rest of the engine never hard-codes muscle names.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .config import RECOVERY_PARTIAL_THRESHOLD, RECOVERY_RECOMMENDED_THRESHOLD


# =============================================================================
# MUSCLES
# =============================================================================


class MuscleGroup(str, Enum):
    """Trainable muscle group."""

    ABS = "abs"
    BACK = "back"
    BICEPS = "biceps"
    CHEST = "chest"
    GLUTES = "glutes"
    HAMSTRINGS = "hamstrings"
    QUADRICEPS = "quadriceps"
    SHOULDERS = "shoulders"
    TRICEPS = "triceps"
    LOWER_BACK = "lower_back"
    CALVES = "calves"
    TRAPEZIUS = "trapezius"
    ABDUCTORS = "abductors"
    ADDUCTORS = "adductors"
    FOREARMS = "forearms"
    NECK = "neck"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def base_recovery_hours(self) -> float:
        """Hours a maximal stimulus needs to fully recover (24 / 48 / 72 by size)."""
        return _BASE_RECOVERY_HOURS[self]

    @property
    def priority(self) -> int:
        """3 = primary mover, 2 = secondary mover, 1 = stabilizer, 0 = accessory."""
        return _PRIORITY.get(self, 0)

    @property
    def is_main(self) -> bool:
        return self in MAIN_MUSCLE_GROUPS

    @classmethod
    def parse(cls, name: str) -> MuscleGroup:
        """Parse a muscle name such as 'Lower Back', 'lower-back' or 'quads'."""
        key = name.strip().lower().replace("-", "_").replace(" ", "_")
        key = _MUSCLE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown muscle group '{name}'. Valid: {valid}") from None


MAIN_MUSCLE_GROUPS: tuple[MuscleGroup, ...] = (
    MuscleGroup.ABS,
    MuscleGroup.BACK,
    MuscleGroup.BICEPS,
    MuscleGroup.CHEST,
    MuscleGroup.GLUTES,
    MuscleGroup.HAMSTRINGS,
    MuscleGroup.QUADRICEPS,
    MuscleGroup.SHOULDERS,
    MuscleGroup.TRICEPS,
    MuscleGroup.LOWER_BACK,
)

ACCESSORY_MUSCLE_GROUPS: tuple[MuscleGroup, ...] = tuple(
    m for m in MuscleGroup if m not in MAIN_MUSCLE_GROUPS
)

_BASE_RECOVERY_HOURS: dict[MuscleGroup, float] = {
    # Small muscles
    MuscleGroup.ABS: 24.0,
    MuscleGroup.CALVES: 24.0,
    MuscleGroup.TRAPEZIUS: 24.0,
    MuscleGroup.FOREARMS: 24.0,
    MuscleGroup.NECK: 24.0,
    # Medium muscles
    MuscleGroup.BACK: 48.0,
    MuscleGroup.BICEPS: 48.0,
    MuscleGroup.CHEST: 48.0,
    MuscleGroup.SHOULDERS: 48.0,
    MuscleGroup.TRICEPS: 48.0,
    MuscleGroup.LOWER_BACK: 48.0,
    MuscleGroup.ABDUCTORS: 48.0,
    MuscleGroup.ADDUCTORS: 48.0,
    # Large muscles
    MuscleGroup.GLUTES: 72.0,
    MuscleGroup.HAMSTRINGS: 72.0,
    MuscleGroup.QUADRICEPS: 72.0,
}

_PRIORITY: dict[MuscleGroup, int] = {
    MuscleGroup.CHEST: 3,
    MuscleGroup.BACK: 3,
    MuscleGroup.SHOULDERS: 3,
    MuscleGroup.GLUTES: 3,
    MuscleGroup.QUADRICEPS: 3,
    MuscleGroup.HAMSTRINGS: 3,
    MuscleGroup.BICEPS: 2,
    MuscleGroup.TRICEPS: 2,
    MuscleGroup.ABS: 1,
    MuscleGroup.LOWER_BACK: 1,
}

_MUSCLE_ALIASES: dict[str, str] = {
    "quads": "quadriceps",
    "hams": "hamstrings",
    "delts": "shoulders",
    "lats": "back",
    "traps": "trapezius",
    "core": "abs",
    "pecs": "chest",
}


# =============================================================================
# GOALS, EXPERIENCE, SESSION CONTEXT
# =============================================================================


class FitnessGoal(str, Enum):
    STRENGTH = "strength"
    HYPERTROPHY = "hypertrophy"
    ENDURANCE = "endurance"
    POWER = "power"
    GENERAL = "general"
    TONE = "tone"
    POWERLIFTING = "powerlifting"
    SPORT = "sport"
    OLYMPIC_WEIGHTLIFTING = "olympic_weightlifting"
    CIRCUIT_TRAINING = "circuit_training"

    @property
    def normalized(self) -> FitnessGoal:
        """Collapse the goal onto one of the six goals the lookup tables are keyed by."""
        return _GOAL_NORMALIZATION.get(self, self)

    @property
    def family(self) -> str:
        """'strength', 'conditioning' or 'volume' (the rep/rest adjustment family)."""
        if self in (
            FitnessGoal.STRENGTH,
            FitnessGoal.POWER,
            FitnessGoal.POWERLIFTING,
            FitnessGoal.OLYMPIC_WEIGHTLIFTING,
        ):
            return "strength"
        if self in (FitnessGoal.ENDURANCE, FitnessGoal.CIRCUIT_TRAINING):
            return "conditioning"
        return "volume"


_GOAL_NORMALIZATION: dict[FitnessGoal, FitnessGoal] = {
    FitnessGoal.POWER: FitnessGoal.STRENGTH,
    FitnessGoal.ENDURANCE: FitnessGoal.CIRCUIT_TRAINING,
    FitnessGoal.TONE: FitnessGoal.GENERAL,
    FitnessGoal.SPORT: FitnessGoal.GENERAL,
}

TEMPLATE_GOALS: tuple[FitnessGoal, ...] = (
    FitnessGoal.STRENGTH,
    FitnessGoal.HYPERTROPHY,
    FitnessGoal.POWERLIFTING,
    FitnessGoal.OLYMPIC_WEIGHTLIFTING,
    FitnessGoal.CIRCUIT_TRAINING,
    FitnessGoal.GENERAL,
)


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SessionPhase(str, Enum):
    """Goal-aligned emphasis of a single session, used to bias rep ranges."""

    STRENGTH = "strength"
    VOLUME = "volume"
    CONDITIONING = "conditioning"

    def next_phase(self) -> SessionPhase:
        order = list(SessionPhase)
        return order[(order.index(self) + 1) % len(order)]

    @classmethod
    def aligned_with(cls, goal: FitnessGoal) -> SessionPhase:
        if goal in (
            FitnessGoal.STRENGTH,
            FitnessGoal.POWER,
            FitnessGoal.POWERLIFTING,
            FitnessGoal.OLYMPIC_WEIGHTLIFTING,
        ):
            return cls.STRENGTH
        if goal in (FitnessGoal.HYPERTROPHY, FitnessGoal.GENERAL):
            return cls.VOLUME
        return cls.CONDITIONING


class RecoveryStatus(str, Enum):
    """Coarse recovery bucket used as part of rep-range cache keys."""

    FRESH = "fresh"
    MODERATE = "moderate"
    FATIGUED = "fatigued"

    @classmethod
    def from_percentage(cls, percentage: float) -> RecoveryStatus:
        if percentage >= RECOVERY_RECOMMENDED_THRESHOLD:
            return cls.FRESH
        if percentage >= RECOVERY_PARTIAL_THRESHOLD:
            return cls.MODERATE
        return cls.FATIGUED


class MovementType(str, Enum):
    COMPOUND = "compound"
    ISOLATION = "isolation"
    CORE = "core"
    CARDIO = "cardio"


class MuscleRole(str, Enum):
    PRIMARY = "primary"
    ACCESSORY = "accessory"


class TrackingType(str, Enum):
    REPS_WEIGHT = "reps_weight"
    REPS_ONLY = "reps_only"
    TIME_ONLY = "time_only"
    HOLD_TIME = "hold_time"
    TIME_DISTANCE = "time_distance"
    ROUNDS = "rounds"

    @property
    def is_time_tracked(self) -> bool:
        return self not in (TrackingType.REPS_WEIGHT, TrackingType.REPS_ONLY)


class TrainingFormat(str, Enum):
    STRAIGHT_SETS = "straight_sets"
    SUPERSET = "superset"
    CIRCUIT_3 = "circuit_3"
    CIRCUIT_4 = "circuit_4"
    EMOM = "emom"


class EquipmentArchetype(str, Enum):
    BARBELL = "barbell"
    DUMBBELL = "dumbbell"
    MACHINE = "machine"
    CABLE = "cable"
    KETTLEBELL = "kettlebell"
    BAND = "band"
    BODYWEIGHT = "bodyweight"
    SLED = "sled"
    SPECIALTY = "specialty"


class WorkoutDuration(str, Enum):
    MINUTES_15 = "15m"
    MINUTES_30 = "30m"
    MINUTES_45 = "45m"
    HOUR_1 = "1h"
    HOUR_1_5 = "1.5h"
    HOUR_2 = "2h"

    @property
    def minutes(self) -> int:
        return _DURATION_MINUTES[self]

    @property
    def total_seconds(self) -> int:
        return self.minutes * 60

    @classmethod
    def from_minutes(cls, minutes: int) -> WorkoutDuration:
        """Snap an arbitrary minute count to the nearest bucket (ties go shorter)."""
        return min(cls, key=lambda d: (abs(d.minutes - minutes), d.minutes))


_DURATION_MINUTES: dict[WorkoutDuration, int] = {
    WorkoutDuration.MINUTES_15: 15,
    WorkoutDuration.MINUTES_30: 30,
    WorkoutDuration.MINUTES_45: 45,
    WorkoutDuration.HOUR_1: 60,
    WorkoutDuration.HOUR_1_5: 90,
    WorkoutDuration.HOUR_2: 120,
}


class PerformanceTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class DifficultyRating(str, Enum):
    TOO_EASY = "too_easy"
    JUST_RIGHT = "just_right"
    CHALLENGING = "challenging"
    TOO_HARD = "too_hard"


# =============================================================================
# RECOVERY
# =============================================================================


@dataclass
class StimulusRecord:
    """One training event's contribution to a muscle group."""

    date: datetime
    intensity: float  # 0..1
    volume: float  # sum of reps * weight
    exercise_ids: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate stimulus data."""
        if not (0.0 <= self.intensity <= 1.0):
            raise ValueError("intensity must be in [0, 1]")
        if self.volume < 0:
            raise ValueError("volume must be non-negative")


@dataclass(frozen=True)
class MuscleRecoveryData:
    """Recovery snapshot for one muscle, derived from its stimulus history."""

    muscle: MuscleGroup
    last_worked_date: datetime
    intensity: float
    recovery_percentage: float
    estimated_full_recovery_date: datetime

    @property
    def is_recommended_for_training(self) -> bool:
        return self.recovery_percentage >= RECOVERY_RECOMMENDED_THRESHOLD

    @property
    def is_partially_ready(self) -> bool:
        return self.recovery_percentage >= RECOVERY_PARTIAL_THRESHOLD

    @property
    def is_fully_rested(self) -> bool:
        return self.recovery_percentage >= 100.0

    @property
    def recovery_status(self) -> RecoveryStatus:
        return RecoveryStatus.from_percentage(self.recovery_percentage)


@dataclass(frozen=True)
class MuscleAllocation:
    muscle: MuscleGroup
    count: int
    recovery_percentage: float

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("allocation count must be non-negative")


# =============================================================================
# EXERCISES & PRESCRIPTIONS
# =============================================================================


@dataclass(frozen=True)
class RepRange:
    """Closed interval of repetitions."""

    low: int
    high: int

    def __post_init__(self) -> None:
        if self.low < 0 or self.high < self.low:
            raise ValueError(f"Invalid rep range: {self.low}-{self.high}")

    @property
    def midpoint(self) -> int:
        return (self.low + self.high) // 2

    def contains(self, value: int) -> bool:
        return self.low <= value <= self.high

    def clamp(self, value: int) -> int:
        return max(self.low, min(self.high, value))

    def __str__(self) -> str:
        return f"{self.low}-{self.high}"


@dataclass(frozen=True)
class ExerciseRecord:
    """A catalog exercise as seen by the planner."""

    exercise_id: str
    name: str
    body_part: str = ""
    target: str = ""
    synergist: str = ""
    equipment: str = "body weight"
    exercise_type: str = ""
    movement_type: MovementType | None = None
    tracking_type: TrackingType | None = None


@dataclass(frozen=True)
class SetScheme:
    """Concrete sets/reps/rest prescription."""

    sets: int
    rep_range: RepRange
    target_reps: int
    rest_seconds: int
    load_percentage: RepRange | None = None
    target_rpe: RepRange | None = None
    override_reason: str | None = None

    def __post_init__(self) -> None:
        if self.sets < 1:
            raise ValueError("sets must be at least 1")
        if not self.rep_range.contains(self.target_reps):
            raise ValueError(
                f"target_reps {self.target_reps} outside rep range {self.rep_range}"
            )
        if self.rest_seconds < 0:
            raise ValueError("rest_seconds must be non-negative")


@dataclass(frozen=True)
class SetSchemeSuggestion:
    """Caller-provided preference; clamped into the template by the planner."""

    sets: int | None = None
    reps: int | None = None


@dataclass(frozen=True)
class FlexibleSet:
    """A time-tracked set (hold, interval, distance or round)."""

    duration_seconds: int
    rounds: int | None = None
    distance_m: float | None = None

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError("duration_seconds must be non-negative")


@dataclass
class ExercisePrescription:
    """One placed exercise in a generated plan."""

    exercise: ExerciseRecord
    muscle: MuscleGroup
    sets: int
    reps: int
    rest_seconds: int
    tracking_type: TrackingType = TrackingType.REPS_WEIGHT
    movement_type: MovementType = MovementType.ISOLATION
    scheme: SetScheme | None = None
    dynamic_rep_range: RepRange | None = None
    flexible_sets: list[FlexibleSet] = field(default_factory=list)
    warmup_sets: int = 0
    estimated_seconds: int = 0


@dataclass(frozen=True)
class TimeBreakdown:
    warmup_minutes: int
    exercise_minutes: int
    cooldown_minutes: int
    total_minutes: int


@dataclass
class WorkoutPlan:
    """Final output of the assembler."""

    exercises: list[ExercisePrescription]
    actual_duration_minutes: int
    total_time_breakdown: TimeBreakdown
    allocations: list[MuscleAllocation] = field(default_factory=list)
    target_exercise_count: int = 0

    @classmethod
    def empty(cls) -> WorkoutPlan:
        return cls(
            exercises=[],
            actual_duration_minutes=0,
            total_time_breakdown=TimeBreakdown(0, 0, 0, 0),
        )

    @property
    def exercise_count(self) -> int:
        return len(self.exercises)


# =============================================================================
# COMPLETED WORK & FEEDBACK
# =============================================================================


@dataclass
class CompletedSet:
    reps: int
    weight_kg: float = 0.0

    def __post_init__(self) -> None:
        if self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.weight_kg < 0:
            raise ValueError("weight_kg must be non-negative")


@dataclass
class CompletedExercise:
    exercise_id: str
    sets: list[CompletedSet] = field(default_factory=list)

    @property
    def average_reps(self) -> float:
        if not self.sets:
            return 0.0
        return sum(s.reps for s in self.sets) / len(self.sets)

    @property
    def max_weight_kg(self) -> float:
        return max((s.weight_kg for s in self.sets), default=0.0)

    @property
    def volume(self) -> float:
        return sum(s.reps * s.weight_kg for s in self.sets)


@dataclass(frozen=True)
class PerformanceMetrics:
    """Rolling auto-regulation signal; part of rep-range cache keys."""

    average_rpe: float
    completion_rate: float
    trend: PerformanceTrend
    deload_recommended: bool
    recent_feedback_count: int = 0
    plateau_risk: float = 0.0  # 0..1, low RPE variance means high risk

    @classmethod
    def neutral(cls) -> PerformanceMetrics:
        return cls(
            average_rpe=7.0,
            completion_rate=1.0,
            trend=PerformanceTrend.STABLE,
            deload_recommended=False,
        )


@dataclass
class WorkoutSessionFeedback:
    workout_id: str
    overall_rpe: float
    completion_rate: float = 1.0
    difficulty: DifficultyRating = DifficultyRating.JUST_RIGHT
    date: datetime | None = None

    def __post_init__(self) -> None:
        """Validate feedback data."""
        if math.isnan(self.overall_rpe) or not (1.0 <= self.overall_rpe <= 10.0):
            raise ValueError("overall_rpe must be in [1, 10]")
        if not (0.0 <= self.completion_rate <= 1.0):
            raise ValueError("completion_rate must be in [0, 1]")


# =============================================================================
# USER PROFILE
# =============================================================================


@dataclass
class FlexibilityPreferences:
    warmup_enabled: bool = True
    cooldown_enabled: bool = True


@dataclass
class UserProfile:
    """Planner-facing user snapshot."""

    equipment: list[str] = field(default_factory=lambda: ["body weight"])
    avoided_exercise_ids: list[str] = field(default_factory=list)
    experience: ExperienceLevel = ExperienceLevel.INTERMEDIATE
    goal: FitnessGoal = FitnessGoal.GENERAL
    unit_system: str = "metric"
    bodyweight_kg: float | None = None
    warmup_sets_enabled: bool = False
    preferences: FlexibilityPreferences = field(default_factory=FlexibilityPreferences)

    def __post_init__(self) -> None:
        """Validate profile data."""
        if self.unit_system not in ("metric", "imperial"):
            raise ValueError("unit_system must be 'metric' or 'imperial'")
        if self.bodyweight_kg is not None and self.bodyweight_kg <= 0:
            raise ValueError("bodyweight_kg must be positive")
