"""
JSON serialization for liftplan data models.

Handles conversion between dataclasses and JSON-compatible dicts, plus the
compact set notation accepted by the CLI.
"""

import json
import re
from datetime import datetime
from typing import Any

from ..core.models import (
    CompletedSet,
    DifficultyRating,
    ExercisePrescription,
    ExperienceLevel,
    FitnessGoal,
    FlexibilityPreferences,
    MuscleGroup,
    MuscleRecoveryData,
    StimulusRecord,
    UserProfile,
    WorkoutPlan,
    WorkoutSessionFeedback,
)


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_datetime(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp.

    Offset-aware timestamps are converted to naive local time, which is what
    the history files and the recovery clock use.

    Raises:
        ValidationError: If the string is not a valid ISO timestamp
    """
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid timestamp: {value!r}. Expected ISO format") from e
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _parse_enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        valid = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {name}: {value!r}. Valid: {valid}") from e


# =============================================================================
# STIMULUS HISTORY
# =============================================================================


def stimulus_to_dict(muscle: MuscleGroup, record: StimulusRecord) -> dict[str, Any]:
    return {
        "muscle": muscle.value,
        "date": record.date.isoformat(timespec="seconds"),
        "intensity": round(record.intensity, 4),
        "volume": record.volume,
        "exercise_ids": list(record.exercise_ids),
    }


def dict_to_stimulus(data: dict[str, Any]) -> tuple[MuscleGroup, StimulusRecord]:
    """
    Convert dict to a (muscle, StimulusRecord) pair.

    Raises:
        ValidationError: If data is invalid
    """
    if "muscle" not in data or "date" not in data:
        raise ValidationError("Stimulus record requires 'muscle' and 'date'")
    muscle = _parse_enum(MuscleGroup, data["muscle"], "muscle")
    try:
        record = StimulusRecord(
            date=validate_datetime(data["date"]),
            intensity=float(data.get("intensity", 0.0)),
            volume=float(data.get("volume", 0.0)),
            exercise_ids=[str(e) for e in data.get("exercise_ids", [])],
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid stimulus record: {e}") from e
    return muscle, record


def stimulus_to_json_line(muscle: MuscleGroup, record: StimulusRecord) -> str:
    """Serialize one stimulus to a single JSON line (no trailing newline)."""
    return json.dumps(stimulus_to_dict(muscle, record), separators=(",", ":"))


def json_line_to_stimulus(line: str) -> tuple[MuscleGroup, StimulusRecord]:
    """
    Deserialize a JSON line to a (muscle, StimulusRecord) pair.

    Raises:
        ValidationError: If JSON is invalid or data validation fails
    """
    try:
        data = json.loads(line.strip())
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError("Stimulus line must be a JSON object")
    return dict_to_stimulus(data)


# =============================================================================
# PROFILE & FEEDBACK
# =============================================================================


def user_profile_to_dict(profile: UserProfile) -> dict[str, Any]:
    """
    Convert UserProfile to JSON-compatible dict.

    Args:
        profile: UserProfile to convert

    Returns:
        Dict representation
    """
    d: dict[str, Any] = {
        "equipment": list(profile.equipment),
        "experience": profile.experience.value,
        "goal": profile.goal.value,
        "unit_system": profile.unit_system,
        "warmup_sets_enabled": profile.warmup_sets_enabled,
        "warmup_enabled": profile.preferences.warmup_enabled,
        "cooldown_enabled": profile.preferences.cooldown_enabled,
    }
    if profile.avoided_exercise_ids:
        d["avoided_exercise_ids"] = list(profile.avoided_exercise_ids)
    if profile.bodyweight_kg is not None:
        d["bodyweight_kg"] = profile.bodyweight_kg
    return d


def dict_to_user_profile(data: dict[str, Any]) -> UserProfile:
    """
    Convert dict to UserProfile.

    Args:
        data: Dict representation

    Returns:
        UserProfile instance

    Raises:
        ValidationError: If data is invalid
    """
    equipment = data.get("equipment", ["body weight"])
    if not isinstance(equipment, list) or not all(isinstance(e, str) for e in equipment):
        raise ValidationError("equipment must be a list of strings")

    bodyweight = data.get("bodyweight_kg")
    try:
        return UserProfile(
            equipment=equipment,
            avoided_exercise_ids=[str(e) for e in data.get("avoided_exercise_ids", [])],
            experience=_parse_enum(ExperienceLevel, data.get("experience", "intermediate"), "experience"),
            goal=_parse_enum(FitnessGoal, data.get("goal", "general"), "goal"),
            unit_system=data.get("unit_system", "metric"),
            bodyweight_kg=float(bodyweight) if bodyweight is not None else None,
            warmup_sets_enabled=bool(data.get("warmup_sets_enabled", False)),
            preferences=FlexibilityPreferences(
                warmup_enabled=bool(data.get("warmup_enabled", True)),
                cooldown_enabled=bool(data.get("cooldown_enabled", True)),
            ),
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


def feedback_to_dict(feedback: WorkoutSessionFeedback) -> dict[str, Any]:
    d: dict[str, Any] = {
        "workout_id": feedback.workout_id,
        "overall_rpe": feedback.overall_rpe,
        "completion_rate": feedback.completion_rate,
        "difficulty": feedback.difficulty.value,
    }
    if feedback.date is not None:
        d["date"] = feedback.date.isoformat(timespec="seconds")
    return d


def dict_to_feedback(data: dict[str, Any]) -> WorkoutSessionFeedback:
    """
    Convert dict to WorkoutSessionFeedback.

    Raises:
        ValidationError: If data is invalid
    """
    if "workout_id" not in data or "overall_rpe" not in data:
        raise ValidationError("Feedback requires 'workout_id' and 'overall_rpe'")
    try:
        return WorkoutSessionFeedback(
            workout_id=str(data["workout_id"]),
            overall_rpe=float(data["overall_rpe"]),
            completion_rate=float(data.get("completion_rate", 1.0)),
            difficulty=_parse_enum(DifficultyRating, data.get("difficulty", "just_right"), "difficulty"),
            date=validate_datetime(data["date"]) if data.get("date") else None,
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid feedback: {e}") from e


# =============================================================================
# OUTPUT
# =============================================================================


def prescription_to_dict(p: ExercisePrescription) -> dict[str, Any]:
    d: dict[str, Any] = {
        "exercise_id": p.exercise.exercise_id,
        "name": p.exercise.name,
        "muscle": p.muscle.value,
        "movement_type": p.movement_type.value,
        "tracking_type": p.tracking_type.value,
        "sets": p.sets,
        "reps": p.reps,
        "rest_seconds": p.rest_seconds,
        "estimated_seconds": p.estimated_seconds,
    }
    if p.scheme is not None:
        d["rep_range"] = [p.scheme.rep_range.low, p.scheme.rep_range.high]
        if p.scheme.override_reason:
            d["override_reason"] = p.scheme.override_reason
    if p.dynamic_rep_range is not None:
        d["dynamic_rep_range"] = [p.dynamic_rep_range.low, p.dynamic_rep_range.high]
    if p.flexible_sets:
        d["flexible_sets"] = [
            {"duration_seconds": s.duration_seconds, "rounds": s.rounds} for s in p.flexible_sets
        ]
    if p.warmup_sets:
        d["warmup_sets"] = p.warmup_sets
    return d


def workout_plan_to_dict(plan: WorkoutPlan) -> dict[str, Any]:
    breakdown = plan.total_time_breakdown
    return {
        "exercises": [prescription_to_dict(p) for p in plan.exercises],
        "actual_duration_minutes": plan.actual_duration_minutes,
        "time_breakdown": {
            "warmup_minutes": breakdown.warmup_minutes,
            "exercise_minutes": breakdown.exercise_minutes,
            "cooldown_minutes": breakdown.cooldown_minutes,
            "total_minutes": breakdown.total_minutes,
        },
        "allocations": [
            {"muscle": a.muscle.value, "count": a.count, "recovery_percentage": round(a.recovery_percentage, 1)}
            for a in plan.allocations
        ],
        "target_exercise_count": plan.target_exercise_count,
    }


def recovery_to_dict(data: MuscleRecoveryData) -> dict[str, Any]:
    return {
        "muscle": data.muscle.value,
        "recovery_percentage": round(data.recovery_percentage, 1),
        "status": data.recovery_status.value,
        "last_worked": None if data.last_worked_date == datetime.min else data.last_worked_date.isoformat(timespec="seconds"),
        "full_recovery": data.estimated_full_recovery_date.isoformat(timespec="seconds"),
    }


# =============================================================================
# SET NOTATION
# =============================================================================

_SET_PATTERN = re.compile(r"^(\d+)(?:\s*[x@]\s*(\d+(?:\.\d+)?))?$")


def parse_sets_string(sets_str: str) -> list[CompletedSet]:
    """
    Parse completed sets from compact notation.

    Comma-separated entries of ``reps`` or ``reps x weight_kg``
    (``@`` is accepted in place of ``x``):

        "8x60, 8x60, 6x65"  ->  three weighted sets
        "12,12,10"          ->  three bodyweight sets

    Raises:
        ValidationError: If any entry is malformed
    """
    sets: list[CompletedSet] = []
    for raw in sets_str.split(","):
        part = raw.strip().lower()
        if not part:
            continue
        match = _SET_PATTERN.match(part)
        if match is None:
            raise ValidationError(f"Invalid set: {raw.strip()!r}. Expected 'reps' or 'reps x kg'")
        reps = int(match.group(1))
        weight = float(match.group(2)) if match.group(2) else 0.0
        sets.append(CompletedSet(reps=reps, weight_kg=weight))
    if not sets:
        raise ValidationError("No sets given")
    return sets
